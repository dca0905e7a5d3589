"""
Catalog Migration

Migrates composite catalog products (a configurable parent with its purchasable
variant children) from one source catalog to one or more target catalog
instances.

Supports:
- Magento REST targets (id-based attribute options, per-store display scopes)
- Shopify GraphQL targets (label-based product options)
- Full creation on new targets and incremental variant sync on existing ones
- Per-instance and per-variant partial-failure reporting
- Optional media migration, category renaming and webhook notifications
"""

__version__ = "0.1.0"
