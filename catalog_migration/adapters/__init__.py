"""Target catalog adapters."""

from .base import TargetAdapter
from .magento import MagentoTargetAdapter
from .shopify import ShopifyTargetAdapter
from ..clients.graphql import GraphQLClient
from ..clients.rest import RestCatalogClient
from ..models.migration import MigrationConfig, Platform, TargetInstanceConfig


def create_adapter(instance: TargetInstanceConfig, config: MigrationConfig) -> TargetAdapter:
    """
    Create the adapter for a target instance.

    Args:
        instance: Target instance configuration
        config: Migration configuration supplying transport settings

    Returns:
        A fresh adapter; adapters hold per-migration state and are not reused
    """
    if instance.platform == Platform.SHOPIFY:
        client = GraphQLClient(
            instance.base_url,
            token=instance.token,
            api_version=instance.api_version,
            timeout=config.timeout,
            max_retries=config.max_retries,
            backoff_factor=config.backoff_factor,
        )
        return ShopifyTargetAdapter(instance, client)

    client = RestCatalogClient(
        instance.base_url,
        token=instance.token,
        timeout=config.timeout,
        max_retries=config.max_retries,
        backoff_factor=config.backoff_factor,
    )
    return MagentoTargetAdapter(instance, client)


__all__ = [
    "TargetAdapter",
    "MagentoTargetAdapter",
    "ShopifyTargetAdapter",
    "create_adapter",
]
