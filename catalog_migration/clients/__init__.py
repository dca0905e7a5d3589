"""Transport clients for remote catalogs."""

from .base import RemoteCatalogClient
from .rest import RestCatalogClient
from .graphql import GraphQLClient

__all__ = [
    "RemoteCatalogClient",
    "RestCatalogClient",
    "GraphQLClient",
]
