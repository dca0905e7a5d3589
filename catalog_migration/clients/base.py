"""Remote catalog client interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class RemoteCatalogClient(ABC):
    """
    Base class for remote catalog clients.

    Retry and backoff are handled inside the client. An exception raised
    by any method is terminal for the caller: NotFoundError when the
    resource does not exist, RemoteAPIError for everything else.

    `store` selects the display-scope path segment; "all" addresses the
    global write path and None the default one.
    """

    @abstractmethod
    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        store: Optional[str] = None
    ) -> Any:
        """
        Fetch a single resource.

        Args:
            path: Resource path relative to the API root
            params: Optional query parameters
            store: Optional store code

        Returns:
            Decoded response body
        """
        pass

    @abstractmethod
    def create(self, path: str, payload: Dict[str, Any], store: Optional[str] = None) -> Any:
        """Create a resource and return the decoded response."""
        pass

    @abstractmethod
    def update(self, path: str, payload: Dict[str, Any], store: Optional[str] = None) -> Any:
        """Update a resource and return the decoded response."""
        pass

    @abstractmethod
    def search(
        self,
        path: str,
        filters: List[Dict[str, Any]],
        store: Optional[str] = None,
        page_size: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Search a collection.

        Args:
            path: Collection path
            filters: List of {"field", "value", "condition_type"} filters, combined with AND
            store: Optional store code
            page_size: Optional page size limit

        Returns:
            Matching items
        """
        pass

    def test_connection(self) -> bool:
        """Check that the remote catalog is reachable."""
        return True
