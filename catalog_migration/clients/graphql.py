"""GraphQL client for the Shopify Admin API."""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import RemoteAPIError

logger = logging.getLogger(__name__)


class GraphQLClient:
    """
    Client for the Shopify Admin GraphQL endpoint.

    Top-level GraphQL errors raise RemoteAPIError. Mutation userErrors are
    part of the returned data and left to the caller.
    """

    def __init__(
        self,
        shop_url: str,
        token: Optional[str] = None,
        api_version: str = "2025-01",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        session: Optional[requests.Session] = None
    ):
        if not shop_url.startswith(("http://", "https://")):
            shop_url = f"https://{shop_url}"
        self.shop_url = shop_url.rstrip("/")
        self.token = token
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session or self._create_session()

    @property
    def endpoint(self) -> str:
        return f"{self.shop_url}/admin/api/{self.api_version}/graphql.json"

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic and authentication."""
        session = requests.Session()

        retries = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=None,  # every GraphQL call is a POST
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        if self.token:
            session.headers["X-Shopify-Access-Token"] = self.token
        session.headers["Content-Type"] = "application/json"

        return session

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a query or mutation.

        Args:
            query: GraphQL document
            variables: Variables for the document

        Returns:
            The "data" member of the response
        """
        try:
            response = self._session.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"GraphQL request to {self.shop_url} returned {status}")
            raise RemoteAPIError(f"GraphQL request failed: {e}", status_code=status) from e
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"GraphQL request to {self.shop_url} failed: {e}")
            raise RemoteAPIError(f"GraphQL request failed: {e}") from e

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            raise RemoteAPIError(f"GraphQL errors: {messages}", response_data=errors)

        return body.get("data") or {}

    def test_connection(self) -> bool:
        try:
            self.execute("{ shop { name } }")
            return True
        except RemoteAPIError as e:
            logger.warning(f"Connection test failed for {self.shop_url}: {e}")
            return False


def user_error_messages(payload: Dict[str, Any]) -> List[str]:
    """Collect userErrors messages from a mutation payload."""
    return [
        error.get("message", "unknown error")
        for error in (payload or {}).get("userErrors") or []
    ]
