"""REST client for Magento-style catalog APIs."""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import RemoteCatalogClient
from ..errors import NotFoundError, RemoteAPIError

logger = logging.getLogger(__name__)


def build_search_params(
    filters: List[Dict[str, Any]],
    page_size: Optional[int] = None
) -> Dict[str, Any]:
    """
    Encode filters as searchCriteria query parameters.

    Each filter gets its own filter group so that filters combine with AND.
    """
    params: Dict[str, Any] = {}
    for index, search_filter in enumerate(filters):
        prefix = f"searchCriteria[filterGroups][{index}][filters][0]"
        params[f"{prefix}[field]"] = search_filter["field"]
        params[f"{prefix}[value]"] = search_filter["value"]
        params[f"{prefix}[conditionType]"] = search_filter.get("condition_type", "eq")
    if page_size:
        params["searchCriteria[pageSize]"] = page_size
    if not filters and not page_size:
        params["searchCriteria"] = ""
    return params


def extract_error_message(response: requests.Response) -> str:
    """Get a readable message from an error response, substituting %1-style parameters."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"

    if not isinstance(data, dict):
        return str(data)[:500]

    message = str(data.get("message", f"HTTP {response.status_code}"))
    parameters = data.get("parameters")
    if isinstance(parameters, list):
        for index, value in enumerate(parameters, start=1):
            message = message.replace(f"%{index}", str(value))
    elif isinstance(parameters, dict):
        for key, value in parameters.items():
            message = message.replace(f"%{key}", str(value))
    return message


class RestCatalogClient(RemoteCatalogClient):
    """
    Client for a Magento REST API.

    Handles:
    - Bearer token authentication
    - Store-scoped URLs (/rest/{store}/V1/...)
    - Retry with backoff on throttling and server errors
    - Error translation into NotFoundError / RemoteAPIError
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the installation (without /rest)
            token: Integration access token
            timeout: Per-request timeout in seconds
            max_retries: Retries for throttled or failed requests
            backoff_factor: Backoff factor between retries
            session: Custom requests session
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic and authentication."""
        session = requests.Session()

        retries = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        if self.token:
            session.headers["Authorization"] = f"Bearer {self.token}"
        session.headers["Content-Type"] = "application/json"

        return session

    def url(self, path: str, store: Optional[str] = None) -> str:
        """Build the full URL for a resource path."""
        path = path.lstrip("/")
        if store:
            return f"{self.base_url}/rest/{store}/V1/{path}"
        return f"{self.base_url}/rest/V1/{path}"

    def _request(
        self,
        method: str,
        path: str,
        store: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = self.url(path, store)
        logger.debug(f"{method} {url}")

        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise RemoteAPIError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(
                f"{path}: {extract_error_message(response)}",
                details={"method": method, "store": store},
            )

        if response.status_code >= 400:
            message = extract_error_message(response)
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            try:
                response_data = response.json()
            except ValueError:
                response_data = response.text
            raise RemoteAPIError(
                f"{method} {path} returned {response.status_code}: {message}",
                status_code=response.status_code,
                response_data=response_data,
            )

        if not response.text:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {url} returned a non-JSON body")
            raise RemoteAPIError(
                f"{method} {path} returned an invalid body: {e}",
                status_code=response.status_code,
                response_data=response.text[:500],
            ) from e

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        store: Optional[str] = None
    ) -> Any:
        return self._request("GET", path, store=store, params=params)

    def create(self, path: str, payload: Dict[str, Any], store: Optional[str] = None) -> Any:
        return self._request("POST", path, store=store, payload=payload)

    def update(self, path: str, payload: Dict[str, Any], store: Optional[str] = None) -> Any:
        return self._request("PUT", path, store=store, payload=payload)

    def search(
        self,
        path: str,
        filters: List[Dict[str, Any]],
        store: Optional[str] = None,
        page_size: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        params = build_search_params(filters, page_size)
        data = self._request("GET", path, store=store, params=params)
        if isinstance(data, dict):
            return data.get("items") or []
        return data or []

    def test_connection(self) -> bool:
        try:
            self.get("store/storeConfigs")
            return True
        except RemoteAPIError as e:
            logger.warning(f"Connection test failed for {self.base_url}: {e}")
            return False
