"""
Notion API Client - Low-level HTTP client for the Notion REST API.

This handles the raw HTTP communication with Notion, including throttling
and retries. The NotionAdapter uses this to implement the WorkspacePort.
"""

import logging
import time
from typing import Any, Callable, Iterator, Optional
from urllib.parse import urlparse

import requests

from ...core.ports.config_provider import WorkspaceConfig
from ...core.ports.workspace import (
    WorkspaceError,
    AuthenticationError,
    ClientConstructionError,
    NotFoundError,
    PartialCreateError,
    PermissionError,
    RateLimitError,
    RetryExhaustedError,
    TransientError,
    ValidationError,
)
from .rate_limit import RateLimiter
from .retry import RetryPolicy


MAX_BLOCKS_PER_REQUEST = 100
PAGE_SIZE = 100


class NotionApiClient:
    """
    Low-level Notion REST API client.

    Handles authentication, throttling, retries, request/response and error
    classification.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        dry_run: bool = False,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the Notion client.

        Args:
            config: Workspace credentials and endpoint
            limiter: Shared rate limiter (defaults to 3 requests/second)
            retry_policy: Backoff policy for retryable failures
            dry_run: If True, don't make write operations
            session: Optional pre-built requests session

        Raises:
            ClientConstructionError: If the credentials or endpoint are unusable
        """
        if not config.api_key:
            raise ClientConstructionError("Notion API key is not set")

        parsed = urlparse(config.api_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ClientConstructionError(f"Invalid API URL: {config.api_url!r}")

        self.api_url = config.api_url.rstrip("/")
        self.timeout = config.timeout
        self.dry_run = dry_run
        self.limiter = limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logging.getLogger("NotionApiClient")
        self._sleep = sleep

        self.headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Notion-Version": config.notion_version,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        self._session = session or requests.Session()
        self._session.headers.update(self.headers)

        self._current_user: Optional[dict] = None

    # -------------------------------------------------------------------------
    # Core Request Methods
    # -------------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> dict[str, Any]:
        """
        Make an authenticated request to the Notion API.

        Retryable failures (429, 5xx, transport errors) are retried according
        to the retry policy; everything else is raised immediately.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            endpoint: API endpoint (e.g., 'pages/abc123')
            **kwargs: Additional arguments for requests

        Returns:
            JSON response as dict

        Raises:
            WorkspaceError: On terminal API errors
            RetryExhaustedError: When retries ran out
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        kwargs.setdefault("timeout", self.timeout)
        attempt = 0

        while True:
            attempt += 1
            self.limiter.acquire()

            try:
                response = self._session.request(method, url, **kwargs)
                return self._handle_response(response, endpoint)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                error: WorkspaceError = TransientError(
                    f"Connection failed: {e}", endpoint=endpoint, cause=e
                )
            except requests.exceptions.RequestException as e:
                raise WorkspaceError(f"Request failed: {e}", endpoint=endpoint, cause=e)
            except WorkspaceError as e:
                if not e.retryable:
                    raise
                error = e

            if not self.retry_policy.should_retry(attempt):
                raise RetryExhaustedError(
                    f"{method} {endpoint} failed after {attempt} attempts: {error}",
                    attempts=attempt,
                    last_error=error,
                )

            delay = self.retry_policy.delay_for(attempt, getattr(error, "retry_after", None))
            self.logger.warning(
                f"{method} {endpoint} attempt {attempt}/{self.retry_policy.max_attempts} "
                f"failed ({error}); retrying in {delay:.2f}s"
            )
            self._sleep(delay)

    def get(self, endpoint: str, **kwargs) -> dict[str, Any]:
        """GET request."""
        return self.request("GET", endpoint, **kwargs)

    def post(self, endpoint: str, json: dict = None, **kwargs) -> dict[str, Any]:
        """POST request (checks dry_run)."""
        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would POST to {endpoint}")
            return {}
        return self.request("POST", endpoint, json=json, **kwargs)

    def patch(self, endpoint: str, json: dict = None, **kwargs) -> dict[str, Any]:
        """PATCH request (checks dry_run)."""
        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would PATCH {endpoint}")
            return {}
        return self.request("PATCH", endpoint, json=json, **kwargs)

    def delete(self, endpoint: str, **kwargs) -> dict[str, Any]:
        """DELETE request (checks dry_run)."""
        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would DELETE {endpoint}")
            return {}
        return self.request("DELETE", endpoint, **kwargs)

    # -------------------------------------------------------------------------
    # Response Handling
    # -------------------------------------------------------------------------

    def _handle_response(
        self,
        response: requests.Response,
        endpoint: str
    ) -> dict[str, Any]:
        """Handle API response and errors."""
        if response.ok:
            if response.text:
                return response.json()
            return {}

        status = response.status_code
        message = self._error_message(response)

        if status == 401:
            raise AuthenticationError(
                "Authentication failed. Check NOTION_API_KEY.",
                status=status, endpoint=endpoint,
            )

        if status == 403:
            raise PermissionError(
                f"Permission denied for {endpoint}: {message}",
                status=status, endpoint=endpoint,
            )

        if status == 404:
            raise NotFoundError(
                f"Not found: {endpoint}",
                status=status, endpoint=endpoint,
            )

        if status == 429:
            raise RateLimitError(
                f"Rate limited on {endpoint}",
                retry_after=self._retry_after(response),
                status=status, endpoint=endpoint,
            )

        if status >= 500:
            raise TransientError(
                f"Server error {status}: {message}",
                status=status, endpoint=endpoint,
            )

        raise ValidationError(
            f"API error {status}: {message}",
            status=status, endpoint=endpoint,
        )

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:500] if response.text else ""
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.text[:500]

    @staticmethod
    def _retry_after(response: requests.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return max(0.0, float(value))
        except ValueError:
            return None

    # -------------------------------------------------------------------------
    # Convenience Methods
    # -------------------------------------------------------------------------

    def get_me(self) -> dict[str, Any]:
        """Get the bot user behind the API key."""
        if self._current_user is None:
            self._current_user = self.get("users/me")
        return self._current_user

    def test_connection(self) -> bool:
        """Test if connection is valid."""
        try:
            self.get_me()
            return True
        except WorkspaceError:
            return False

    def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return self.get(f"pages/{page_id}")

    def create_page(
        self,
        parent: dict[str, str],
        properties: dict[str, Any],
        children: Optional[list[dict]] = None,
    ) -> dict[str, Any]:
        """
        Create a page. Only the first batch of children goes with the create;
        the rest is appended afterwards.
        """
        children = children or []
        body: dict[str, Any] = {"parent": parent, "properties": properties}
        if children:
            body["children"] = children[:MAX_BLOCKS_PER_REQUEST]

        page = self.post("pages", json=body)
        if page.get("id") and len(children) > MAX_BLOCKS_PER_REQUEST:
            try:
                self.append_children(page["id"], children[MAX_BLOCKS_PER_REQUEST:])
            except WorkspaceError as e:
                message = f"Page {page['id']} created but its body is incomplete: {e}"
                self.logger.warning(message)
                raise PartialCreateError(
                    message,
                    remote_id=page["id"],
                    cause=e,
                )
        return page

    def update_page(
        self,
        page_id: str,
        properties: Optional[dict[str, Any]] = None,
        archived: Optional[bool] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if properties is not None:
            body["properties"] = properties
        if archived is not None:
            body["archived"] = archived
        return self.patch(f"pages/{page_id}", json=body)

    def retrieve_database(self, database_id: str) -> dict[str, Any]:
        return self.get(f"databases/{database_id}")

    def create_database(
        self,
        parent_page_id: str,
        title: str,
        properties: dict[str, Any],
    ) -> dict[str, Any]:
        return self.post("databases", json={
            "parent": {"type": "page_id", "page_id": parent_page_id},
            "title": [{"type": "text", "text": {"content": title}}],
            "properties": properties,
        })

    def update_database(self, database_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return self.patch(f"databases/{database_id}", json={"properties": properties})

    def iter_children(self, block_id: str) -> Iterator[dict[str, Any]]:
        """Iterate over all child blocks, following pagination."""
        cursor: Optional[str] = None
        while True:
            params: dict[str, Any] = {"page_size": PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            data = self.get(f"blocks/{block_id}/children", params=params)
            yield from data.get("results", [])
            if not data.get("has_more"):
                return
            cursor = data.get("next_cursor")

    def append_children(self, block_id: str, children: list[dict]) -> None:
        """Append blocks, at most MAX_BLOCKS_PER_REQUEST per call."""
        for start in range(0, len(children), MAX_BLOCKS_PER_REQUEST):
            self.patch(
                f"blocks/{block_id}/children",
                json={"children": children[start:start + MAX_BLOCKS_PER_REQUEST]},
            )

    def delete_block(self, block_id: str) -> dict[str, Any]:
        return self.delete(f"blocks/{block_id}")
