"""
Notion Adapter - Implementation of WorkspacePort for Notion.

- NotionApiClient: HTTP client with throttling and retries
- NotionAdapter: Maps entities onto pages and databases
"""

from .adapter import NotionAdapter, notion_workspace_factory
from .client import NotionApiClient
from .rate_limit import RateLimiter
from .retry import RetryPolicy

__all__ = [
    "NotionAdapter",
    "notion_workspace_factory",
    "NotionApiClient",
    "RateLimiter",
    "RetryPolicy",
]
