"""
Upstream access: HTTP client with bounded retries, the listing page fetcher,
and the headless browser page fetcher.
"""

from .http_client import HttpClient, UpstreamResponse
from .page_fetcher import HtmlPageFetcher, listing_params
from .retry import ResponseKind, RetryPolicy, classify_status

__all__ = [
    "HtmlPageFetcher",
    "HttpClient",
    "ResponseKind",
    "RetryPolicy",
    "UpstreamResponse",
    "classify_status",
    "listing_params",
]
