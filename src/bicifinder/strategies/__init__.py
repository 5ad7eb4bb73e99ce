"""
Acquisition strategies. The rendered-DOM strategy is imported from its own
module so that the browser driver is only loaded when it is used.
"""

from .api_strategy import StructuredApiStrategy, api_payload
from .html_strategy import HtmlExtractionStrategy
from .pagination import PaginationPolicy, PaginationRun, PaginationState, StopReason, paginate
from .protocols import AcquisitionStrategy, PageSource

__all__ = [
    "AcquisitionStrategy",
    "HtmlExtractionStrategy",
    "PageSource",
    "PaginationPolicy",
    "PaginationRun",
    "PaginationState",
    "StopReason",
    "StructuredApiStrategy",
    "api_payload",
    "paginate",
]
