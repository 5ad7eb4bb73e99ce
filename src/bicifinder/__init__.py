"""
bicifinder - Search recovered bicycles listed on biciregistro.es.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .models import Bicycle, SearchFilters
from .service import BicycleSearchService, search_bicycles

__all__ = ["__version__", "Bicycle", "BicycleSearchService", "Config", "SearchFilters", "search_bicycles"]
