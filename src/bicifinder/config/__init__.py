from .config import (
    AcquisitionSettings,
    Config,
    FetcherConfig,
    MonitoringConfig,
    PaginationConfig,
    RecordsConfig,
    RelayConfig,
    RenderConfig,
    UpstreamConfig,
    VocabularyConfig,
    WebConfig,
    find_config_file,
    get_settings,
    load_config,
    settings,
)

__all__ = [
    "AcquisitionSettings",
    "Config",
    "FetcherConfig",
    "MonitoringConfig",
    "PaginationConfig",
    "RecordsConfig",
    "RelayConfig",
    "RenderConfig",
    "UpstreamConfig",
    "VocabularyConfig",
    "WebConfig",
    "find_config_file",
    "get_settings",
    "load_config",
    "settings",
]
