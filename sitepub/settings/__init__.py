"""Settings package exports."""

from .loader import (
    CONFIG_ENV_VAR,
    AppConfig,
    BuildSettings,
    PathSettings,
    PublishSettings,
    SiteSettings,
    config_from_dict,
    load_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "AppConfig",
    "BuildSettings",
    "PathSettings",
    "PublishSettings",
    "SiteSettings",
    "config_from_dict",
    "load_config",
]
