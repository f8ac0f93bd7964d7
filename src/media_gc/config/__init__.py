"""Configuration management for media-gc."""

from media_gc.config.references import (
    DEFAULT_REFERENCE_SPECS,
    BlocksRule,
    FieldRule,
    MediaKind,
    ReferenceRule,
    ReferenceSpec,
    RichTextRule,
)
from media_gc.config.settings import (
    CleanupConfig,
    Settings,
    get_cleanup_config,
    get_config_dir,
    get_settings,
    load_yaml_config,
)

__all__ = [
    # Settings module exports
    "Settings",
    "get_settings",
    "load_yaml_config",
    "get_config_dir",
    "get_cleanup_config",
    "CleanupConfig",
    # Reference table exports
    "MediaKind",
    "FieldRule",
    "BlocksRule",
    "RichTextRule",
    "ReferenceRule",
    "ReferenceSpec",
    "DEFAULT_REFERENCE_SPECS",
]
