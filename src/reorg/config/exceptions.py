"""Exceptions raised while loading or validating reorg configuration."""


class ConfigError(Exception):
    """Raised when configuration data cannot be parsed, merged, or validated."""


__all__ = ["ConfigError"]
