"""
overlayconf.exceptions
----------------------

Custom exceptions for overlayconf.
"""


class ConfigError(Exception):
    """
    Base type for all errors raised by overlayconf.
    """


class ConfigDecodeError(ConfigError):
    """
    Raised when baseline text (JSON/TOML) cannot be decoded onto the config type.
    """


class ImmutableContainerError(ConfigError):
    """
    Raised at bind time when a container cannot be modified in place (e.g. a tuple).
    """

    def __init__(self, path, container):
        super().__init__(
            f"Cannot modify an effectively immutable container at '{path}' "
            f"({type(container).__name__}). Use a list or array.array instead."
        )
        self.path = path


class OverlayValueError(ConfigError, ValueError):
    """
    Raised when an overlay value (CLI, system property, env var) cannot be
    coerced to the declared type of its property.
    """

    def __init__(self, text, declared_type, reason=None):
        message = f"Cannot convert {text!r} to {declared_type}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.text = text
        self.declared_type = declared_type


class ContainerGrowthError(ConfigError):
    """
    Raised when a container of an unknown kind is asked to grow.
    """
