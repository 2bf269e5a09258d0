"""Domain-specific errors for bluerat."""


class BlueratError(Exception):
    """Base error for bluerat."""


class ConfigError(BlueratError):
    """Base configuration error."""


class ConfigLoadError(ConfigError):
    """Raised when the config file cannot be read or parsed."""


class ConfigValidationError(ConfigError):
    """Raised when the config file does not conform to schema or semantics."""


class StackError(BlueratError):
    """Raised when a call into the Bluetooth stack fails."""


class AdapterNotFoundError(StackError):
    """Raised when an adapter id no longer resolves to a stack adapter."""


class DeviceNotFoundError(StackError):
    """Raised when a device id no longer resolves to a stack device."""


class UnsupportedActionError(BlueratError):
    """Raised when an action has no one-shot implementation."""
