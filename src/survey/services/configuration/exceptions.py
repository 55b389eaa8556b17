"""Custom exceptions for configuration resolution and provisioning."""


class ConfigurationError(Exception):
    """Base exception for all configuration-related errors."""

    pass


class NotConfiguredError(ConfigurationError):
    """Raised when no configuration tier yielded usable backend credentials."""

    pass


class TransientBackendError(ConfigurationError):
    """Raised when the backend could not be reached (timeouts, HTTP or API errors)."""

    pass


class ProvisioningStepError(ConfigurationError):
    """Raised when a single provisioning step fails against the backend."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step
