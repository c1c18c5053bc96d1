from __future__ import annotations


class W1HAIError(RuntimeError):
    """Base class for failures raised by the AI layer."""


class ConfigurationError(W1HAIError):
    """The generation service cannot be used because setup is incomplete (missing key)."""


class ServiceError(W1HAIError):
    """The generation service call failed or returned no text."""


class ParseError(W1HAIError):
    """The returned text was not valid JSON or did not have the expected shape."""
