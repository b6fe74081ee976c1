"""Exception types for the tilde x402 MCP server.

Configuration errors abort the invocation that hit them. Payment errors are
caught by the payment-aware client and surfaced as structured failures, so
they never reach the MCP host directly.
"""


class TildeMCPError(Exception):
    """Base class for all server errors."""

    pass


class ConfigurationError(TildeMCPError):
    """Raised when required configuration is missing or malformed."""

    pass


class MissingKeyError(ConfigurationError):
    """Raised when no private key is configured for a chain family."""

    def __init__(self, key_name: str, message: str):
        self.key_name = key_name
        super().__init__(message)


class SignerCreationError(ConfigurationError):
    """Raised when a signer cannot be derived from the configured key."""

    pass


class PaymentError(TildeMCPError):
    """Raised when a payment proof cannot be produced for a 402 challenge."""

    pass


class NoMatchingRequirementError(PaymentError):
    """Raised when no payment requirement matches the signer's chain family."""

    pass


class ToolExecutionError(TildeMCPError):
    """Wraps an unexpected error with the name of the failing operation."""

    pass
