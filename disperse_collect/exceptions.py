"""
Exceptions for the disperse/collect service.
"""
from typing import Optional


class DisperseCollectError(Exception):
    """Base exception for all disperse/collect errors."""
    pass


class ConfigError(DisperseCollectError):
    """Raised when the service configuration is missing or invalid."""
    pass


class InvalidSpecError(DisperseCollectError):
    """Raised when a recipient specification cannot be resolved."""

    def __init__(self, message: str, address: Optional[str] = None):
        self.address = address
        super().__init__(message)


class InsufficientTotalError(DisperseCollectError):
    """Raised when resolved amounts exceed the available balance or allowance."""

    def __init__(self, address: str, required: int, available: int):
        self.address = address
        self.required = required
        self.available = available
        super().__init__(
            f"insufficient funds for address {address}, required: {required}, "
            f"available: {available}, check balance or allowance"
        )


class ChainError(DisperseCollectError):
    """Base exception for errors reported while talking to the node."""
    pass


class ChainUnavailableError(ChainError):
    """Raised when the node cannot be reached or the request times out."""
    pass


class ChainRejectedError(ChainError):
    """Raised when the node answers with an execution error."""
    pass


class TokenNotFoundError(ChainRejectedError):
    """Raised when the token address does not answer like an ERC20 contract."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"erc20 not found at address: {token}")


class UnsupportedOperationError(DisperseCollectError):
    """Raised when an operation is combined with arguments it cannot take."""
    pass


class SigningError(DisperseCollectError):
    """Raised when no usable key is configured or signing fails."""
    pass


class SubmissionRejectedError(DisperseCollectError):
    """Raised when the node refuses a signed transaction."""

    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message)
