from typing import Optional


class SlateError(RuntimeError):
    """Base class for every error raised by slate_feed."""


class Unauthenticated(SlateError):
    """A workflow needed a signed-in identity and there was none."""

    def __init__(self, action: str = "perform this action"):
        super().__init__(f"User must be logged in to {action}")
        self.action = action


class RemoteOperationFailed(SlateError):
    """
    A store or identity call was rejected by the backend.

    The original exception (network, permission, misconfiguration) is kept as
    ``__cause__``; the message is passed through unchanged.
    """


class IdentityProviderError(RemoteOperationFailed):
    """Identity provider rejection, with the provider's error code."""

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


class NotFound(SlateError):
    """A lookup returned nothing where a related update was attempted."""
