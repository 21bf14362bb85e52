"""
Error taxonomy shared by the session context, the subscription store
and the HTTP layer.
"""


class SubscriptionError(Exception):
    """Base class for every failure surfaced to callers."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(SubscriptionError, ValueError):
    """Input rejected locally; the remote store was never contacted."""


class NotAuthenticated(SubscriptionError):
    """Operation requires a session and there is none."""

    def __init__(self, message: str = "User must be authenticated"):
        super().__init__(message)


class NotFoundOrForbidden(SubscriptionError):
    """
    Write matched zero rows.

    Deliberately ambiguous between "no such record" and "record owned by
    someone else", so that other users' ids are not disclosed.
    """

    def __init__(self, message: str = "Subscription not found"):
        super().__init__(message)


class RemoteError(SubscriptionError):
    """Failure reported by the remote store, message passed through verbatim."""


class ConfigurationError(SubscriptionError):
    """Remote store is misconfigured or unreachable."""
