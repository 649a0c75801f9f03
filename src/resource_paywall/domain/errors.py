"""Errors raised by the paywall services.

Every error carries a stable ``kind`` so API clients can decide whether to
start a new session, retry later, or treat the call as already done.
"""


class PaywallError(Exception):
    """Base class for recoverable paywall errors."""

    kind = "PaywallError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(PaywallError):
    kind = "NotFound"


class AlreadyEntitledError(PaywallError):
    kind = "AlreadyEntitled"


class InvalidTransitionError(PaywallError):
    kind = "InvalidTransition"


class SessionExpiredError(PaywallError):
    kind = "SessionExpired"


class SessionAlreadyResolvedError(PaywallError):
    kind = "SessionAlreadyResolved"


class AccessDeniedError(PaywallError):
    kind = "AccessDenied"


class FreeUnlockDisabledError(PaywallError):
    kind = "FreeUnlockDisabled"
