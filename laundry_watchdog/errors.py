"""Runtime error taxonomy for monitoring cycles and their collaborators."""


class TransientFetchError(Exception):
    """Forecast or location temporarily unavailable. Periodic checks retry it."""


class PermissionDenied(Exception):
    """Location access refused; callers fall back to a known coordinate."""


class PersistenceError(Exception):
    """A state or ledger read/write failed. Prior stored state stays authoritative."""


class InvalidTransition(ValueError):
    """Raised when laundry status is asked to move along a disallowed edge."""

    def __init__(self, current, requested):
        super().__init__(f"Cannot change laundry status from {current.name} to {requested.name}")
        self.current = current
        self.requested = requested
