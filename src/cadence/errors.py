"""Exceptions raised across Cadence."""


class CadenceError(Exception):
    """Base class for Cadence errors."""

    pass


class StoreError(CadenceError):
    """An external store call failed after retries."""

    pass


class AuthenticationError(StoreError):
    """Raised when authentication fails."""

    pass


class AdjustmentInProgress(CadenceError):
    """Raised when an adjustment run starts while another is in flight."""

    pass
