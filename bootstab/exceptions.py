"""Exception hierarchy for bootstab."""


class BootstabError(Exception):
    """Base exception for all bootstab errors."""


class InvalidInputError(BootstabError, ValueError):
    """
    Dataset or partition cannot support a stability estimate.

    Raised for an empty dataset, a wrong shape, a label/observation count
    mismatch, or fewer than two distinct clusters.
    """


class InsufficientIterationsError(BootstabError, RuntimeError):
    """Too many bootstrap iterations failed for the report to be trusted."""

    def __init__(self, message: str, n_requested: int, n_completed: int, n_failed: int) -> None:
        super().__init__(message)
        self.n_requested = n_requested
        self.n_completed = n_completed
        self.n_failed = n_failed
