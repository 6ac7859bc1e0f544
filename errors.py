"""Error taxonomy shared by the fetcher, resolver and collectors."""


class FormatError(ValueError):
    """A game version string could not be parsed. Skip the record."""


class NotFoundError(Exception):
    """The remote record does not exist (404). Treated as an empty result."""


class TransientError(Exception):
    """Rate limit or server-side failure that is worth retrying."""

    def __init__(self, status: int | None, retry_after: float | None = None, message: str = ""):
        self.status = status
        self.retry_after = retry_after
        super().__init__(message or f"transient error (status={status}, retry_after={retry_after})")


class FatalError(Exception):
    """Retries exhausted or a precondition failed. Aborts the current region."""


class NoDataError(Exception):
    """Nothing to derive a result from (e.g. an empty detection sample)."""
