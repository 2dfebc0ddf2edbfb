"""Error taxonomy for Comic Cron."""


class ComicCronError(Exception):
    """Base class for every failure a source run can report."""


class FetchError(ComicCronError):
    """Network or transport failure while fetching a URL."""


class ParseError(ComicCronError):
    """Malformed markup or malformed structured payload."""


class ExtractionError(ComicCronError):
    """A required field or attribute is absent."""


class DetectionError(ComicCronError):
    """A feed violated a precondition of update detection."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotificationError(ComicCronError):
    """Webhook delivery failed."""


class PersistenceError(ComicCronError):
    """Checkpoint could not be loaded or saved."""
