"""Data models for Comic Cron."""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from dateutil import parser as date_parser

from .errors import ParseError


def quote(text: str) -> str:
    """Double-quote ``text``, escaping quotes, backslashes and control characters."""
    return json.dumps(text, ensure_ascii=False)


@dataclass
class FeedItem:
    """Represents a single item of a guid-ordered RSS feed."""

    title: str
    link: str
    image_url: str
    alt_text: str
    published_at: str  # RFC-2822, as published
    guid: str

    @property
    def published(self) -> datetime:
        """Parse ``published_at`` into a timezone-aware datetime.

        Raises:
            ParseError: If the date cannot be parsed
        """
        try:
            published = date_parser.parse(self.published_at)
        except (ValueError, TypeError, OverflowError) as e:
            raise ParseError(f"Invalid pubDate {self.published_at!r}: {e}") from e
        # Ensure timezone-aware datetime
        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)
        return published


@dataclass
class ArchiveEntry:
    """Represents one entry of the sequential numeric archive."""

    num: int
    title: str
    link: str
    image_url: str
    alt: str
    year: int
    month: int
    day: int
    safe_title: str = ""
    transcript: str = ""
    news: str = ""

    @property
    def published(self) -> datetime:
        """Midnight UTC of the publication day."""
        return datetime(self.year, self.month, self.day, tzinfo=UTC)


@dataclass
class Checkpoint:
    """Last successfully notified item for every source."""

    xkcd: int = 0
    qc: str = ""
    smbc: str = ""

    def to_dict(self) -> dict:
        return {"xkcd": self.xkcd, "qc": self.qc, "smbc": self.smbc}

    @classmethod
    def from_dict(cls, data: dict) -> "Checkpoint":
        """Build a checkpoint from its stored form.

        Raises:
            ValueError: If a field is missing or has the wrong type
        """
        try:
            xkcd = data["xkcd"]
            qc = data["qc"]
            smbc = data["smbc"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Checkpoint record is missing {e}") from e
        # DynamoDB hands numbers back as Decimal
        if isinstance(xkcd, Decimal) and xkcd == xkcd.to_integral_value():
            xkcd = int(xkcd)
        if isinstance(xkcd, bool) or not isinstance(xkcd, int):
            raise ValueError(f"Checkpoint field xkcd must be an integer: {xkcd!r}")
        if not isinstance(qc, str) or not isinstance(smbc, str):
            raise ValueError("Checkpoint fields qc and smbc must be strings")
        return cls(xkcd=xkcd, qc=qc, smbc=smbc)


@dataclass
class NoUpdate:
    """Nothing new since the last checkpoint."""


@dataclass
class Updated:
    """The single next item to notify.

    ``cursor`` is the checkpoint value to commit once the notification has
    been delivered.
    """

    item: FeedItem | ArchiveEntry
    cursor: int | str
    possibly_skipped: bool = False


UpdateResult = NoUpdate | Updated


@dataclass
class SourceOutcome:
    """Per-source result of one run."""

    source: str
    notified: str | None = None
    possibly_skipped: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def render(self) -> str:
        """Render as the short text shown in the run report."""
        if self.error is not None:
            return f"Err({quote(self.error)})"
        if self.notified is None:
            return "Ok(None)"
        return f"Ok(Some({quote(self.notified)}))"
