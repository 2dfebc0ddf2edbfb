"""Update detection: decide which single item, if any, is next to notify.

Two kinds of source are supported. A sequential archive numbers its entries
1, 2, 3, ... without gaps, so a run always notifies the entry right after the
checkpoint and catches up one entry per run. A guid-ordered feed only exposes
its current window of items, newest first; when the checkpoint has fallen out
of that window the oldest visible item is notified and flagged as possibly
having skipped others.

Detectors never move their cursor on their own. The caller notifies the
returned item and only then calls :meth:`UpdateDetector.commit`.
"""

from collections.abc import Sequence
from typing import Protocol

from .errors import DetectionError
from .logging_config import create_execution_logger
from .models import ArchiveEntry, FeedItem, NoUpdate, Updated, UpdateResult


class Archive(Protocol):
    def latest(self) -> ArchiveEntry: ...

    def entry(self, num: int) -> ArchiveEntry: ...


class Feed(Protocol):
    def items(self) -> list[FeedItem]: ...


class UpdateDetector:
    """Base class for per-source update detection."""

    name: str = "base"
    cursor: int | str

    def detect(self) -> UpdateResult:
        raise NotImplementedError

    def commit(self, result: UpdateResult) -> None:
        """Advance the cursor past a notified item."""
        if isinstance(result, Updated):
            self.cursor = result.cursor


def next_archive_number(cursor: int, latest: int) -> int | None:
    """Number of the next entry to notify, or None when nothing is new."""
    if cursor + 1 > latest:
        return None
    return cursor + 1


class SequentialDetector(UpdateDetector):
    """Detector for a gap-free numeric archive."""

    def __init__(
        self,
        archive: Archive,
        cursor: int,
        name: str = "xkcd",
        execution_id: str | None = None,
    ):
        self.archive = archive
        self.cursor = cursor
        self.name = name
        self.logger = create_execution_logger("detector", execution_id)

    def detect(self) -> UpdateResult:
        """Fetch the latest entry and pick the one after the cursor.

        Raises:
            FetchError: If an archive request fails
            ParseError: If an archive payload is malformed
        """
        latest = self.archive.latest()
        target = next_archive_number(self.cursor, latest.num)
        if target is None:
            if self.cursor > latest.num:
                self.logger.warning(
                    f"Checkpoint {self.cursor} is ahead of latest entry {latest.num}",
                    source=self.name,
                    cursor=self.cursor,
                    latest=latest.num,
                )
            return NoUpdate()

        if target == latest.num:
            entry = latest
        else:
            self.logger.info(
                f"Catching up: {latest.num - self.cursor} entries behind",
                source=self.name,
                cursor=self.cursor,
                latest=latest.num,
            )
            entry = self.archive.entry(target)
        return Updated(item=entry, cursor=target, possibly_skipped=False)


def select_next_item(items: Sequence[FeedItem], cursor: str | None) -> UpdateResult:
    """Pick the next unseen item of a newest-first window.

    Args:
        items: Feed items, newest first
        cursor: Guid of the last notified item, empty or None if unset

    Returns:
        NoUpdate when the newest item is the cursor, the item just newer than
        the cursor when it is in the window, otherwise the oldest item of the
        window flagged as possibly skipped

    Raises:
        DetectionError: If the window is empty
    """
    if not items:
        raise DetectionError("no rss items")
    if cursor and items[0].guid == cursor:
        return NoUpdate()
    if cursor:
        for i in range(1, len(items)):
            if items[i].guid == cursor:
                newer = items[i - 1]
                return Updated(item=newer, cursor=newer.guid, possibly_skipped=False)
    oldest = items[-1]
    return Updated(item=oldest, cursor=oldest.guid, possibly_skipped=True)


class GuidFeedDetector(UpdateDetector):
    """Detector for a feed whose items are only comparable by guid."""

    def __init__(
        self,
        feed: Feed,
        cursor: str,
        name: str,
        execution_id: str | None = None,
    ):
        self.feed = feed
        self.cursor = cursor
        self.name = name
        self.logger = create_execution_logger("detector", execution_id)

    def detect(self) -> UpdateResult:
        """Fetch the feed window and select the next item.

        Raises:
            FetchError: If the feed cannot be downloaded
            ParseError: If the feed or a description is malformed
            ExtractionError: If an item lacks a required field
            DetectionError: If the feed has no items
        """
        items = self.feed.items()
        result = select_next_item(items, self.cursor)
        if isinstance(result, Updated) and result.possibly_skipped:
            self.logger.warning(
                "Checkpoint not found in feed window, resynchronizing to oldest item",
                source=self.name,
                cursor=self.cursor,
                window_size=len(items),
            )
        return result
