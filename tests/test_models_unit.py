"""Unit tests for data models."""

from decimal import Decimal

import pytest

from comic_cron.errors import ParseError
from comic_cron.models import ArchiveEntry, Checkpoint, FeedItem, SourceOutcome


class TestCheckpoint:
    """Unit tests for Checkpoint."""

    def test_dynamodb_numbers_are_accepted(self):
        checkpoint = Checkpoint.from_dict(
            {"xkcd": Decimal("2901"), "qc": "q", "smbc": "s", "checkpoint_id": "x"}
        )

        assert checkpoint == Checkpoint(xkcd=2901, qc="q", smbc="s")
        assert isinstance(checkpoint.xkcd, int)

    @pytest.mark.parametrize(
        "data",
        [
            {"xkcd": Decimal("1.5"), "qc": "", "smbc": ""},
            {"xkcd": False, "qc": "", "smbc": ""},
            {"xkcd": 1, "qc": None, "smbc": ""},
            {"qc": "", "smbc": ""},
            None,
        ],
    )
    def test_invalid_records(self, data):
        with pytest.raises(ValueError):
            Checkpoint.from_dict(data)

    def test_to_dict(self):
        assert Checkpoint(xkcd=3, qc="a").to_dict() == {"xkcd": 3, "qc": "a", "smbc": ""}


class TestSourceOutcome:
    """Unit tests for SourceOutcome."""

    def test_render(self):
        assert SourceOutcome(source="qc").render() == "Ok(None)"
        assert SourceOutcome(source="qc", notified="Strip").render() == (
            'Ok(Some("Strip"))'
        )
        assert SourceOutcome(source="qc", error="no rss items").render() == (
            'Err("no rss items")'
        )

    def test_render_escapes_quotes(self):
        assert SourceOutcome(source="qc", error='bad "quote"').render() == (
            'Err("bad \\"quote\\"")'
        )
        assert SourceOutcome(source="smbc", notified='Say "Hi"').render() == (
            'Ok(Some("Say \\"Hi\\""))'
        )
        assert SourceOutcome(source="qc", error="C:\\tmp").render() == (
            'Err("C:\\\\tmp")'
        )

    def test_success(self):
        assert SourceOutcome(source="xkcd", notified="1").success
        assert not SourceOutcome(source="xkcd", error="boom").success


class TestPublicationDates:
    """Unit tests for publication timestamps."""

    def test_feed_item_keeps_offset(self):
        item = FeedItem(
            title="t",
            link="l",
            image_url="i",
            alt_text="",
            published_at="Wed, 15 May 2024 12:00:00 +0000",
            guid="g",
        )

        assert item.published.isoformat() == "2024-05-15T12:00:00+00:00"

    def test_feed_item_invalid_date(self):
        item = FeedItem("t", "l", "i", "", "yesterday-ish", "g")

        with pytest.raises(ParseError):
            item.published

    def test_archive_entry_is_midnight_utc(self):
        entry = ArchiveEntry(1, "t", "l", "i", "a", 2006, 1, 1)

        assert entry.published.isoformat() == "2006-01-01T00:00:00+00:00"
