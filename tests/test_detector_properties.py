"""Property-based tests for update detection."""

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from comic_cron.detector import (
    GuidFeedDetector,
    SequentialDetector,
    next_archive_number,
    select_next_item,
)
from comic_cron.errors import DetectionError
from comic_cron.models import ArchiveEntry, FeedItem, NoUpdate, Updated


def _entry(num):
    return ArchiveEntry(
        num=num,
        title=f"Comic {num}",
        link=f"https://xkcd.com/{num}/",
        image_url=f"https://imgs.xkcd.com/comics/{num}.png",
        alt=f"alt {num}",
        year=2024,
        month=1,
        day=1,
    )


def _feed_item(guid):
    return FeedItem(
        title=f"Title {guid}",
        link=f"https://comics.example/{guid}",
        image_url=f"https://comics.example/{guid}.png",
        alt_text="",
        published_at="Mon, 13 May 2024 02:00:00 -0400",
        guid=guid,
    )


class FakeArchive:
    def __init__(self, latest):
        self.latest_num = latest
        self.requested = []

    def latest(self):
        return _entry(self.latest_num)

    def entry(self, num):
        self.requested.append(num)
        return _entry(num)


class FakeFeed:
    def __init__(self, guids):
        self.window = [_feed_item(guid) for guid in guids]

    def items(self):
        return list(self.window)


guid_windows = st.lists(
    st.text(
        alphabet=st.characters(whitelist_categories=("Ll", "Nd")),
        min_size=1,
        max_size=8,
    ),
    min_size=1,
    max_size=10,
    unique=True,
)


class TestSequentialDetectorProperties:
    """Property-based tests for the sequential archive detector."""

    @given(
        st.integers(min_value=0, max_value=5000),
        st.integers(min_value=0, max_value=30),
    )
    def test_catch_up_property(self, cursor, behind):
        """
        Property: One entry per run

        For a cursor L - c entries behind, exactly L - c runs notify c+1..L
        in order and the next run reports nothing new.
        """
        latest = cursor + behind
        archive = FakeArchive(latest)
        detector = SequentialDetector(archive, cursor=cursor)

        notified = []
        for _ in range(behind):
            result = detector.detect()
            assert isinstance(result, Updated)
            assert result.possibly_skipped is False
            notified.append(result.item.num)
            detector.commit(result)

        assert notified == list(range(cursor + 1, latest + 1))
        assert detector.cursor == latest
        assert isinstance(detector.detect(), NoUpdate)

    @given(st.integers(min_value=0, max_value=5000))
    def test_latest_is_reused_property(self, cursor):
        """
        Property: No extra request at the head

        When the next entry is the latest one it is not fetched again.
        """
        archive = FakeArchive(cursor + 1)

        result = SequentialDetector(archive, cursor=cursor).detect()

        assert result.item.num == cursor + 1
        assert archive.requested == []

    @given(
        st.integers(min_value=1, max_value=5000),
        st.integers(min_value=1, max_value=100),
    )
    def test_cursor_ahead_property(self, latest, ahead):
        """
        Property: Cursor ahead of the archive

        A cursor beyond the latest entry never yields an update.
        """
        archive = FakeArchive(latest)
        detector = SequentialDetector(archive, cursor=latest + ahead)

        assert isinstance(detector.detect(), NoUpdate)
        assert archive.requested == []
        assert detector.cursor == latest + ahead

    @given(st.integers(min_value=0), st.integers(min_value=0))
    def test_next_archive_number_property(self, cursor, latest):
        expected = cursor + 1 if cursor < latest else None

        assert next_archive_number(cursor, latest) == expected


class TestGuidFeedDetectorProperties:
    """Property-based tests for the guid-ordered feed detector."""

    @given(guid_windows)
    def test_head_is_no_update_property(self, guids):
        """
        Property: Up to date

        A cursor equal to the newest guid yields no update.
        """
        items = FakeFeed(guids).items()

        assert isinstance(select_next_item(items, guids[0]), NoUpdate)

    @given(guid_windows, st.data())
    def test_next_newer_item_property(self, guids, data):
        """
        Property: Next newer item

        A cursor found at position i >= 1 selects the item at i - 1.
        """
        assume(len(guids) >= 2)
        i = data.draw(st.integers(min_value=1, max_value=len(guids) - 1))
        items = FakeFeed(guids).items()

        result = select_next_item(items, guids[i])

        assert isinstance(result, Updated)
        assert result.item is items[i - 1]
        assert result.cursor == guids[i - 1]
        assert result.possibly_skipped is False

    @given(guid_windows, st.data())
    def test_walks_to_head_property(self, guids, data):
        """
        Property: Catch-up within the window

        Starting from any guid in the window, committed runs notify every
        newer item oldest first and then report nothing new.
        """
        start = data.draw(st.integers(min_value=0, max_value=len(guids) - 1))
        detector = GuidFeedDetector(FakeFeed(guids), cursor=guids[start], name="qc")

        notified = []
        for _ in range(start):
            result = detector.detect()
            assert isinstance(result, Updated)
            notified.append(result.item.guid)
            detector.commit(result)

        assert notified == list(reversed(guids[:start]))
        assert isinstance(detector.detect(), NoUpdate)

    @given(guid_windows, st.data())
    def test_detection_is_deterministic_property(self, guids, data):
        """
        Property: No progress without commit

        Detecting twice without committing returns the same result.
        """
        cursor = data.draw(st.sampled_from(guids + ["", "gone"]))
        detector = GuidFeedDetector(FakeFeed(guids), cursor=cursor, name="smbc")

        assert detector.detect() == detector.detect()
        assert detector.cursor == cursor

    @given(guid_windows, st.sampled_from(["", None, "not-in-window!"]))
    def test_gap_recovery_property(self, guids, cursor):
        """
        Property: Gap recovery

        An unset cursor or one that fell out of the window selects the oldest
        item, flagged as possibly skipped.
        """
        items = FakeFeed(guids).items()

        result = select_next_item(items, cursor)

        assert isinstance(result, Updated)
        assert result.item is items[-1]
        assert result.possibly_skipped is True

    @given(st.one_of(st.none(), st.text(max_size=10)))
    def test_empty_window_property(self, cursor):
        """
        Property: Empty feed

        An empty window is a detection error whatever the cursor.
        """
        with pytest.raises(DetectionError) as exc_info:
            select_next_item([], cursor)

        assert exc_info.value.reason == "no rss items"
