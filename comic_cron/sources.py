"""Source clients: HTTP fetching, the xkcd archive and RSS comic feeds."""

from collections.abc import Iterable
from dataclasses import dataclass

import requests

from .errors import ExtractionError, FetchError, ParseError
from .extract import DEFAULT_VOID_ELEMENTS, extract_description_image
from .logging_config import create_execution_logger
from .markup import Element, MarkupParser
from .models import ArchiveEntry, FeedItem

XKCD_LATEST_URL = "https://xkcd.com/info.0.json"
XKCD_ENTRY_URL = "https://xkcd.com/{num}/info.0.json"

REQUIRED_ITEM_FIELDS = ("title", "link", "description", "pubDate", "guid")


@dataclass(frozen=True)
class FeedSource:
    """Static description of one guid-ordered RSS source."""

    name: str
    display_name: str
    url: str
    footer_icon: str
    void_elements: tuple[str, ...] = DEFAULT_VOID_ELEMENTS


QC = FeedSource(
    name="qc",
    display_name="QC",
    url="https://www.questionablecontent.net/QCRSS.xml",
    footer_icon="https://www.questionablecontent.net/favicon/favicon-16x16.png",
)

SMBC = FeedSource(
    name="smbc",
    display_name="SMBC",
    url="https://www.smbc-comics.com/comic/rss",
    footer_icon="https://www.smbc-comics.com/favicon.ico",
)

FEED_SOURCES = (QC, SMBC)


class HttpFetcher:
    """Fetches URLs over HTTP and reports failures as FetchError."""

    def __init__(
        self,
        timeout: int = 30,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        """Initialize HttpFetcher.

        Args:
            timeout: HTTP request timeout in seconds
            session: Optional session to reuse
            execution_id: Execution ID for logging context
        """
        self.timeout = timeout
        self.logger = create_execution_logger("fetcher", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "ComicCron/1.0"})

    def _get(self, url: str) -> requests.Response:
        try:
            self.logger.debug("Downloading", url=url)
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"Failed to download {url}: {e}", url=url, error=str(e))
            raise FetchError(f"Failed to download {url}: {e}") from e

        self.logger.debug(
            "Downloaded",
            url=url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response

    def fetch_text(self, url: str) -> str:
        """Download a URL and return its body as text.

        Raises:
            FetchError: If the request fails or returns an error status
        """
        return self._get(url).text

    def fetch_json(self, url: str):
        """Download a URL and decode its body as JSON.

        Raises:
            FetchError: If the request fails
            ParseError: If the body is not valid JSON
        """
        response = self._get(url)
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}") from e


def archive_entry_from_json(payload: dict) -> ArchiveEntry:
    """Build an ArchiveEntry from an xkcd ``info.0.json`` payload.

    The date fields arrive as strings and are converted to integers.

    Raises:
        ParseError: If a field is missing or malformed
    """
    try:
        num = payload["num"]
        if isinstance(num, bool) or not isinstance(num, int):
            raise ValueError(f"num must be an integer, got {num!r}")
        link = payload.get("link") or f"https://xkcd.com/{num}/"
        return ArchiveEntry(
            num=num,
            title=str(payload["title"]),
            link=link,
            image_url=str(payload["img"]),
            alt=str(payload["alt"]),
            year=int(payload["year"]),
            month=int(payload["month"]),
            day=int(payload["day"]),
            safe_title=str(payload.get("safe_title", "")),
            transcript=str(payload.get("transcript", "")),
            news=str(payload.get("news", "")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Malformed archive entry: {e}") from e


class XkcdArchive:
    """The sequential numeric xkcd archive."""

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher

    def latest(self) -> ArchiveEntry:
        return archive_entry_from_json(self.fetcher.fetch_json(XKCD_LATEST_URL))

    def entry(self, num: int) -> ArchiveEntry:
        return archive_entry_from_json(
            self.fetcher.fetch_json(XKCD_ENTRY_URL.format(num=num))
        )


def build_feed_item(
    element: Element, void_elements: Iterable[str] = DEFAULT_VOID_ELEMENTS
) -> FeedItem:
    """Build a FeedItem from one RSS ``<item>`` element.

    Each of ``title``, ``link``, ``description``, ``pubDate`` and ``guid``
    must appear exactly once with a single text child.

    Raises:
        ExtractionError: If a required field is missing or not plain text
        ParseError: If the description markup is malformed
    """
    fields = {}
    for name in REQUIRED_ITEM_FIELDS:
        value = element.child_text(name)
        if value is None:
            raise ExtractionError(f"Item field <{name}> is missing or not text")
        fields[name] = value

    image_url, alt_text = extract_description_image(
        fields["description"], void_elements
    )
    return FeedItem(
        title=fields["title"],
        link=fields["link"],
        image_url=image_url,
        alt_text=alt_text,
        published_at=fields["pubDate"],
        guid=fields["guid"],
    )


class RssFeed:
    """A guid-ordered RSS feed listing items newest first."""

    def __init__(
        self,
        source: FeedSource,
        fetcher: HttpFetcher,
        execution_id: str | None = None,
    ):
        self.source = source
        self.fetcher = fetcher
        self.logger = create_execution_logger("feed", execution_id)

    def parse(self, text: str) -> list[FeedItem]:
        """Parse a feed body into items, preserving feed order.

        Any item that cannot be built fails the whole feed, so the window
        handed to the detector never has holes.

        Raises:
            ParseError: If the document or a description is malformed
            ExtractionError: If an item lacks a required field
        """
        document = MarkupParser().parse_document(text)
        items = []
        for index, element in enumerate(document.root.find_all("item")):
            try:
                items.append(build_feed_item(element, self.source.void_elements))
            except (ParseError, ExtractionError) as e:
                self.logger.error(
                    f"Failed to build item {index} of {self.source.name}: {e}",
                    source=self.source.name,
                    item_index=index,
                    error=str(e),
                )
                raise

        self.logger.log_feed_processing(self.source.url, len(items))
        return items

    def items(self) -> list[FeedItem]:
        """Fetch and parse the feed.

        Raises:
            FetchError: If the feed cannot be downloaded
            ParseError: If the document or a description is malformed
            ExtractionError: If an item lacks a required field
        """
        return self.parse(self.fetcher.fetch_text(self.source.url))
