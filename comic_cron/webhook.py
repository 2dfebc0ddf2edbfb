"""Webhook publisher for Comic Cron notifications and run reports."""

import json
import time
import urllib.error
import urllib.request
from typing import Any

from .errors import NotificationError
from .logging_config import create_execution_logger
from .models import ArchiveEntry, FeedItem, SourceOutcome

AVATAR_URL = "https://cdn.discordapp.com/attachments/751998036841857099/804504521215705118/zoey_pink_twitter.jpg"
XKCD_FOOTER_ICON = "https://cdn.discordapp.com/attachments/751998036841857099/804483113001812028/919f27-2.png"
SKIPPED_NOTICE = "Some items may have been skipped"
REPORT_LABELS = {"xkcd": "xkcd", "qc": "QC", "smbc": "SMBC"}


def _embed(
    title: str,
    url: str | None = None,
    timestamp: str = "",
    footer: dict[str, str] | None = None,
    image_url: str | None = None,
    fields: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "title": title,
        "type": "rich",
        "description": "",
        "timestamp": timestamp,
        "fields": fields or [],
        "footer": footer,
        "image": {"url": image_url} if image_url is not None else None,
    }
    if url is not None:
        embed["url"] = url
    return embed


def format_archive_entry(entry: ArchiveEntry) -> dict[str, Any]:
    """Build the webhook payload for an archive entry."""
    return {
        "content": "",
        "username": "ComicCron xkcd",
        "avatar_url": AVATAR_URL,
        "embeds": [
            _embed(
                title=f"#{entry.num}: {entry.title}",
                url=entry.link,
                timestamp=entry.published.isoformat(),
                footer={"text": entry.alt, "icon_url": XKCD_FOOTER_ICON},
                image_url=entry.image_url,
            )
        ],
    }


def format_feed_item(
    item: FeedItem,
    display_name: str,
    footer_icon: str,
    possibly_skipped: bool = False,
) -> dict[str, Any]:
    """Build the webhook payload for a feed item.

    Raises:
        ParseError: If the item's publication date cannot be parsed
    """
    return {
        "content": SKIPPED_NOTICE if possibly_skipped else "",
        "username": f"ComicCron {display_name}",
        "avatar_url": AVATAR_URL,
        "embeds": [
            _embed(
                title=item.title,
                url=item.link,
                timestamp=item.published.isoformat(),
                footer={"text": item.alt_text, "icon_url": footer_icon},
                image_url=item.image_url,
            )
        ],
    }


def format_report(outcomes: list[SourceOutcome], save: str) -> dict[str, Any]:
    """Build the debug payload summarizing one run."""
    fields = [
        {
            "name": REPORT_LABELS.get(outcome.source, outcome.source),
            "value": f"`{outcome.render()}`",
            "inline": False,
        }
        for outcome in outcomes
    ]
    fields.append({"name": "Save", "value": f"`{save}`", "inline": False})
    return {
        "content": "",
        "username": "ComicCron Debug",
        "avatar_url": AVATAR_URL,
        "embeds": [_embed(title="", fields=fields)],
    }


class WebhookPublisher:
    """Delivers payloads to webhook URLs."""

    def __init__(
        self,
        retry_attempts: int = 3,
        backoff_factor: float = 2.0,
        timeout: int = 30,
        execution_id: str | None = None,
    ):
        """Initialize the publisher.

        Args:
            retry_attempts: Attempts per URL when rate limited
            backoff_factor: Base of the exponential backoff in seconds
            timeout: HTTP request timeout in seconds
            execution_id: Execution ID for logging context
        """
        self.retry_attempts = retry_attempts
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self.logger = create_execution_logger("webhook_publisher", execution_id)

    def send(self, payload: dict[str, Any], webhooks: list[str]) -> None:
        """Send ``payload`` to every URL in ``webhooks``.

        Stops at the first URL that fails.

        Raises:
            NotificationError: If a delivery fails
        """
        if not webhooks:
            self.logger.warning(
                "No webhooks configured, nothing sent", username=payload.get("username")
            )
            return

        for url in webhooks:
            if not self._post(url, payload):
                raise NotificationError("error sending webhook")

        self.logger.info(
            "Webhook delivered",
            username=payload.get("username"),
            webhook_count=len(webhooks),
        )

    def handle_rate_limit(self, retry_count: int) -> None:
        """Wait with exponential backoff before retrying a rate-limited post."""
        backoff_time = self.backoff_factor**retry_count
        self.logger.warning(
            f"Rate limited, waiting {backoff_time}s before retry {retry_count + 1}",
            retry_count=retry_count,
            backoff_time=backoff_time,
        )
        time.sleep(backoff_time)

    def _post(self, url: str, payload: dict[str, Any]) -> bool:
        """POST a JSON payload, retrying only on HTTP 429.

        Returns:
            True if delivered, False otherwise
        """
        json_data = json.dumps(payload).encode("utf-8")

        for attempt in range(self.retry_attempts):
            try:
                req = urllib.request.Request(
                    url,
                    data=json_data,
                    headers={
                        "Content-Type": "application/json",
                        "User-Agent": "ComicCron/1.0",
                    },
                )
                with urllib.request.urlopen(req, timeout=self.timeout) as response:
                    if 200 <= response.status < 300:
                        return True
                    self.logger.error(
                        f"Webhook returned status {response.status}",
                        status_code=response.status,
                    )
                    return False

            except urllib.error.HTTPError as e:
                if e.code == 429 and attempt < self.retry_attempts - 1:
                    self.handle_rate_limit(attempt)
                    continue
                self.logger.error(
                    f"HTTP error sending webhook: {e.code} - {e.reason}",
                    http_code=e.code,
                    http_reason=str(e.reason),
                )
                return False

            except urllib.error.URLError as e:
                self.logger.error(
                    f"URL error sending webhook: {e.reason}", error=str(e.reason)
                )
                return False

            except OSError as e:
                self.logger.error(f"Error sending webhook: {e}", error=str(e))
                return False

            except ValueError as e:
                # Malformed URL in the webhooks file
                self.logger.error(f"Invalid webhook URL {url!r}: {e}", error=str(e))
                return False

        return False
