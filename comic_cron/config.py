"""Configuration management for Comic Cron."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class WebhookConfig:
    """Webhook URLs per source, plus the debug channel for run reports."""

    xkcd: list[str] = field(default_factory=list)
    qc: list[str] = field(default_factory=list)
    smbc: list[str] = field(default_factory=list)
    debug: list[str] = field(default_factory=list)

    def for_source(self, source: str) -> list[str]:
        return getattr(self, source)


class Config:
    """Main configuration manager."""

    STATE_FILE = "comic_cron.json"
    WEBHOOKS_FILE = "webhooks.json"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.state_file = os.getenv("COMIC_CRON_STATE_FILE", self.STATE_FILE)
        self.webhooks_file = os.getenv("COMIC_CRON_WEBHOOKS_FILE", self.WEBHOOKS_FILE)
        self.dynamodb_table = os.getenv("DYNAMODB_TABLE", "")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.http_timeout = int(os.getenv("HTTP_TIMEOUT", "30"))
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    def get_webhooks(self) -> WebhookConfig:
        """Get webhook URLs from the webhooks file.

        Raises:
            FileNotFoundError: If the webhooks file does not exist
            ValueError: If the file is not valid JSON or has the wrong shape
        """
        # Try to find the file in current directory or Lambda root
        webhooks_file = Path(self.webhooks_file)
        if not webhooks_file.exists():
            webhooks_file = Path("/var/task") / self.webhooks_file

        if not webhooks_file.exists():
            raise FileNotFoundError(f"Webhooks file not found: {self.webhooks_file}")

        try:
            with open(webhooks_file, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in webhooks file: {e}")

        if not isinstance(data, dict):
            raise ValueError("Webhooks file must contain a JSON object")

        webhooks = {}
        for source in ("xkcd", "qc", "smbc", "debug"):
            urls = data.get(source, [])
            if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
                raise ValueError(f"Webhooks for {source} must be a list of URLs")
            webhooks[source] = urls
        return WebhookConfig(**webhooks)
