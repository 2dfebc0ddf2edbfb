"""Run orchestration: detect, notify and checkpoint every source once."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .checkpoint import DynamoCheckpointStore, FileCheckpointStore
from .config import Config, WebhookConfig
from .detector import GuidFeedDetector, SequentialDetector, UpdateDetector
from .errors import ComicCronError
from .logging_config import create_execution_logger
from .models import (
    ArchiveEntry,
    Checkpoint,
    NoUpdate,
    SourceOutcome,
    Updated,
    quote,
)
from .sources import FEED_SOURCES, FeedSource, HttpFetcher, RssFeed, XkcdArchive
from .webhook import (
    WebhookPublisher,
    format_archive_entry,
    format_feed_item,
    format_report,
)

SAVE_OK = "Ok(())"


@dataclass
class RunReport:
    """Outcome of one run across all sources."""

    outcomes: list[SourceOutcome]
    save: str
    checkpoint: Checkpoint

    @property
    def success(self) -> bool:
        return self.save == SAVE_OK and all(o.success for o in self.outcomes)


class Runner:
    """Processes every source once against a single checkpoint record."""

    def __init__(
        self,
        store,
        fetcher: HttpFetcher,
        publisher: WebhookPublisher,
        webhooks: WebhookConfig,
        feed_sources: tuple[FeedSource, ...] = FEED_SOURCES,
        execution_id: str | None = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.publisher = publisher
        self.webhooks = webhooks
        self.feed_sources = feed_sources
        self.execution_id = execution_id
        self.logger = create_execution_logger("runner", execution_id)

    def run(self) -> RunReport:
        """Load the checkpoint, process each source, save once and report.

        Raises:
            PersistenceError: If the checkpoint cannot be loaded
        """
        self.logger.log_execution_start(source_count=1 + len(self.feed_sources))
        checkpoint = self.store.load()

        outcomes = [self.process_archive(checkpoint)]
        for source in self.feed_sources:
            outcomes.append(self.process_feed(checkpoint, source))

        save = self.save(checkpoint)
        self.report(outcomes, save)

        report = RunReport(outcomes=outcomes, save=save, checkpoint=checkpoint)
        self.logger.log_execution_end(
            success=report.success, checkpoint=checkpoint.to_dict()
        )
        return report

    def process_archive(self, checkpoint: Checkpoint) -> SourceOutcome:
        detector = SequentialDetector(
            XkcdArchive(self.fetcher),
            cursor=checkpoint.xkcd,
            execution_id=self.execution_id,
        )
        outcome = self._process(
            detector, lambda result: format_archive_entry(result.item)
        )
        checkpoint.xkcd = detector.cursor
        return outcome

    def process_feed(self, checkpoint: Checkpoint, source: FeedSource) -> SourceOutcome:
        detector = GuidFeedDetector(
            RssFeed(source, self.fetcher, execution_id=self.execution_id),
            cursor=getattr(checkpoint, source.name),
            name=source.name,
            execution_id=self.execution_id,
        )

        def payload(result: Updated) -> dict[str, Any]:
            return format_feed_item(
                result.item,
                source.display_name,
                source.footer_icon,
                result.possibly_skipped,
            )

        outcome = self._process(detector, payload)
        setattr(checkpoint, source.name, detector.cursor)
        return outcome

    def _process(
        self,
        detector: UpdateDetector,
        build_payload: Callable[[Updated], dict[str, Any]],
    ) -> SourceOutcome:
        """Detect, notify and commit for one source.

        Errors become the outcome of the source; the cursor only moves after
        the notification was delivered.
        """
        name = detector.name
        self.logger.info(
            f"Processing source: {name}", source=name, cursor=detector.cursor
        )
        try:
            result = detector.detect()
            if isinstance(result, NoUpdate):
                outcome = SourceOutcome(source=name)
            else:
                outcome = self._notify(detector, result, build_payload)
        except ComicCronError as e:
            outcome = SourceOutcome(source=name, error=str(e))
        except Exception as e:
            self.logger.exception(
                f"Unexpected error processing {name}: {e}", source=name, error=str(e)
            )
            outcome = SourceOutcome(source=name, error=f"{type(e).__name__}: {e}")

        self.logger.log_source_outcome(
            name, outcome.render(), success=outcome.success
        )
        return outcome

    def _notify(
        self,
        detector: UpdateDetector,
        result: Updated,
        build_payload: Callable[[Updated], dict[str, Any]],
    ) -> SourceOutcome:
        item = result.item
        label = str(item.num) if isinstance(item, ArchiveEntry) else item.title

        self.publisher.send(
            build_payload(result), self.webhooks.for_source(detector.name)
        )
        detector.commit(result)
        self.logger.info(
            f"Notified {detector.name}: {label}",
            source=detector.name,
            item_title=label,
            cursor=detector.cursor,
            possibly_skipped=result.possibly_skipped,
        )
        return SourceOutcome(
            source=detector.name,
            notified=label,
            possibly_skipped=result.possibly_skipped,
        )

    def save(self, checkpoint: Checkpoint) -> str:
        try:
            self.store.save(checkpoint)
        except ComicCronError as e:
            self.logger.error(f"Failed to save checkpoint: {e}", error=str(e))
            return f"Err({quote(str(e))})"
        return SAVE_OK

    def report(self, outcomes: list[SourceOutcome], save: str) -> None:
        """Send the run report to the debug webhooks, or log it if that fails."""
        try:
            self.publisher.send(format_report(outcomes, save), self.webhooks.debug)
        except ComicCronError as e:
            for outcome in outcomes:
                self.logger.error(
                    f"{outcome.source}: {outcome.render()}", source=outcome.source
                )
            self.logger.error(f"save: {save}")
            self.logger.error(f"Error sending debug webhook: {e}", error=str(e))


def create_checkpoint_store(config: Config, execution_id: str | None = None):
    """DynamoDB store when a table is configured, JSON file otherwise."""
    if config.dynamodb_table:
        return DynamoCheckpointStore(
            table_name=config.dynamodb_table,
            aws_region=config.aws_region,
            execution_id=execution_id,
        )
    return FileCheckpointStore(config.state_file, execution_id=execution_id)


def run_once(config: Config, execution_id: str | None = None) -> RunReport:
    """Build the collaborators from ``config`` and run every source once.

    Raises:
        PersistenceError: If the checkpoint cannot be loaded
        FileNotFoundError: If the webhooks file is missing
        ValueError: If the webhooks file is malformed
    """
    runner = Runner(
        store=create_checkpoint_store(config, execution_id),
        fetcher=HttpFetcher(timeout=config.http_timeout, execution_id=execution_id),
        publisher=WebhookPublisher(
            timeout=config.http_timeout, execution_id=execution_id
        ),
        webhooks=config.get_webhooks(),
        execution_id=execution_id,
    )
    return runner.run()
