"""Checkpoint persistence for Comic Cron.

The checkpoint is always loaded and saved as a whole record: one load at the
start of a run, one save at the end.
"""

import json
from datetime import datetime
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import PersistenceError
from .logging_config import create_execution_logger
from .models import Checkpoint


class FileCheckpointStore:
    """JSON file holding the checkpoint record."""

    def __init__(self, path: str | Path, execution_id: str | None = None):
        self.path = Path(path)
        self.logger = create_execution_logger("checkpoint", execution_id)

    def load(self) -> Checkpoint:
        """Read the checkpoint file.

        A missing file is an error rather than an empty checkpoint: starting
        the archive cursor at zero would replay every entry, one per run.

        Raises:
            PersistenceError: If the file is missing or malformed
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            checkpoint = Checkpoint.from_dict(data)
        except OSError as e:
            raise PersistenceError(f"Cannot read checkpoint {self.path}: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"Malformed checkpoint {self.path}: {e}") from e

        self.logger.info(
            "Checkpoint loaded", path=str(self.path), checkpoint=checkpoint.to_dict()
        )
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        """Replace the checkpoint file with ``checkpoint``.

        Other keys already present in the file are preserved.

        Raises:
            PersistenceError: If the file cannot be written
        """
        data = {}
        if self.path.exists():
            try:
                existing = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(existing, dict):
                    data = existing
            except (OSError, ValueError) as e:
                self.logger.warning(
                    f"Overwriting unreadable checkpoint file: {e}", path=str(self.path)
                )
        data.update(checkpoint.to_dict())

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write checkpoint {self.path}: {e}") from e

        self.logger.info(
            "Checkpoint saved", path=str(self.path), checkpoint=checkpoint.to_dict()
        )


class DynamoCheckpointStore:
    """Checkpoint record stored as a single DynamoDB item."""

    def __init__(
        self,
        table_name: str,
        aws_region: str = "us-east-1",
        key: str = "comic-cron",
        execution_id: str | None = None,
    ):
        """Initialize the store with DynamoDB configuration.

        Args:
            table_name: Name of the DynamoDB table (partition key ``checkpoint_id``)
            aws_region: AWS region for DynamoDB client
            key: Partition key value of the checkpoint item
            execution_id: Execution ID for logging context
        """
        self.table_name = table_name
        self.aws_region = aws_region
        self.key = key
        self.logger = create_execution_logger("checkpoint", execution_id)
        self.dynamodb = boto3.resource("dynamodb", region_name=aws_region)
        self.table = self.dynamodb.Table(table_name)

        self.logger.info(
            "DynamoCheckpointStore initialized",
            table_name=table_name,
            aws_region=aws_region,
        )

    def load(self) -> Checkpoint:
        """Read the checkpoint item.

        Raises:
            PersistenceError: If the item is missing, malformed or unreadable
        """
        try:
            response = self.table.get_item(Key={"checkpoint_id": self.key})
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Error loading checkpoint: {e}", error=str(e))
            raise PersistenceError(f"Cannot load checkpoint {self.key}: {e}") from e

        if "Item" not in response:
            raise PersistenceError(
                f"Checkpoint {self.key} not found in table {self.table_name}"
            )
        try:
            checkpoint = Checkpoint.from_dict(response["Item"])
        except ValueError as e:
            raise PersistenceError(f"Malformed checkpoint {self.key}: {e}") from e

        self.logger.info("Checkpoint loaded", checkpoint=checkpoint.to_dict())
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        """Replace the checkpoint item.

        Raises:
            PersistenceError: If the item cannot be written
        """
        try:
            self.table.put_item(
                Item={
                    "checkpoint_id": self.key,
                    **checkpoint.to_dict(),
                    "updated_at": datetime.now().isoformat(),
                }
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Error saving checkpoint: {e}", error=str(e))
            raise PersistenceError(f"Cannot save checkpoint {self.key}: {e}") from e

        self.logger.info("Checkpoint saved", checkpoint=checkpoint.to_dict())
