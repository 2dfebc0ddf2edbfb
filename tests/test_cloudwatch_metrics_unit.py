"""Unit tests for CloudWatch metrics functionality."""

from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from comic_cron.lambda_handler import (
    METRICS_NAMESPACE,
    collect_metrics,
    send_cloudwatch_metrics,
)
from comic_cron.models import Checkpoint, SourceOutcome
from comic_cron.runner import RunReport


def _sent_metrics(mock_cloudwatch):
    all_metrics = []
    for call in mock_cloudwatch.put_metric_data.call_args_list:
        args, kwargs = call
        assert kwargs["Namespace"] == METRICS_NAMESPACE
        all_metrics.extend(kwargs["MetricData"])
    return all_metrics


def _metric(all_metrics, name):
    return next(m for m in all_metrics if m["MetricName"] == name)


class TestCloudWatchMetricsUnit:
    """Unit tests for CloudWatch metrics functionality."""

    def test_send_cloudwatch_metrics_success(self):
        """Test successful CloudWatch metrics publication."""
        metrics = {
            "sources_checked": 3,
            "items_notified": 2,
            "possibly_skipped": 1,
            "errors": [],
        }
        aws_region = "us-east-1"
        execution_id = "test-exec-123"

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(metrics, aws_region, execution_id)

            mock_boto_client.assert_called_with("cloudwatch", region_name=aws_region)
            assert mock_cloudwatch.put_metric_data.called

            all_metrics = _sent_metrics(mock_cloudwatch)
            metric_names = [metric["MetricName"] for metric in all_metrics]
            for expected_metric in [
                "SourcesChecked",
                "ItemsNotified",
                "PossiblySkipped",
                "Errors",
                "ExecutionSuccess",
            ]:
                assert (
                    expected_metric in metric_names
                ), f"Missing metric: {expected_metric}"

            assert _metric(all_metrics, "SourcesChecked")["Value"] == 3
            assert _metric(all_metrics, "SourcesChecked")["Unit"] == "Count"
            assert _metric(all_metrics, "ItemsNotified")["Value"] == 2
            assert _metric(all_metrics, "PossiblySkipped")["Value"] == 1
            assert _metric(all_metrics, "Errors")["Value"] == 0
            assert _metric(all_metrics, "ExecutionSuccess")["Value"] == 1

    def test_send_cloudwatch_metrics_with_errors(self):
        """Test CloudWatch metrics publication with errors present."""
        metrics = {
            "sources_checked": 3,
            "items_notified": 0,
            "possibly_skipped": 0,
            "errors": ["xkcd: boom", "qc: boom", "save: Err(\"disk\")"],
        }

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(metrics, "eu-west-1", "test-exec-456")

            all_metrics = _sent_metrics(mock_cloudwatch)
            assert _metric(all_metrics, "Errors")["Value"] == 3

            success_metric = _metric(all_metrics, "ExecutionSuccess")
            assert success_metric["Value"] == 0
            assert success_metric["Dimensions"] == [
                {"Name": "Status", "Value": "Failure"}
            ]

    def test_send_cloudwatch_metrics_client_error(self):
        """Test CloudWatch metrics publication handles client errors gracefully."""
        metrics = {
            "sources_checked": 1,
            "items_notified": 1,
            "possibly_skipped": 0,
            "errors": [],
        }

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_cloudwatch.put_metric_data.side_effect = ClientError(
                error_response={
                    "Error": {"Code": "AccessDenied", "Message": "Access denied"}
                },
                operation_name="PutMetricData",
            )
            mock_boto_client.return_value = mock_cloudwatch

            # Must not raise
            send_cloudwatch_metrics(metrics, "us-west-2", "test-exec-789")

            assert mock_cloudwatch.put_metric_data.called

    def test_send_cloudwatch_metrics_dimensions(self):
        """Test that CloudWatch metrics include proper dimensions."""
        metrics = {
            "sources_checked": 3,
            "items_notified": 1,
            "possibly_skipped": 0,
            "errors": [],
        }
        execution_id = "test-exec-dim-123"

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(metrics, "eu-central-1", execution_id)

            all_metrics = _sent_metrics(mock_cloudwatch)
            for metric_name in [
                "SourcesChecked",
                "ItemsNotified",
                "PossiblySkipped",
                "Errors",
            ]:
                dimensions = _metric(all_metrics, metric_name)["Dimensions"]
                assert dimensions == [{"Name": "ExecutionId", "Value": execution_id}]

            status = _metric(all_metrics, "ExecutionSuccess")["Dimensions"]
            assert status == [{"Name": "Status", "Value": "Success"}]


class TestCollectMetrics:
    """Summarizing a run report as metrics."""

    def test_collect_metrics_counts_outcomes(self):
        report = RunReport(
            outcomes=[
                SourceOutcome(source="xkcd", notified="101"),
                SourceOutcome(source="qc", notified="Strip", possibly_skipped=True),
                SourceOutcome(source="smbc", error="no rss items"),
            ],
            save="Ok(())",
            checkpoint=Checkpoint(xkcd=101, qc="g", smbc="s"),
        )

        metrics = collect_metrics(report)

        assert metrics["sources_checked"] == 3
        assert metrics["items_notified"] == 2
        assert metrics["possibly_skipped"] == 1
        assert metrics["errors"] == ["smbc: no rss items"]
        assert metrics["outcomes"] == {
            "xkcd": 'Ok(Some("101"))',
            "qc": 'Ok(Some("Strip"))',
            "smbc": 'Err("no rss items")',
        }
        assert metrics["save"] == "Ok(())"

    def test_collect_metrics_reports_save_failure(self):
        report = RunReport(
            outcomes=[SourceOutcome(source="xkcd")],
            save='Err("Cannot write checkpoint")',
            checkpoint=Checkpoint(),
        )

        metrics = collect_metrics(report)

        assert metrics["items_notified"] == 0
        assert metrics["errors"] == ['save: Err("Cannot write checkpoint")']
