"""Main Lambda handler for Comic Cron."""

import json
import os
from datetime import UTC, datetime
from typing import Any

import boto3

from .config import Config
from .logging_config import create_execution_logger, setup_structured_logging
from .runner import SAVE_OK, RunReport, run_once

# Setup structured logging
setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))

METRICS_NAMESPACE = "ComicCron"


def collect_metrics(report: RunReport) -> dict[str, Any]:
    """Summarize a run report as execution metrics."""
    errors = [f"{o.source}: {o.error}" for o in report.outcomes if o.error is not None]
    if report.save != SAVE_OK:
        errors.append(f"save: {report.save}")
    return {
        "sources_checked": len(report.outcomes),
        "items_notified": sum(1 for o in report.outcomes if o.notified is not None),
        "possibly_skipped": sum(1 for o in report.outcomes if o.possibly_skipped),
        "outcomes": {o.source: o.render() for o in report.outcomes},
        "save": report.save,
        "errors": errors,
    }


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler that runs every comic source once.

    Args:
        event: Lambda event data
        context: Lambda context object

    Returns:
        Response dictionary with status, per-source outcomes and metrics
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)

    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        lambda_function_name=getattr(context, "function_name", "unknown"),
    )

    metrics: dict[str, Any] = {
        "sources_checked": 0,
        "items_notified": 0,
        "possibly_skipped": 0,
        "errors": [],
    }

    try:
        config = Config()
        main_logger.info("Configuration initialized")

        report = run_once(config, execution_id=execution_id)
        metrics = collect_metrics(report)

        main_logger.log_metrics(metrics)
        send_cloudwatch_metrics(metrics, config.aws_region, execution_id)
        main_logger.log_execution_end(success=report.success, metrics=metrics)

        return {
            "statusCode": 200,
            "body": json.dumps(
                {
                    "message": "Comic Cron execution completed",
                    "execution_id": execution_id,
                    "checkpoint": report.checkpoint.to_dict(),
                    "metrics": metrics,
                }
            ),
        }

    except Exception as e:
        error_msg = f"Critical error in Lambda handler: {str(e)}"
        main_logger.exception(error_msg, error=str(e))
        metrics["errors"].append(error_msg)

        send_cloudwatch_metrics(
            metrics,
            config.aws_region if "config" in locals() else "us-east-1",
            execution_id,
        )

        main_logger.log_execution_end(success=False, metrics=metrics, error=error_msg)

        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "message": "Comic Cron execution failed",
                    "execution_id": execution_id,
                    "error": error_msg,
                    "metrics": metrics,
                }
            ),
        }


def send_cloudwatch_metrics(
    metrics: dict[str, Any], aws_region: str, execution_id: str
) -> None:
    """
    Send custom metrics to CloudWatch.

    Args:
        metrics: Dictionary containing execution metrics
        aws_region: AWS region for CloudWatch client
        execution_id: Execution ID for logging context
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)

    try:
        metrics_logger.info("Sending metrics to CloudWatch", metrics=metrics)
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)

        total_errors = len(metrics["errors"])
        execution_success = total_errors == 0
        dimensions = [{"Name": "ExecutionId", "Value": execution_id}]

        metric_data = [
            {
                "MetricName": "SourcesChecked",
                "Value": metrics["sources_checked"],
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "ItemsNotified",
                "Value": metrics["items_notified"],
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "PossiblySkipped",
                "Value": metrics["possibly_skipped"],
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "Errors",
                "Value": total_errors,
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "ExecutionSuccess",
                "Value": 1 if execution_success else 0,
                "Unit": "Count",
                "Dimensions": [
                    {
                        "Name": "Status",
                        "Value": "Success" if execution_success else "Failure",
                    }
                ],
            },
        ]

        cloudwatch.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=metric_data)

        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=METRICS_NAMESPACE,
            execution_success=execution_success,
        )

    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
        # Don't raise - metrics failure shouldn't break the main flow
