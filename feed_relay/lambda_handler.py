"""Main Lambda handler for Feed Relay."""

import json
import os
import time
from datetime import UTC, datetime
from typing import Any

import boto3

from .config import Config
from .errors import FeedRelayError
from .logging_config import create_execution_logger, setup_structured_logging
from .pipeline import CACHE, MOCK, STALE_CACHE, FeedPipeline
from .routes import build_routes, normalize_path

# Setup structured logging
setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def request_parts(event: dict[str, Any]) -> tuple[str, str, dict[str, str]]:
    """Extract (path, method, query) from a REST or HTTP API v2 proxy event."""
    path = event.get("rawPath") or event.get("path") or ""
    method = event.get("httpMethod")
    if not method:
        method = event.get("requestContext", {}).get("http", {}).get("method", "GET")
    query = event.get("queryStringParameters") or {}
    return normalize_path(path), method.upper(), query


def json_response(status_code: int, payload: dict[str, Any], cors: bool = False) -> dict[str, Any]:
    headers = {"Content-Type": "application/json"}
    if cors:
        headers.update(CORS_HEADERS)
    return {"statusCode": status_code, "headers": headers, "body": json.dumps(payload)}


def error_response(error: FeedRelayError, cors: bool = False) -> dict[str, Any]:
    payload = {"error": error.message}
    if error.details:
        payload["details"] = error.details
    return json_response(error.status_code, payload, cors)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Serve one feed request.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response; RSS on success, JSON on error
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    started = time.monotonic()

    path, method, query = request_parts(event)
    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        path=path,
        method=method,
    )

    config = Config()
    try:
        routes = build_routes(config)
    except ValueError as e:
        main_logger.error(f"Invalid feed configuration: {e}", error=str(e))
        main_logger.log_execution_end(success=False, status_code=500)
        return json_response(500, {"error": "Invalid feed configuration", "details": str(e)})
    source = routes.get(path)

    if source is None:
        main_logger.log_execution_end(success=False, status_code=404)
        return json_response(404, {"error": "Not found", "details": f"No feed at '/{path}'"})

    if method == "OPTIONS":
        main_logger.log_execution_end(success=True, status_code=200)
        return {"statusCode": 200, "headers": dict(CORS_HEADERS), "body": ""}

    if method != "GET":
        main_logger.log_execution_end(success=False, status_code=405)
        return json_response(405, {"error": "Method not allowed"}, source.cors)

    metrics = {"endpoint": source.name, "origin": None, "items_rendered": 0, "failed": False}

    pipeline = FeedPipeline(config, execution_id=execution_id)
    try:
        result = pipeline.run(source, query)
        metrics["origin"] = result.origin
        metrics["items_rendered"] = result.items_rendered

        headers = {
            "Content-Type": "application/rss+xml; charset=utf-8",
            "Cache-Control": f"public, max-age={source.max_age}",
        }
        if source.cors:
            headers.update(CORS_HEADERS)
        response = {"statusCode": 200, "headers": headers, "body": result.body}

    except FeedRelayError as e:
        main_logger.error(
            f"Request for {source.name} failed: {e}",
            endpoint=source.name,
            error=str(e),
            error_type=type(e).__name__,
            status_code=e.status_code,
        )
        metrics["failed"] = True
        response = error_response(e, source.cors)

    except Exception as e:
        main_logger.error(
            f"Unexpected error rendering {source.name}: {e}",
            endpoint=source.name,
            error=str(e),
            error_type=type(e).__name__,
        )
        metrics["failed"] = True
        response = json_response(
            500, {"error": "Failed to generate RSS feed", "details": str(e)}, source.cors
        )

    finally:
        pipeline.close()

    metrics["response_time_ms"] = int((time.monotonic() - started) * 1000)
    main_logger.log_metrics(metrics)
    if config.metrics_enabled:
        send_cloudwatch_metrics(metrics, config, execution_id)
    main_logger.log_execution_end(
        success=not metrics["failed"], status_code=response["statusCode"]
    )
    return response


def send_cloudwatch_metrics(metrics: dict[str, Any], config: Config, execution_id: str) -> None:
    """
    Send per-request metrics to CloudWatch.

    Args:
        metrics: Request metrics collected by the handler
        config: Application configuration
        execution_id: Execution ID for logging context
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)
    metrics_config = config.get_metrics_config()

    try:
        cloudwatch = boto3.client("cloudwatch", region_name=metrics_config.region)
        dimensions = [{"Name": "Endpoint", "Value": metrics["endpoint"]}]
        origin = metrics["origin"]

        def datum(name: str, value: float, unit: str = "Count") -> dict[str, Any]:
            return {"MetricName": name, "Value": value, "Unit": unit, "Dimensions": dimensions}

        metric_data = [
            datum("Requests", 1),
            datum("CacheHits", 1 if origin == CACHE else 0),
            datum("StaleFallbacks", 1 if origin == STALE_CACHE else 0),
            datum("MockFallbacks", 1 if origin == MOCK else 0),
            datum("Failures", 1 if metrics["failed"] else 0),
            datum("ItemsRendered", metrics["items_rendered"]),
            datum("ResponseTimeMs", metrics["response_time_ms"], "Milliseconds"),
        ]

        # CloudWatch accepts at most 20 metrics per call
        batch_size = 20
        for i in range(0, len(metric_data), batch_size):
            batch = metric_data[i : i + batch_size]
            cloudwatch.put_metric_data(Namespace=metrics_config.namespace, MetricData=batch)
            metrics_logger.debug(f"Sent batch of {len(batch)} metrics to CloudWatch")

        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=metrics_config.namespace,
        )

    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
        # Don't raise - metrics failure shouldn't break the response
