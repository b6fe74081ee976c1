"""
Embedded Metric Format (EMF) metrics for the tilde x402 MCP server.

Metrics are written as EMF JSON lines that a log collector (CloudWatch agent,
Vector, ...) can extract without an explicit PutMetricData call. stdout belongs
to the MCP stdio protocol, so every record goes to stderr.

Metrics are organized into the following categories:
- Search: paid calls to the search service
- Execute: paid calls to discovered endpoints
- Payment: 402 challenges, proof creation and rejected proofs
"""

import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class MetricUnit(str, Enum):
    """CloudWatch metric units."""
    COUNT = "Count"
    MILLISECONDS = "Milliseconds"
    NONE = "None"


class ServerMetricName(str, Enum):
    """Metric names for the MCP server."""
    # Search Metrics
    SEARCH_REQUEST_COUNT = "SearchRequestCount"
    SEARCH_REQUEST_SUCCESS = "SearchRequestSuccess"
    SEARCH_REQUEST_FAILURE = "SearchRequestFailure"
    SEARCH_REQUEST_LATENCY = "SearchRequestLatency"

    # Execute Metrics
    EXECUTE_REQUEST_COUNT = "ExecuteRequestCount"
    EXECUTE_REQUEST_SUCCESS = "ExecuteRequestSuccess"
    EXECUTE_REQUEST_FAILURE = "ExecuteRequestFailure"
    EXECUTE_REQUEST_LATENCY = "ExecuteRequestLatency"

    # Payment Metrics
    PAYMENT_CHALLENGE_COUNT = "PaymentChallengeCount"
    PAYMENT_PROOF_COUNT = "PaymentProofCount"
    PAYMENT_PROOF_SUCCESS = "PaymentProofSuccess"
    PAYMENT_PROOF_FAILURE = "PaymentProofFailure"
    PAYMENT_PROOF_LATENCY = "PaymentProofLatency"
    PAYMENT_REJECTED = "PaymentRejected"
    PAYMENT_AMOUNT = "PaymentAmount"

    # Error Metrics
    SERVER_ERROR_COUNT = "ServerErrorCount"


@dataclass
class MetricDimensions:
    """Dimensions for EMF metrics."""
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    network: Optional[str] = None
    chain_family: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary, excluding None values."""
        result = {"Environment": self.environment}
        if self.network:
            result["Network"] = self.network
        if self.chain_family:
            result["ChainFamily"] = self.chain_family
        if self.error_type:
            result["ErrorType"] = self.error_type
        return result


class MetricsEmitter:
    """
    Metrics emitter using Embedded Metric Format (EMF).

    EMF publishes metrics by logging JSON in a specific format; the collector
    extracts metrics from these log lines.
    """

    NAMESPACE = "TildeX402Server"

    def __init__(self, service_name: str = "tilde-x402-server"):
        self.service_name = service_name
        self._dimensions = MetricDimensions()

    def _create_emf_log(
        self,
        metrics: dict[str, tuple[float, MetricUnit]],
        dimensions: Optional[MetricDimensions] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Create an EMF-formatted log entry.

        Args:
            metrics: Dictionary of metric name to (value, unit) tuples
            dimensions: Optional custom dimensions
            properties: Additional properties to include in the log

        Returns:
            EMF-formatted dictionary
        """
        dims = dimensions or self._dimensions
        dim_dict = dims.to_dict()

        metrics_array = [
            {"Name": name, "Unit": unit.value}
            for name, (_, unit) in metrics.items()
        ]

        emf_log: dict[str, Any] = {
            "_aws": {
                "Timestamp": int(time.time() * 1000),
                "CloudWatchMetrics": [
                    {
                        "Namespace": self.NAMESPACE,
                        "Dimensions": [list(dim_dict.keys())],
                        "Metrics": metrics_array,
                    }
                ],
            },
            "service": self.service_name,
            **dim_dict,
        }

        for name, (value, _) in metrics.items():
            emf_log[name] = value

        if properties:
            emf_log.update(properties)

        return emf_log

    def _write(self, emf_log: dict[str, Any]) -> None:
        # stdout carries MCP frames
        print(json.dumps(emf_log), file=sys.stderr)

    def emit(
        self,
        metric_name: ServerMetricName,
        value: float,
        unit: MetricUnit = MetricUnit.COUNT,
        dimensions: Optional[MetricDimensions] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        """Emit a single metric."""
        self._write(self._create_emf_log(
            {metric_name.value: (value, unit)},
            dimensions,
            properties,
        ))

    def emit_multiple(
        self,
        metrics: dict[ServerMetricName, tuple[float, MetricUnit]],
        dimensions: Optional[MetricDimensions] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        """Emit multiple metrics in a single log entry."""
        metrics_dict = {name.value: value_unit for name, value_unit in metrics.items()}
        self._write(self._create_emf_log(metrics_dict, dimensions, properties))

    # Convenience methods for common metrics

    def record_search_request(
        self,
        success: bool,
        latency_ms: float,
        status_code: Optional[int] = None,
        network: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Record a call to the search service.

        Args:
            success: Whether the search returned a 2xx response
            latency_ms: Request latency in milliseconds, payment included
            status_code: Final HTTP status, None on transport failure
            network: Network the search payment is made on
            error: Error message if the search failed
        """
        dims = MetricDimensions(
            network=network,
            error_type=error[:50] if error else None,
        )

        metrics: dict[ServerMetricName, tuple[float, MetricUnit]] = {
            ServerMetricName.SEARCH_REQUEST_COUNT: (1, MetricUnit.COUNT),
            ServerMetricName.SEARCH_REQUEST_LATENCY: (latency_ms, MetricUnit.MILLISECONDS),
        }
        if success:
            metrics[ServerMetricName.SEARCH_REQUEST_SUCCESS] = (1, MetricUnit.COUNT)
        else:
            metrics[ServerMetricName.SEARCH_REQUEST_FAILURE] = (1, MetricUnit.COUNT)

        properties: dict[str, Any] = {"statusCode": status_code}
        if error:
            properties["error"] = error

        self.emit_multiple(metrics, dims, properties)

    def record_execute_request(
        self,
        success: bool,
        latency_ms: float,
        method: str,
        status_code: Optional[int] = None,
        network: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Record a call to a discovered endpoint.

        Args:
            success: Whether the endpoint returned a 2xx response
            latency_ms: Request latency in milliseconds, payment included
            method: HTTP method used
            status_code: Final HTTP status, None on transport failure
            network: Network named by the endpoint's first payment method
            error: Error message if the call failed
        """
        dims = MetricDimensions(
            network=network,
            error_type=error[:50] if error else None,
        )

        metrics: dict[ServerMetricName, tuple[float, MetricUnit]] = {
            ServerMetricName.EXECUTE_REQUEST_COUNT: (1, MetricUnit.COUNT),
            ServerMetricName.EXECUTE_REQUEST_LATENCY: (latency_ms, MetricUnit.MILLISECONDS),
        }
        if success:
            metrics[ServerMetricName.EXECUTE_REQUEST_SUCCESS] = (1, MetricUnit.COUNT)
        else:
            metrics[ServerMetricName.EXECUTE_REQUEST_FAILURE] = (1, MetricUnit.COUNT)

        properties: dict[str, Any] = {"statusCode": status_code, "method": method}
        if error:
            properties["error"] = error

        self.emit_multiple(metrics, dims, properties)

    def record_payment_challenge(self, chain_family: str, resource: Optional[str] = None) -> None:
        """Record a 402 Payment Required response."""
        properties = {"resource": resource} if resource else None
        self.emit(
            ServerMetricName.PAYMENT_CHALLENGE_COUNT,
            1,
            MetricUnit.COUNT,
            MetricDimensions(chain_family=chain_family),
            properties,
        )

    def record_payment_proof(
        self,
        success: bool,
        latency_ms: float,
        network: Optional[str] = None,
        amount: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Record a payment proof creation attempt.

        Args:
            success: Whether a proof was produced
            latency_ms: Time taken for selection and signing in milliseconds
            network: Network of the selected requirement
            amount: Atomic amount authorized by the proof
            error: Error message if no proof was produced
        """
        dims = MetricDimensions(
            network=network,
            error_type=error[:50] if error else None,
        )

        metrics: dict[ServerMetricName, tuple[float, MetricUnit]] = {
            ServerMetricName.PAYMENT_PROOF_COUNT: (1, MetricUnit.COUNT),
            ServerMetricName.PAYMENT_PROOF_LATENCY: (latency_ms, MetricUnit.MILLISECONDS),
        }

        if success:
            metrics[ServerMetricName.PAYMENT_PROOF_SUCCESS] = (1, MetricUnit.COUNT)
            if amount:
                try:
                    metrics[ServerMetricName.PAYMENT_AMOUNT] = (float(amount), MetricUnit.NONE)
                except ValueError:
                    logger.debug("Non-numeric payment amount %r not recorded", amount)
        else:
            metrics[ServerMetricName.PAYMENT_PROOF_FAILURE] = (1, MetricUnit.COUNT)

        properties = {"network": network} if network else {}
        if error:
            properties["error"] = error

        self.emit_multiple(metrics, dims, properties)

    def record_payment_rejected(self, network: Optional[str] = None) -> None:
        """Record a paid retry that was answered with another 402."""
        self.emit(
            ServerMetricName.PAYMENT_REJECTED,
            1,
            MetricUnit.COUNT,
            MetricDimensions(network=network),
        )

    def record_error(
        self,
        error_type: str,
        error_message: str,
        operation: Optional[str] = None,
    ) -> None:
        """
        Record an error.

        Args:
            error_type: Type of error
            error_message: Error message
            operation: Operation that failed
        """
        dims = MetricDimensions(error_type=error_type[:50])

        self.emit(
            ServerMetricName.SERVER_ERROR_COUNT,
            1,
            MetricUnit.COUNT,
            dims,
            {
                "errorType": error_type,
                "errorMessage": error_message[:200],
                "operation": operation,
            },
        )


# Global metrics emitter instance
_metrics_emitter: Optional[MetricsEmitter] = None


def get_metrics_emitter() -> MetricsEmitter:
    """Get the global metrics emitter instance."""
    global _metrics_emitter
    if _metrics_emitter is None:
        _metrics_emitter = MetricsEmitter()
    return _metrics_emitter


def init_metrics(service_name: str = "tilde-x402-server") -> MetricsEmitter:
    """
    Initialize the global metrics emitter.

    Args:
        service_name: Service name for metric attribution

    Returns:
        Configured MetricsEmitter instance
    """
    global _metrics_emitter
    _metrics_emitter = MetricsEmitter(service_name)
    return _metrics_emitter
