"""Paid calls to endpoints discovered through search."""

import asyncio
import json
import logging
import time
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx

from ..config import ServerConfig
from ..exceptions import ToolExecutionError
from ..metrics import get_metrics_emitter
from ..models import EndpointDescriptor, HttpMethod
from ..networks import classify
from ..payment_client import wrap_client
from ..signers import create_signer
from ..tracing import get_tracer
from .result import InvocationResult

logger = logging.getLogger(__name__)

EXECUTE_TIMEOUT_SECONDS = 60.0

BODY_METHODS = ("POST", "PUT")

QUERY_SCALARS = (str, int, float, bool)


def split_resource_url(resource: str) -> tuple[str, str]:
    """Split an absolute URL into its origin and its path plus query."""
    parts = urlsplit(resource)
    origin = f"{parts.scheme}://{parts.netloc}"
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return origin, path


def _query_params(params: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Coerce arbitrary JSON values into something httpx can put in a query."""
    if not params:
        return None
    query: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, list) and all(isinstance(v, QUERY_SCALARS) for v in value):
            query[key] = value
        elif value is None or isinstance(value, QUERY_SCALARS):
            query[key] = value
        else:
            query[key] = json.dumps(value)
    return query


class EndpointInvoker:
    """Calls a discovered endpoint, paying with the key of its first network.

    A new signer and a new HTTP client are created for every call, so
    concurrent calls never share payment state.
    """

    def __init__(
        self,
        config: ServerConfig,
        timeout_seconds: float = EXECUTE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def execute(
        self,
        endpoint: EndpointDescriptor | dict[str, Any],
        params: Optional[dict[str, Any]] = None,
        method: Optional[HttpMethod] = None,
        body: Any = None,
    ) -> InvocationResult:
        """
        Call an endpoint, settling a 402 challenge once if one is returned.

        Args:
            endpoint: Descriptor from search results; only accepts[0] picks the key
            params: Query parameters
            method: HTTP method, GET when omitted
            body: JSON body, sent only with POST or PUT

        Returns:
            InvocationResult for the final response or the transport failure

        Raises:
            ConfigurationError: If no key is configured for the endpoint's network
                or the key is malformed
            ToolExecutionError: For any other unexpected failure
        """
        descriptor = EndpointDescriptor.model_validate(endpoint)
        network = descriptor.payment_network
        family = classify(network)
        key_name = family.key_name
        private_key = self.config.require_key(
            family,
            f"{family.name} endpoint requires {key_name} in MCP configuration. "
            f"Add {key_name} to your MCP client config env section.",
        )
        signer = create_signer(
            family,
            private_key,
            network,
            evm_chain=self.config.resolve_evm_chain(),
            solana_rpc_url=self.config.solana_rpc_url,
        )

        http_method = method or "GET"
        origin, path = split_resource_url(descriptor.resource)
        headers: dict[str, str] = {}
        json_body = None
        if body is not None and http_method in BODY_METHODS:
            json_body = body
            headers["Content-Type"] = "application/json"

        tracer = get_tracer()
        metrics = get_metrics_emitter()
        start_time = time.time()

        with tracer.start_as_current_span("execute.request") as span:
            span.set_attribute("http.url", descriptor.resource)
            span.set_attribute("http.method", http_method)
            span.set_attribute("payment.network", network)
            span.set_attribute("payment.chain_family", family.value)

            # wait_for is the only ceiling over probe plus paid retry
            base_client = httpx.AsyncClient(
                base_url=origin,
                follow_redirects=True,
                timeout=None,
                transport=self.transport,
            )
            client = wrap_client(base_client, signer)
            try:
                async with client:
                    response = await asyncio.wait_for(
                        client.request(
                            http_method,
                            path,
                            params=_query_params(params),
                            json=json_body,
                            headers=headers,
                        ),
                        timeout=self.timeout_seconds,
                    )
            except (asyncio.TimeoutError, httpx.RequestError) as e:
                span.set_attribute("error.type", "request_error")
                span.record_exception(e)
                result = InvocationResult.from_transport_error(e, self.timeout_seconds)
                logger.error("Request failed: %s", result.message)
                metrics.record_execute_request(
                    success=False,
                    latency_ms=(time.time() - start_time) * 1000,
                    method=http_method,
                    network=network,
                    error=result.message,
                )
                return result
            except Exception as e:
                span.record_exception(e)
                logger.error("Unexpected error: %s", e, exc_info=True)
                metrics.record_error(type(e).__name__, str(e), operation="execute_tool")
                raise ToolExecutionError(f"Execution failed: {e}") from e

            span.set_attribute("http.status_code", response.status_code)
            span.set_attribute("http.attempts", client.attempts)
            if client.settlement:
                span.set_attribute("payment.settled", bool(client.settlement.get("success")))

            result = InvocationResult.from_response(response, client.payment_error)
            if not result.success:
                logger.error("Request failed: %s", result.message)
            metrics.record_execute_request(
                success=result.success,
                latency_ms=(time.time() - start_time) * 1000,
                method=http_method,
                status_code=response.status_code,
                network=network,
                error=None if result.success else result.message,
            )
            return result
