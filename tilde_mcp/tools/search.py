"""Paid natural-language search for x402 endpoints."""

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from ..config import ServerConfig
from ..exceptions import MissingKeyError, ToolExecutionError
from ..metrics import get_metrics_emitter
from ..models import QualityRequirement, Temporal
from ..networks import DEFAULT_EVM_CHAIN, classify
from ..payment_client import wrap_client
from ..signers import Signer, create_signer
from ..tracing import get_tracer
from .result import InvocationResult

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT_SECONDS = 30.0
DEFAULT_NUM_RESULTS = 10


class SearchInvoker:
    """Pays for and runs searches against the search service.

    The payment network is the first configured supported network (base
    when none is configured). Its signer is created once and reused for
    every search; it holds no per-request state.
    """

    def __init__(
        self,
        config: ServerConfig,
        timeout_seconds: float = SEARCH_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.filter_defaults = config.filter_defaults
        self.preferred_network = (config.supported_networks or [DEFAULT_EVM_CHAIN])[0]
        self.family = classify(self.preferred_network)

        private_key = config.key_for(self.family)
        if not private_key:
            key_name = self.family.key_name
            raise MissingKeyError(
                key_name,
                f"MCP configuration error: SUPPORTED_NETWORKS[0]='{self.preferred_network}' "
                f"requires {key_name}. Please add {key_name} to your MCP server configuration.",
            )
        self.signer: Signer = create_signer(
            self.family,
            private_key,
            self.preferred_network,
            evm_chain=config.resolve_evm_chain(),
            solana_rpc_url=config.solana_rpc_url,
        )

    @property
    def search_url(self) -> str:
        return f"{self.config.search_api_url}/search"

    def build_payload(
        self,
        query: str,
        must_include_keywords: list[str],
        must_exclude_keywords: Optional[list[str]] = None,
        num_results: Optional[int] = None,
        quality_reqs: Optional[list[QualityRequirement]] = None,
        temporal: Optional[Temporal] = None,
    ) -> dict[str, Any]:
        """Build the search request body with the configured filter defaults."""
        requested = num_results if num_results is not None else DEFAULT_NUM_RESULTS
        payload: dict[str, Any] = {
            "q": query,
            "n": min(requested, self.config.max_num_results),
            "mustIncludeKeywords": must_include_keywords,
            "mustExcludeKeywords": must_exclude_keywords or [],
        }
        if quality_reqs is not None:
            payload["qualityReqs"] = quality_reqs
        if temporal is not None:
            payload["temporal"] = temporal

        # empty filter lists mean "no filter" and are left out
        if self.filter_defaults.supported_networks:
            payload["networks"] = self.filter_defaults.supported_networks
        if self.filter_defaults.supported_assets:
            payload["assets"] = self.filter_defaults.supported_assets
        if self.filter_defaults.supported_facilitators:
            payload["sources"] = self.filter_defaults.supported_facilitators
        return payload

    async def search(
        self,
        query: str,
        must_include_keywords: list[str],
        must_exclude_keywords: Optional[list[str]] = None,
        num_results: Optional[int] = None,
        quality_reqs: Optional[list[QualityRequirement]] = None,
        temporal: Optional[Temporal] = None,
    ) -> InvocationResult:
        """
        Run a paid search.

        Returns:
            InvocationResult whose data is the search service's JSON response

        Raises:
            ToolExecutionError: For failures other than HTTP or transport errors
        """
        payload = self.build_payload(
            query,
            must_include_keywords,
            must_exclude_keywords,
            num_results,
            quality_reqs,
            temporal,
        )

        tracer = get_tracer()
        metrics = get_metrics_emitter()
        start_time = time.time()

        with tracer.start_as_current_span("search.request") as span:
            span.set_attribute("http.url", self.search_url)
            span.set_attribute("search.num_results", payload["n"])
            span.set_attribute("payment.network", self.preferred_network)

            # wait_for is the only ceiling over probe plus paid retry
            base_client = httpx.AsyncClient(timeout=None, transport=self.transport)
            client = wrap_client(base_client, self.signer)
            try:
                async with client:
                    response = await asyncio.wait_for(
                        client.request(
                            "POST",
                            self.search_url,
                            json=payload,
                            headers={"Content-Type": "application/json"},
                        ),
                        timeout=self.timeout_seconds,
                    )
            except (asyncio.TimeoutError, httpx.RequestError) as e:
                span.set_attribute("error.type", "request_error")
                span.record_exception(e)
                result = InvocationResult.from_transport_error(e, self.timeout_seconds)
                logger.error("Search request failed: %s", result.message)
                metrics.record_search_request(
                    success=False,
                    latency_ms=(time.time() - start_time) * 1000,
                    network=self.preferred_network,
                    error=result.message,
                )
                return result
            except Exception as e:
                span.record_exception(e)
                logger.error("Unexpected error: %s", e, exc_info=True)
                metrics.record_error(type(e).__name__, str(e), operation="search_endpoints")
                raise ToolExecutionError(f"Search failed: {e}") from e

            span.set_attribute("http.status_code", response.status_code)
            span.set_attribute("http.attempts", client.attempts)

            result = InvocationResult.from_response(response, client.payment_error)
            if not result.success:
                logger.error("Search request failed: %s", result.message)
            metrics.record_search_request(
                success=result.success,
                latency_ms=(time.time() - start_time) * 1000,
                status_code=response.status_code,
                network=self.preferred_network,
                error=None if result.success else result.message,
            )
            return result
