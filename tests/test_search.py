"""Tests for paid endpoint search."""

import json

import httpx
import pytest

from tilde_mcp.config import ServerConfig
from tilde_mcp.exceptions import MissingKeyError, ToolExecutionError
from tilde_mcp.networks import ChainFamily
from tilde_mcp.signers import EvmSigner, SolanaSigner
from tilde_mcp.tools.search import SearchInvoker


KEYWORDS = ["price", "spot", "bitcoin"]


class TestSignerSelection:
    """The first supported network decides the search payment key."""

    def test_first_network_evm(self, server_config):
        invoker = SearchInvoker(server_config)

        assert invoker.preferred_network == "base"
        assert isinstance(invoker.signer, EvmSigner)

    def test_first_network_solana(self, solana_only_config):
        invoker = SearchInvoker(solana_only_config)

        assert invoker.family is ChainFamily.SOLANA
        assert isinstance(invoker.signer, SolanaSigner)

    def test_defaults_to_base(self, evm_private_key):
        invoker = SearchInvoker(ServerConfig(evm_private_key=evm_private_key))

        assert invoker.preferred_network == "base"

    def test_missing_key(self, evm_private_key):
        config = ServerConfig(evm_private_key=evm_private_key, supported_networks=["solana"])

        with pytest.raises(MissingKeyError) as exc_info:
            SearchInvoker(config)

        assert str(exc_info.value) == (
            "MCP configuration error: SUPPORTED_NETWORKS[0]='solana' requires SOLANA_PRIVATE_KEY. "
            "Please add SOLANA_PRIVATE_KEY to your MCP server configuration."
        )


class TestBuildPayload:
    """Tests for the search request body."""

    def test_defaults(self, evm_only_config):
        payload = SearchInvoker(evm_only_config).build_payload("bitcoin spot price", KEYWORDS)

        assert payload == {
            "q": "bitcoin spot price",
            "n": 10,
            "mustIncludeKeywords": KEYWORDS,
            "mustExcludeKeywords": [],
            "networks": ["base"],
        }

    def test_num_results_clamped(self, evm_private_key):
        config = ServerConfig(evm_private_key=evm_private_key, max_num_results=3)
        invoker = SearchInvoker(config)

        assert invoker.build_payload("bitcoin price", KEYWORDS, num_results=8)["n"] == 3
        assert invoker.build_payload("bitcoin price", KEYWORDS)["n"] == 3
        assert invoker.build_payload("bitcoin price", KEYWORDS, num_results=2)["n"] == 2

    def test_empty_filters_omitted(self, evm_private_key):
        invoker = SearchInvoker(ServerConfig(evm_private_key=evm_private_key))

        payload = invoker.build_payload("bitcoin price", KEYWORDS)

        assert "networks" not in payload
        assert "assets" not in payload
        assert "sources" not in payload

    def test_all_options(self, evm_private_key):
        config = ServerConfig(
            evm_private_key=evm_private_key,
            supported_networks=["base", "polygon"],
            supported_assets=["USDC"],
            supported_facilitators=["coinbase"],
        )

        payload = SearchInvoker(config).build_payload(
            "bitcoin price",
            KEYWORDS,
            must_exclude_keywords=["funding"],
            quality_reqs=["low-latency"],
            temporal="real-time",
        )

        assert payload["mustExcludeKeywords"] == ["funding"]
        assert payload["qualityReqs"] == ["low-latency"]
        assert payload["temporal"] == "real-time"
        assert payload["networks"] == ["base", "polygon"]
        assert payload["assets"] == ["USDC"]
        assert payload["sources"] == ["coinbase"]


class TestSearch:
    """Paid search against the search service mock."""

    async def test_paid_search(self, search_mock, evm_only_config):
        invoker = SearchInvoker(evm_only_config, transport=search_mock.transport)

        result = await invoker.search("bitcoin spot price", KEYWORDS, num_results=5)

        assert result.success is True
        assert result.data["results"][0]["score"] == 0.92
        probe, paid = search_mock.requests
        assert probe.method == "POST"
        assert str(probe.url) == "https://search.example.com/search"
        assert json.loads(paid.content)["n"] == 5
        assert paid.headers["Content-Type"] == "application/json"
        assert "X-PAYMENT" in paid.headers

    async def test_search_failure(self, search_mock, evm_only_config):
        search_mock.add_endpoint("/search", content={"error": "bad"}, reject_payments=True)
        invoker = SearchInvoker(evm_only_config, transport=search_mock.transport)

        result = await invoker.search("bitcoin spot price", KEYWORDS)

        assert result.success is False
        assert result.status == 402
        assert result.message == "Request failed with status code 402"

    async def test_search_server_error(self, evm_only_config):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="upstream down"))
        invoker = SearchInvoker(evm_only_config, transport=transport)

        result = await invoker.search("bitcoin spot price", KEYWORDS)

        assert result.to_dict() == {
            "success": False,
            "status": 500,
            "message": "Request failed with status code 500",
            "data": "upstream down",
        }

    async def test_no_per_attempt_timeout(self, search_mock, evm_only_config):
        timeouts = []

        def record(request: httpx.Request) -> httpx.Response:
            timeouts.append(request.extensions["timeout"])
            return search_mock.handle_request(request)

        invoker = SearchInvoker(evm_only_config, transport=httpx.MockTransport(record))

        result = await invoker.search("bitcoin spot price", KEYWORDS)

        assert result.success is True
        assert len(timeouts) == 2
        assert all(value is None for timeout in timeouts for value in timeout.values())

    async def test_slow_attempts_within_ceiling(self, search_mock, evm_only_config):
        invoker = SearchInvoker(
            evm_only_config, timeout_seconds=2.0, transport=search_mock.delayed_transport(0.3)
        )

        result = await invoker.search("bitcoin spot price", KEYWORDS)

        assert result.success is True

    async def test_ceiling_spans_probe_and_retry(self, search_mock, evm_only_config):
        invoker = SearchInvoker(
            evm_only_config, timeout_seconds=0.5, transport=search_mock.delayed_transport(0.3)
        )

        result = await invoker.search("bitcoin spot price", KEYWORDS)

        assert result.to_dict() == {"success": False, "message": "timeout of 500ms exceeded"}
        assert len(search_mock.requests) == 2

    async def test_unexpected_error_is_wrapped(self, evm_only_config):
        def explode(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("boom")

        invoker = SearchInvoker(evm_only_config, transport=httpx.MockTransport(explode))

        with pytest.raises(ToolExecutionError, match="Search failed: boom"):
            await invoker.search("bitcoin spot price", KEYWORDS)
