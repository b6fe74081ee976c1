"""
x402 Server Mock for Local Testing.

This module provides a mock x402 resource server that plugs into httpx
through ``httpx.MockTransport``, so the payment-aware client and the tool
invokers can be tested without network access or deployed infrastructure.

The mock simulates:
- 402 Payment Required responses (x402 v1 body, optional v2 header)
- Payment verification and content delivery
- Settlement confirmation in the X-PAYMENT-RESPONSE header
- Servers that keep rejecting payment

Usage:
    from tests.mocks import X402ServerMock

    mock = X402ServerMock()
    client = httpx.AsyncClient(base_url=mock.config.base_url, transport=mock.transport)

    response = await client.get("/api/price")
    assert response.status_code == 402
"""

import asyncio
import base64
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from tilde_mcp.networks import ChainFamily, classify


@dataclass
class X402ServerMockConfig:
    """
    Configuration for the x402 server mock.

    Attributes:
        base_url: Origin the mock serves
        default_price: Default price in atomic USDC units (1 USDC = 1,000,000 units)
        default_network: Default network name
        default_asset: Default payment asset address (USDC on Base)
        default_recipient: Default payment recipient address
    """
    base_url: str = "https://api.example.com"
    default_price: str = "10000"
    default_network: str = "base"
    default_asset: str = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
    default_recipient: str = "0x742d35cc6634c0532925a3b844bc9e7595f0beb0"


@dataclass
class MockPaidEndpoint:
    """
    Definition of a mock paid endpoint.

    Attributes:
        path: URL path for the endpoint (e.g., "/api/price")
        content: JSON returned once payment is accepted
        accepts: Payment requirements advertised in the 402 body
        requires_payment: Whether the endpoint requires payment
        reject_payments: Answer 402 even when a payment header is present
        header_only: Advertise requirements only in the PAYMENT-REQUIRED header
    """
    path: str
    content: Any
    accepts: list[dict[str, Any]] = field(default_factory=list)
    requires_payment: bool = True
    reject_payments: bool = False
    header_only: bool = False


class X402ServerMock:
    """
    Mock x402 resource server backed by ``httpx.MockTransport``.

    Every request the mock receives is kept in ``requests`` so tests can
    assert on the probe and the paid retry.

    Attributes:
        config: Mock configuration
        endpoints: Dictionary of registered endpoints
        requests: Requests received, in order
    """

    def __init__(self, config: Optional[X402ServerMockConfig] = None):
        self.config = config or X402ServerMockConfig()
        self.endpoints: dict[str, MockPaidEndpoint] = {}
        self.requests: list[httpx.Request] = []
        self._setup_default_endpoints()

    def _setup_default_endpoints(self) -> None:
        self.add_endpoint(
            path="/api/price",
            content={"symbol": "BTC", "price": 97123.45, "source": "mock"},
        )
        self.add_endpoint(
            path="/api/free",
            content={"status": "ok"},
            requires_payment=False,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_request)

    def delayed_transport(self, delay_seconds: float) -> httpx.MockTransport:
        """Transport that answers every request after ``delay_seconds``.

        Requests are recorded on arrival, so a request that is still waiting
        when the caller gives up is already in ``requests``.
        """
        async def handle(request: httpx.Request) -> httpx.Response:
            response = self.handle_request(request)
            await asyncio.sleep(delay_seconds)
            return response

        return httpx.MockTransport(handle)

    def requirement(
        self,
        network: Optional[str] = None,
        price: Optional[str] = None,
        scheme: str = "exact",
        **overrides: Any,
    ) -> dict[str, Any]:
        """Build one entry of a 402 ``accepts`` list."""
        network = network or self.config.default_network
        entry: dict[str, Any] = {
            "scheme": scheme,
            "network": network,
            "maxAmountRequired": price or self.config.default_price,
            "resource": self.config.base_url,
            "description": "Mock paid resource",
            "mimeType": "application/json",
            "payTo": self.config.default_recipient,
            "maxTimeoutSeconds": 60,
            "asset": self.config.default_asset,
            "extra": {"name": "USD Coin", "version": "2"},
        }
        if classify(network) is ChainFamily.SOLANA:
            entry.update(
                payTo="9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
                asset="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                extra={"feePayer": "2wKupLR9q6wXYppw8Gr2NvWxKBUqm4PPJKkQfoxHDBg4"},
            )
        entry.update(overrides)
        return entry

    def add_endpoint(
        self,
        path: str,
        content: Any,
        accepts: Optional[list[dict[str, Any]]] = None,
        requires_payment: bool = True,
        reject_payments: bool = False,
        header_only: bool = False,
    ) -> MockPaidEndpoint:
        """
        Add a paid endpoint to the mock.

        Args:
            path: URL path for the endpoint
            content: JSON returned once payment is accepted
            accepts: Requirements advertised in the 402 (one default entry if omitted)
            requires_payment: Whether the endpoint requires payment
            reject_payments: Keep answering 402 after payment
            header_only: Send requirements in the PAYMENT-REQUIRED header only

        Returns:
            The registered endpoint
        """
        endpoint = MockPaidEndpoint(
            path=path,
            content=content,
            accepts=accepts if accepts is not None else [self.requirement()],
            requires_payment=requires_payment,
            reject_payments=reject_payments,
            header_only=header_only,
        )
        self.endpoints[path] = endpoint
        return endpoint

    def get_402_response(self, endpoint: MockPaidEndpoint, error: str) -> dict[str, Any]:
        return {
            "x402Version": 1,
            "error": error,
            "accepts": endpoint.accepts,
        }

    def get_settlement_response(self, network: Optional[str] = None) -> dict[str, Any]:
        return {
            "success": True,
            "transaction": f"0x{'ab' * 32}",
            "network": network or self.config.default_network,
            "payer": "0x1111111111111111111111111111111111111111",
        }

    @property
    def paid_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if "X-PAYMENT" in r.headers]

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Serve one request the way an x402 resource server would."""
        self.requests.append(request)

        endpoint = self.endpoints.get(request.url.path)
        if endpoint is None:
            return httpx.Response(404, json={"error": "Not found", "path": request.url.path})

        payment = request.headers.get("X-PAYMENT")
        if endpoint.requires_payment and (not payment or endpoint.reject_payments):
            error = "X-PAYMENT header is required" if not payment else "Payment verification failed"
            body = self.get_402_response(endpoint, error)
            if endpoint.header_only:
                encoded = base64.b64encode(json.dumps(body).encode()).decode()
                return httpx.Response(402, headers={"PAYMENT-REQUIRED": encoded})
            return httpx.Response(402, json=body)

        headers = {}
        if payment:
            decoded = json.loads(base64.b64decode(payment))
            settlement = self.get_settlement_response(decoded.get("network"))
            headers["X-PAYMENT-RESPONSE"] = base64.b64encode(
                json.dumps(settlement).encode()
            ).decode()
        return httpx.Response(200, json=endpoint.content, headers=headers)
