"""
Test mocks for the tilde x402 MCP server test suite.

This module provides mock implementations for external dependencies,
enabling local testing without network access.

Available Mocks:
- X402ServerMock: Mock x402 resource server served through httpx.MockTransport
- MockPaidEndpoint: Definition of a mock paid endpoint
- X402ServerMockConfig: Configuration for the server mock
- RecordingSigner: Signer stand-in that records what it was asked to pay

Usage:
    from tests.mocks import X402ServerMock, RecordingSigner

    mock = X402ServerMock()
    mock.add_endpoint("/api/custom", content={"custom": "data"})

    client = wrap_client(
        httpx.AsyncClient(base_url=mock.config.base_url, transport=mock.transport),
        RecordingSigner(),
    )
"""

from .signer_mock import (
    TEST_EVM_ADDRESS,
    TEST_EVM_PRIVATE_KEY,
    RecordingSigner,
    failing_signer,
)
from .x402_mock import MockPaidEndpoint, X402ServerMock, X402ServerMockConfig

__all__ = [
    "TEST_EVM_ADDRESS",
    "TEST_EVM_PRIVATE_KEY",
    "MockPaidEndpoint",
    "RecordingSigner",
    "X402ServerMock",
    "X402ServerMockConfig",
    "failing_signer",
]
