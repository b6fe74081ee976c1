"""
Pytest configuration and fixtures for the tilde x402 MCP server tests.

This module provides shared fixtures, including the x402 server mock that
lets the payment-aware client and both tool invokers run without network
access.

Usage:
    # In your test file, fixtures are automatically available

    async def test_something(x402_mock, server_config, endpoint_descriptor):
        invoker = EndpointInvoker(server_config, transport=x402_mock.transport)
        result = await invoker.execute(endpoint_descriptor)
        assert result.success
"""

import base58
import pytest
from solders.keypair import Keypair

from tests.mocks import (
    TEST_EVM_PRIVATE_KEY,
    RecordingSigner,
    X402ServerMock,
    X402ServerMockConfig,
)
from tilde_mcp.config import ServerConfig


# ============================================================================
# Key Fixtures
# ============================================================================

@pytest.fixture
def evm_private_key() -> str:
    return TEST_EVM_PRIVATE_KEY


@pytest.fixture
def solana_private_key() -> str:
    """Deterministic base58 Solana secret key (64 bytes)."""
    keypair = Keypair.from_seed(bytes([7] * 32))
    return base58.b58encode(bytes(keypair)).decode()


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def server_config(evm_private_key: str, solana_private_key: str) -> ServerConfig:
    """
    Create a valid configuration holding both keys.

    Returns:
        ServerConfig paying on base first, then solana
    """
    return ServerConfig(
        evm_private_key=evm_private_key,
        solana_private_key=solana_private_key,
        supported_networks=["base", "solana"],
        max_num_results=10,
        search_api_url="https://search.example.com",
    )


@pytest.fixture
def evm_only_config(evm_private_key: str) -> ServerConfig:
    return ServerConfig(
        evm_private_key=evm_private_key,
        supported_networks=["base"],
        search_api_url="https://search.example.com",
    )


@pytest.fixture
def solana_only_config(solana_private_key: str) -> ServerConfig:
    return ServerConfig(
        solana_private_key=solana_private_key,
        supported_networks=["solana"],
        search_api_url="https://search.example.com",
    )


# ============================================================================
# x402 Server Mock Fixtures
# ============================================================================

@pytest.fixture
def x402_mock_config() -> X402ServerMockConfig:
    """
    Create an x402 server mock configuration.

    Override this fixture to customize the mock configuration.
    """
    return X402ServerMockConfig(base_url="https://api.example.com")


@pytest.fixture
def x402_mock(x402_mock_config: X402ServerMockConfig) -> X402ServerMock:
    """
    Create an x402 server mock for testing.

    The mock comes pre-configured with:
    - /api/price (paid, base)
    - /api/free (no payment)
    """
    return X402ServerMock(config=x402_mock_config)


@pytest.fixture
def search_mock() -> X402ServerMock:
    """x402 mock standing in for the search service."""
    mock = X402ServerMock(X402ServerMockConfig(base_url="https://search.example.com"))
    mock.add_endpoint(
        path="/search",
        content={
            "results": [
                {
                    "resource": "https://api.example.com/api/price",
                    "accepts": [mock.requirement()],
                    "score": 0.92,
                }
            ]
        },
    )
    return mock


@pytest.fixture
def recording_signer() -> RecordingSigner:
    return RecordingSigner()


@pytest.fixture
def endpoint_descriptor(x402_mock: X402ServerMock) -> dict:
    """Descriptor for /api/price as search would return it."""
    return {
        "resource": f"{x402_mock.config.base_url}/api/price",
        "accepts": [
            {
                "asset": x402_mock.config.default_asset,
                "network": "base",
                "payTo": x402_mock.config.default_recipient,
                "maxAmountRequired": x402_mock.config.default_price,
            }
        ],
    }
