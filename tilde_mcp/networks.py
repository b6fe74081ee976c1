"""Network classification and the EVM chain registry.

`classify` is the single place where a network name is mapped to a chain
family. Solana is the only non-EVM family; every other name is treated as an
EVM chain so that new EVM networks work without a code change.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import ConfigurationError


class ChainFamily(str, Enum):
    """Signing/transaction model shared by a group of networks."""
    EVM = "evm"
    SOLANA = "solana"

    @property
    def key_name(self) -> str:
        """Environment variable holding the private key for this family."""
        return f"{self.name}_PRIVATE_KEY"


def classify(network: str) -> ChainFamily:
    """Map a network name to its chain family.

    Only the literal "solana" (any case) is Solana; everything else is EVM.
    """
    if network.lower() == "solana":
        return ChainFamily.SOLANA
    return ChainFamily.EVM


@dataclass(frozen=True)
class EvmChain:
    """An EVM chain a signer can be bound to."""
    name: str
    chain_id: int
    rpc_url: str

    @property
    def caip2(self) -> str:
        return f"eip155:{self.chain_id}"

    def matches(self, network: str) -> bool:
        """Whether a network name refers to this chain."""
        normalized = network.lower()
        return normalized == self.name or normalized == self.caip2


# Default public RPC endpoints, overridable with EVM_RPC_URL
EVM_CHAINS: dict[str, EvmChain] = {
    chain.name: chain
    for chain in (
        EvmChain("base", 8453, "https://mainnet.base.org"),
        EvmChain("base-sepolia", 84532, "https://sepolia.base.org"),
        EvmChain("ethereum", 1, "https://cloudflare-eth.com"),
        EvmChain("polygon", 137, "https://polygon-rpc.com"),
        EvmChain("polygon-amoy", 80002, "https://rpc-amoy.polygon.technology"),
        EvmChain("avalanche", 43114, "https://api.avax.network/ext/bc/C/rpc"),
        EvmChain("avalanche-fuji", 43113, "https://api.avax-test.network/ext/bc/C/rpc"),
    )
}

DEFAULT_EVM_CHAIN = "base"

SOLANA_MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"

# EIP-712 domain data of USDC deployments, keyed by chain id then lower-cased address.
# The name must be exactly what the token contract's name() returns.
KNOWN_TOKENS: dict[int, dict[str, dict[str, str]]] = {
    8453: {
        "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913": {"name": "USD Coin", "version": "2"},
    },
    84532: {
        "0x036cbd53842c5426634e7929541ec2318f3dcf7e": {"name": "USDC", "version": "2"},
    },
    137: {
        "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359": {"name": "USD Coin", "version": "2"},
    },
    80002: {
        "0x41e94eb019c0762f9bfcf9fb1e58725bfb0e7582": {"name": "USDC", "version": "2"},
    },
    43114: {
        "0xb97ef9ef8734c71904d8002f8b6bc66dd9c48a6e": {"name": "USD Coin", "version": "2"},
    },
    43113: {
        "0x5425890298aed601595a70ab815c96711a31bc65": {"name": "USD Coin", "version": "2"},
    },
}


def find_evm_chain(network: str) -> Optional[EvmChain]:
    """Look up a registered chain by name or CAIP-2 identifier."""
    normalized = network.strip().lower()
    if normalized in EVM_CHAINS:
        return EVM_CHAINS[normalized]
    for chain in EVM_CHAINS.values():
        if chain.caip2 == normalized:
            return chain
    return None


def get_evm_chain(network: str = DEFAULT_EVM_CHAIN, rpc_url: Optional[str] = None) -> EvmChain:
    """Resolve the EVM chain signers are bound to.

    Args:
        network: Chain name ("base") or CAIP-2 identifier ("eip155:8453")
        rpc_url: Optional RPC endpoint overriding the registry default

    Raises:
        ConfigurationError: If the chain is not in the registry
    """
    chain = find_evm_chain(network)
    if chain is None:
        raise ConfigurationError(
            f"Unsupported EVM chain '{network}'. "
            f"Known chains: {', '.join(sorted(EVM_CHAINS))}"
        )
    if rpc_url:
        return EvmChain(chain.name, chain.chain_id, rpc_url)
    return chain


def get_token_domain(chain_id: int, asset: str) -> Optional[dict[str, str]]:
    """EIP-712 domain name/version for a known token, if any."""
    return KNOWN_TOKENS.get(chain_id, {}).get(asset.lower())
