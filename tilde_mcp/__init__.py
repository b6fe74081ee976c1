"""tilde x402 MCP server - paid endpoint search and execution for agents."""

__version__ = "1.0.0"

from .config import ConfigLoadResult, FilterDefaults, ServerConfig, load_config
from .exceptions import (
    ConfigurationError,
    MissingKeyError,
    NoMatchingRequirementError,
    PaymentError,
    SignerCreationError,
    TildeMCPError,
    ToolExecutionError,
)
from .networks import ChainFamily, EvmChain, classify, get_evm_chain
from .payment_client import PaymentAwareClient, wrap_client
from .signers import EvmSigner, Signer, SolanaSigner, create_signer

__all__ = [
    "__version__",
    # Configuration
    "ConfigLoadResult",
    "FilterDefaults",
    "ServerConfig",
    "load_config",
    # Errors
    "ConfigurationError",
    "MissingKeyError",
    "NoMatchingRequirementError",
    "PaymentError",
    "SignerCreationError",
    "TildeMCPError",
    "ToolExecutionError",
    # Networks and signers
    "ChainFamily",
    "EvmChain",
    "classify",
    "get_evm_chain",
    "EvmSigner",
    "Signer",
    "SolanaSigner",
    "create_signer",
    # Payment client
    "PaymentAwareClient",
    "wrap_client",
]
