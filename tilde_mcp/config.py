"""Configuration for the tilde x402 MCP server."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError, MissingKeyError
from .networks import (
    ChainFamily,
    DEFAULT_EVM_CHAIN,
    EvmChain,
    SOLANA_MAINNET_RPC_URL,
    classify,
    get_evm_chain,
)

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_API_URL = "https://search-api-0tde.onrender.com"
DEFAULT_MAX_NUM_RESULTS = 10


def parse_list(value: Optional[str]) -> list[str]:
    """Split a comma-separated env value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class FilterDefaults:
    """Search filters applied to every search; empty means no filter."""

    supported_networks: list[str] = field(default_factory=list)
    supported_assets: list[str] = field(default_factory=list)
    supported_facilitators: list[str] = field(default_factory=list)


@dataclass
class ServerConfig:
    """Configuration for the MCP server."""

    # Private keys, at least one is required
    evm_private_key: Optional[str] = None
    solana_private_key: Optional[str] = None

    # Search filter defaults
    supported_networks: list[str] = field(default_factory=list)
    supported_assets: list[str] = field(default_factory=list)
    supported_facilitators: list[str] = field(default_factory=list)

    max_num_results: int = DEFAULT_MAX_NUM_RESULTS
    search_api_url: str = DEFAULT_SEARCH_API_URL

    # Chain transports
    evm_chain: str = DEFAULT_EVM_CHAIN
    evm_rpc_url: Optional[str] = None
    solana_rpc_url: str = SOLANA_MAINNET_RPC_URL

    # OpenTelemetry configuration
    otel_endpoint: str = ""
    otel_console_export: bool = False

    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"ServerConfig(evm_key={'set' if self.evm_private_key else 'unset'}, "
            f"solana_key={'set' if self.solana_private_key else 'unset'}, "
            f"supported_networks={self.supported_networks}, "
            f"max_num_results={self.max_num_results}, evm_chain={self.evm_chain!r})"
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Load configuration from environment variables.

        MAX_NUM_RESULTS must already be a valid integer; ``load_config``
        reports it as a validation error instead of raising.
        """
        env = os.environ if environ is None else environ
        return cls(
            evm_private_key=env.get("EVM_PRIVATE_KEY") or None,
            solana_private_key=env.get("SOLANA_PRIVATE_KEY") or None,
            supported_networks=parse_list(env.get("SUPPORTED_NETWORKS")),
            supported_assets=parse_list(env.get("SUPPORTED_ASSETS")),
            supported_facilitators=parse_list(env.get("SUPPORTED_FACILITATORS")),
            max_num_results=int(env.get("MAX_NUM_RESULTS") or DEFAULT_MAX_NUM_RESULTS),
            search_api_url=(env.get("SEARCH_API_URL") or DEFAULT_SEARCH_API_URL).rstrip("/"),
            evm_chain=env.get("EVM_CHAIN") or DEFAULT_EVM_CHAIN,
            evm_rpc_url=env.get("EVM_RPC_URL") or None,
            solana_rpc_url=env.get("SOLANA_RPC_URL") or SOLANA_MAINNET_RPC_URL,
            otel_endpoint=env.get("OTEL_EXPORTER_OTLP_ENDPOINT", ""),
            otel_console_export=env.get("OTEL_CONSOLE_EXPORT", "").lower() == "true",
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def filter_defaults(self) -> FilterDefaults:
        return FilterDefaults(
            supported_networks=list(self.supported_networks),
            supported_assets=list(self.supported_assets),
            supported_facilitators=list(self.supported_facilitators),
        )

    def key_for(self, family: ChainFamily) -> Optional[str]:
        """Private key configured for a chain family, if any."""
        if family is ChainFamily.SOLANA:
            return self.solana_private_key
        return self.evm_private_key

    def require_key(self, family: ChainFamily, message: str) -> str:
        """Return the family's key or raise MissingKeyError with ``message``."""
        key = self.key_for(family)
        if not key:
            raise MissingKeyError(family.key_name, message)
        return key

    def resolve_evm_chain(self) -> EvmChain:
        return get_evm_chain(self.evm_chain, self.evm_rpc_url)

    def validate(self) -> list[str]:
        """Check the cross-field rules and return every problem found.

        Each problem is a multi-line message with an actionable hint.
        """
        errors: list[str] = []

        if self.max_num_results <= 0:
            errors.append(
                "MAX_NUM_RESULTS must be a positive integer\n"
                f'Current value: "{self.max_num_results}"\n'
                "Example: MAX_NUM_RESULTS=10"
            )

        has_evm = bool(self.evm_private_key)
        has_solana = bool(self.solana_private_key)

        if not has_evm and not has_solana:
            errors.append(
                "At least one of EVM_PRIVATE_KEY or SOLANA_PRIVATE_KEY is required\n"
                "Add one or both keys to your MCP client config env section"
            )
        elif not self.supported_networks:
            if has_evm and has_solana:
                suggestion = "SUPPORTED_NETWORKS=base,solana (you have both keys)"
            elif has_evm:
                suggestion = "SUPPORTED_NETWORKS=base (you have EVM key)"
            else:
                suggestion = "SUPPORTED_NETWORKS=solana (you have Solana key)"
            errors.append(
                "SUPPORTED_NETWORKS is required\n"
                "Set SUPPORTED_NETWORKS to match the keys you provided:\n"
                f"  Suggestion: {suggestion}\n"
                "Add SUPPORTED_NETWORKS to your MCP client config env section"
            )
        else:
            for network in self.supported_networks:
                family = classify(network)
                if self.key_for(family):
                    continue
                removal = "solana" if family is ChainFamily.SOLANA else network
                errors.append(
                    f"Network '{network}' in SUPPORTED_NETWORKS requires {family.key_name}\n"
                    f'Either add {family.key_name} or remove "{removal}" from SUPPORTED_NETWORKS'
                )

        if has_evm:
            try:
                self.resolve_evm_chain()
            except ConfigurationError as e:
                errors.append(f"EVM_CHAIN: {e}")

        return errors


@dataclass
class ConfigLoadResult:
    """Outcome of loading configuration; ``config`` is None when invalid."""

    config: Optional[ServerConfig]
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.config is not None and not self.errors


def load_config(environ: Optional[Mapping[str, str]] = None) -> ConfigLoadResult:
    """Load and validate configuration.

    Reads ``.env`` into the process environment first when ``environ`` is not
    given. Never exits the process; the caller decides what to do with errors.

    Args:
        environ: Mapping to read instead of ``os.environ``

    Returns:
        ConfigLoadResult with the config or the list of validation errors
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    raw_max = environ.get("MAX_NUM_RESULTS")
    if raw_max:
        try:
            int(raw_max)
        except ValueError:
            return ConfigLoadResult(config=None, errors=[
                "MAX_NUM_RESULTS must be a positive integer\n"
                f'Current value: "{raw_max}"\n'
                "Example: MAX_NUM_RESULTS=10"
            ])

    config = ServerConfig.from_env(environ)
    errors = config.validate()
    if errors:
        logger.debug("Configuration rejected with %d error(s)", len(errors))
        return ConfigLoadResult(config=None, errors=errors)
    return ConfigLoadResult(config=config)
