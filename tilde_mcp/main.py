"""Process entry point for the tilde x402 MCP server.

Startup order: logging on stderr, configuration, payment capabilities,
tracing and metrics, then the MCP server over stdio. Any configuration
problem is printed and the process exits with status 1 before the stdio
transport is opened.
"""

import logging
import sys

from .config import ServerConfig, load_config
from .exceptions import ConfigurationError
from .metrics import init_metrics
from .server import create_server
from .tracing import init_tracing

logger = logging.getLogger("tilde_mcp")


def configure_logging(level: str = "INFO") -> None:
    """Send all logging to stderr; stdout carries MCP frames."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def log_capabilities(config: ServerConfig) -> None:
    logger.info("Maximum search results: %d", config.max_num_results)
    logger.info("Payment capabilities:")
    if config.evm_private_key:
        logger.info("  EVM payments available (%s)", config.evm_chain)
    if config.solana_private_key:
        logger.info("  Solana payments available")


def main() -> None:
    configure_logging()

    result = load_config()
    if not result.ok:
        for error in result.errors:
            for line in error.splitlines():
                logger.error(line)
        sys.exit(1)

    config = result.config
    configure_logging(config.log_level)
    log_capabilities(config)

    init_tracing(
        otlp_endpoint=config.otel_endpoint or None,
        enable_console_export=config.otel_console_export,
    )
    init_metrics()

    try:
        server = create_server(config)
    except ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)

    logger.info("Starting MCP server on stdio")
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
