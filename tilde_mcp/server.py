"""MCP server exposing the search_endpoints and execute_tool tools."""

import json
import logging
from typing import Annotated, Any, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .config import ServerConfig
from .models import EndpointDescriptor, HttpMethod, QualityRequirement, Temporal
from .tools import EndpointInvoker, InvocationResult, SearchInvoker

logger = logging.getLogger(__name__)

SERVER_NAME = "tilde-x402-server"

SEARCH_DESCRIPTION = (
    "Search for x402-compliant data provider endpoints using natural language. "
    "Returns ranked endpoints with payment metadata, network support, and evidence "
    "snippets. Use this when you need to find APIs that provide specific data "
    "(prices, market data, blockchain data, etc.). Payment amounts returned by the "
    "endpoint are in the decimals of the asset. Most of the time it is USDC, which has "
    "6 decimal places, so you will need to divide the number by 10**6"
)

EXECUTE_DESCRIPTION = (
    "Execute a call to an x402-enabled endpoint from search results. Automatically "
    "handles payment if the endpoint requires it (HTTP 402). Pass the endpoint object "
    "from search_endpoints results along with any parameters needed for the API call."
)

QUERY_DESCRIPTION = (
    "Detailed natural language search query. Be specific and thorough:\n"
    "- Include data type (e.g., 'spot price', 'funding rate', 'wallet balance')\n"
    "- Include asset symbols with variants (e.g., 'BTC/Bitcoin', 'ETH/Ethereum')\n"
    "- Include temporal context (e.g., 'real-time', 'historical', 'live')\n"
    "- Include network/blockchain ONLY for network-specific data "
    "(e.g., 'Solana validator metrics', 'Base gas prices')\n"
    "- For generic asset data, omit network - filtering is handled by "
    "SUPPORTED_NETWORKS configuration\n"
    "- Examples:\n"
    "  1. 'Bitcoin BTC spot price real-time live current market data cryptocurrency quote trading'\n"
    "  2. 'Ethereum ETH funding rate perpetual futures derivatives swap contract trading data'\n"
    "  3. 'Solana network validator count active nodes blockchain metrics performance statistics'"
)

INCLUDE_KEYWORDS_DESCRIPTION = (
    "REQUIRED: Array of 3-12 keywords that MUST appear in relevant API endpoints. "
    "You MUST provide at least 3 keywords and at most 12 keywords.\n\n"
    "Be specific and thorough:\n"
    "- Include data type keywords: 'price', 'spot', 'funding', 'balance', 'orderbook', 'ohlcv'\n"
    "- IMPORTANT: Include ALL asset symbol variants (synonyms) for better results: "
    "['BTC', 'Bitcoin', 'bitcoin', 'XBT'] for Bitcoin, ['ETH', 'Ethereum', 'ethereum'] for Ethereum\n"
    "- Include technical terms: 'quote', 'ticker', 'market data', 'candles', 'time series'\n"
    "- Include temporal keywords if relevant: 'real-time', 'live', 'historical', 'past'\n"
    "- Avoid generic terms like 'data', 'api', 'service'\n"
    "- Maximum 12 keywords - prioritize the most relevant terms\n"
    "- Quality over quantity, but be thorough - aim for 5-8 highly relevant keywords\n\n"
    "Example: For 'bitcoin price', use: "
    "['price', 'spot', 'bitcoin', 'btc', 'quote', 'market', 'current', 'real-time']"
)

EXCLUDE_KEYWORDS_DESCRIPTION = (
    "OPTIONAL: Array of 0-5 keywords indicating WRONG type of data. Results matching "
    "these keywords will be COMPLETELY EXCLUDED. Maximum 5 keywords allowed.\n\n"
    "Examples:\n"
    "- If query wants spot price, exclude: ['funding', 'rate', 'balance', 'wallet', 'transfer']\n"
    "- If query wants real-time, exclude: ['historical', 'past', 'archive']\n"
    "- If query wants historical, exclude: ['real-time', 'live', 'current']\n"
    "- If query says 'NOT X', include all X-related terms here\n"
    "- Only include keywords you're confident indicate irrelevant results\n"
    "- Can be empty array or omitted if no clear exclusions\n\n"
    "Example: For 'bitcoin price NOT funding rates', use: ['funding', 'rate', 'perpetual', 'futures']"
)

QUALITY_DESCRIPTION = (
    "Quality requirements to prioritize. Use 'reliability' for uptime concerns, "
    "'low-latency' for speed requirements, 'high-volume' for high-traffic needs. "
    "Use when user emphasizes quality, speed, or production readiness."
)

TEMPORAL_DESCRIPTION = (
    "Temporal requirements for the data. 'real-time' for current/live data "
    "(e.g., 'current price', 'live feed'), 'historical' for time-series/backtesting data "
    "(e.g., 'past prices', 'OHLCV data'), 'both' when either is acceptable. Extract from "
    "query context or infer from keywords like 'real-time', 'live', 'current' vs "
    "'historical', 'past', 'time-series'."
)

Keyword = Annotated[str, Field(min_length=2, max_length=50)]


def render_search_result(result: InvocationResult) -> str:
    """Search successes return the service's JSON untouched."""
    payload: Any = result.data if result.success else result.to_dict()
    return json.dumps(payload, indent=2)


def render_execute_result(result: InvocationResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


def create_server(
    config: ServerConfig,
    search_invoker: Optional[SearchInvoker] = None,
    endpoint_invoker: Optional[EndpointInvoker] = None,
) -> FastMCP:
    """Build the MCP server and register both tools.

    Args:
        config: Validated server configuration
        search_invoker: Invoker to use instead of one built from ``config``
        endpoint_invoker: Invoker to use instead of one built from ``config``

    Raises:
        ConfigurationError: If the search payment key is missing or malformed
    """
    search_invoker = search_invoker or SearchInvoker(config)
    endpoint_invoker = endpoint_invoker or EndpointInvoker(config)
    max_results = config.max_num_results

    mcp = FastMCP(SERVER_NAME)

    @mcp.tool(
        name="search_endpoints",
        description=SEARCH_DESCRIPTION,
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
    )
    async def search_endpoints(
        query: Annotated[str, Field(min_length=5, max_length=500, description=QUERY_DESCRIPTION)],
        mustIncludeKeywords: Annotated[
            list[Keyword],
            Field(min_length=3, max_length=12, description=INCLUDE_KEYWORDS_DESCRIPTION),
        ],
        numResults: Annotated[
            Optional[int],
            Field(
                ge=1,
                le=max_results,
                description=f"Number of results to return (1-{max_results}). "
                "Defaults to 10 if not specified.",
            ),
        ] = None,
        mustExcludeKeywords: Annotated[
            Optional[list[Keyword]],
            Field(max_length=5, description=EXCLUDE_KEYWORDS_DESCRIPTION),
        ] = None,
        qualityReqs: Annotated[
            Optional[list[QualityRequirement]], Field(description=QUALITY_DESCRIPTION)
        ] = None,
        temporal: Annotated[Optional[Temporal], Field(description=TEMPORAL_DESCRIPTION)] = None,
    ) -> str:
        result = await search_invoker.search(
            query,
            mustIncludeKeywords,
            must_exclude_keywords=mustExcludeKeywords,
            num_results=numResults,
            quality_reqs=qualityReqs,
            temporal=temporal,
        )
        return render_search_result(result)

    @mcp.tool(
        name="execute_tool",
        description=EXECUTE_DESCRIPTION,
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
    )
    async def execute_tool(
        endpoint: EndpointDescriptor,
        params: Optional[dict[str, Any]] = None,
        method: Optional[HttpMethod] = None,
        body: Any = None,
    ) -> str:
        result = await endpoint_invoker.execute(endpoint, params=params, method=method, body=body)
        return render_execute_result(result)

    logger.debug("Registered search_endpoints and execute_tool on %s", SERVER_NAME)
    return mcp
