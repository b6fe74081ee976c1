"""Entry point for running the MCP server from a checkout (``python main.py``)."""

from tilde_mcp.main import main

if __name__ == "__main__":
    main()
