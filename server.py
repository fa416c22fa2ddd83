"""FastMCP entry point for the CodeSensei analysis server."""

from __future__ import annotations

import logging
from typing import Optional

from fastmcp import FastMCP

from codesensei.analyzer import AnalysisPipeline
from codesensei.config import SERVER_NAME, SERVER_VERSION, PipelineConfig
from codesensei.mcp_tools import register_tools

# ── Logging ──────────────────────────────────────────────────────────────────
# Configure logging for all codesensei.* modules so inference calls,
# retries, and context decisions show up in the server's stderr output.

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
    datefmt="%H:%M:%S",
)
# Keep boto noise at WARNING
logging.getLogger("botocore").setLevel(logging.WARNING)
logging.getLogger("boto3").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_server(config: Optional[PipelineConfig] = None) -> FastMCP:
    """Create and configure the FastMCP server instance."""
    config = config or PipelineConfig()
    mcp = FastMCP(
        name=SERVER_NAME,
        version=SERVER_VERSION,
    )
    register_tools(mcp, AnalysisPipeline(config))
    return mcp


# Configuration is read once, here, and handed to the pipeline
CONFIG = PipelineConfig()

# Module-level server instance (used by FastMCP CLI and stdio transport)
mcp = create_server(CONFIG)


def main() -> None:
    """Entry point, runs as streamable HTTP MCP server."""
    logging.getLogger(__name__).info(
        "Starting %s v%s on %s:%d model=%s",
        SERVER_NAME,
        SERVER_VERSION,
        CONFIG.server_host,
        CONFIG.server_port,
        CONFIG.model_id,
    )
    try:
        mcp.run(
            transport="streamable-http",
            host=CONFIG.server_host,
            port=CONFIG.server_port,
        )
    except OSError as e:
        logging.getLogger(__name__).error("Server failed to start: %s", e)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
