"""task-conductor MCP server."""

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .logging_config import setup_logging
from .tools import register_all_tools

mcp = FastMCP("task-conductor")
config = load_config()
setup_logging(level=config.log_level, log_dir=config.log_dir, console=True)
register_all_tools(mcp, config)
