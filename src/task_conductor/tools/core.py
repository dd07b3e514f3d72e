"""Core health check tool."""

import json
import shutil

from mcp.server.fastmcp import FastMCP

from ..config import Config


def register_core_tools(mcp: FastMCP, config: Config) -> None:
	"""Register core tools."""

	@mcp.tool()
	async def health_check() -> str:
		"""
		Check the health of the task-conductor server.
		Returns status of all components.
		"""
		status = {
			"server": "running",
			"config_dir": str(config.config_dir),
			"data_dir": str(config.data_dir),
			"sessions_db_exists": config.sessions_db_path.exists(),
			"claude_cli": shutil.which(config.claude_command) is not None,
			"exa_api_key_set": bool(config.exa_api_key),
			"max_concurrency_per_type": config.max_concurrency_per_type,
			"confirm_node_types": list(config.confirm_node_types),
		}
		return json.dumps(status, indent=2)
