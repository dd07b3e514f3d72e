"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "task-conductor"
APP_AUTHOR = "task-conductor"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	sessions_db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Scheduler limits
	max_concurrency_per_type: int = 2
	research_group_limit: int = 2
	node_timeout: float = 120.0

	# Phase controller
	max_plan_attempts: int = 2
	confirm_node_types: list[str] = field(default_factory=list)

	# Providers
	claude_command: str = "claude"
	llm_timeout: float = 120.0
	exa_api_key: str = field(default_factory=lambda: os.getenv("EXA_API_KEY", ""))
	exa_num_results: int = 3

	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.sessions_db_path = self.data_dir / "sessions.db"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


_PATH_FIELDS = {"config_dir", "data_dir"}
_INT_FIELDS = {"max_concurrency_per_type", "research_group_limit", "max_plan_attempts", "exa_num_results"}
_FLOAT_FIELDS = {"node_timeout", "llm_timeout"}


def _coerce(key: str, val):
	if key in _PATH_FIELDS:
		return Path(os.path.expanduser(str(val)))
	if key in _INT_FIELDS:
		return int(val)
	if key in _FLOAT_FIELDS:
		return float(val)
	if key == "confirm_node_types" and isinstance(val, str):
		return [v.strip() for v in val.split(",") if v.strip()]
	return val


def _apply_env_overrides(config: Config) -> Config:
	"""Apply TASK_CONDUCTOR_* environment variable overrides."""
	env_map = {
		"TASK_CONDUCTOR_CONFIG_DIR": "config_dir",
		"TASK_CONDUCTOR_DATA_DIR": "data_dir",
		"TASK_CONDUCTOR_MAX_CONCURRENCY": "max_concurrency_per_type",
		"TASK_CONDUCTOR_NODE_TIMEOUT": "node_timeout",
		"TASK_CONDUCTOR_CONFIRM_TYPES": "confirm_node_types",
		"TASK_CONDUCTOR_CLAUDE_COMMAND": "claude_command",
		"TASK_CONDUCTOR_LOG_LEVEL": "log_level",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, _coerce(attr, val))
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key) and key not in ("sessions_db_path", "log_dir"):
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# Env may relocate config_dir, so resolve it before reading config.toml
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
