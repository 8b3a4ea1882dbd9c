"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import platformdirs
from dotenv import load_dotenv

from .core.retry import RetryConfig

APP_NAME = "gsheet-agent"
APP_AUTHOR = "gsheet-agent"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	log_dir: Path = field(init=False)

	# Spreadsheet access
	spreadsheet_id: str = ""
	credentials_file: Optional[Path] = None
	credentials_env: str = "CREDENTIALS_CONFIG"

	# Retry behaviour
	retry_enabled: bool = True
	max_attempts: int = 3
	base_delay_ms: int = 1000
	max_delay_ms: int = 30000

	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def retry_config(self) -> RetryConfig:
		"""Build the retry settings handed to the request executor."""
		return RetryConfig(
			enabled=self.retry_enabled,
			max_attempts=self.max_attempts,
			base_delay_ms=self.base_delay_ms,
			max_delay_ms=self.max_delay_ms,
		)


PATH_FIELDS = {"config_dir", "data_dir", "credentials_file"}
INT_FIELDS = {"max_attempts", "base_delay_ms", "max_delay_ms"}
BOOL_FIELDS = {"retry_enabled"}


def _coerce(attr: str, val):
	if attr in PATH_FIELDS:
		return Path(os.path.expanduser(str(val)))
	if attr in INT_FIELDS:
		return int(val)
	if attr in BOOL_FIELDS and isinstance(val, str):
		return val.strip().lower() in ("1", "true", "yes", "on")
	return val


def _apply_env_overrides(config: Config) -> Config:
	"""Apply GSHEET_AGENT_* environment variable overrides."""
	env_map = {
		"GSHEET_AGENT_CONFIG_DIR": "config_dir",
		"GSHEET_AGENT_DATA_DIR": "data_dir",
		"GSHEET_AGENT_SPREADSHEET_ID": "spreadsheet_id",
		"GSHEET_AGENT_CREDENTIALS_FILE": "credentials_file",
		"GSHEET_AGENT_CREDENTIALS_ENV": "credentials_env",
		"GSHEET_AGENT_RETRY_ENABLED": "retry_enabled",
		"GSHEET_AGENT_MAX_ATTEMPTS": "max_attempts",
		"GSHEET_AGENT_BASE_DELAY_MS": "base_delay_ms",
		"GSHEET_AGENT_MAX_DELAY_MS": "max_delay_ms",
		"LOG_LEVEL": "log_level",
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
		if hasattr(config, key) and key != "log_dir":
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config(dotenv_path: Optional[Path] = None) -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	load_dotenv(dotenv_path)
	config = Config()
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	# env vars win over the toml file
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
