"""
Runtime settings.
Values come from the environment, with a local .env file loaded first.
"""

import os  # environment access
import sys  # log sink
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv  # .env support
from loguru import logger  # console logging

from .catalog import DEFAULT_BASE_URL
from .debounce import DEFAULT_DELAY_S
from .preset_library import DEFAULT_MAX_PRESETS


@dataclass(frozen=True)
class Settings:
	tmdb_api_key: Optional[str] = None
	tmdb_bearer_token: Optional[str] = None
	catalog_base_url: str = DEFAULT_BASE_URL
	catalog_timeout_s: float = 20.0
	debounce_s: float = DEFAULT_DELAY_S
	max_presets: int = DEFAULT_MAX_PRESETS
	presets_path: str = "data/presets.json"
	log_level: str = "INFO"

	@property
	def has_catalog_credentials(self) -> bool:
		return bool(self.tmdb_api_key or self.tmdb_bearer_token)


def _env_float(name: str, default: float) -> float:
	raw = os.getenv(name)
	if not raw:
		return default
	try:
		return float(raw)
	except ValueError:
		logger.warning(f"[Settings] {name}={raw!r} is not a number, using {default}")
		return default


def load_settings(env_file: Optional[str] = None) -> Settings:
	"""Read settings from the environment (after loading `.env` if present)."""
	load_dotenv(env_file)
	return Settings(
		tmdb_api_key=os.getenv("TMDB_API_KEY") or None,
		tmdb_bearer_token=os.getenv("TMDB_BEARER_TOKEN") or None,
		catalog_base_url=os.getenv("CATALOG_BASE_URL", DEFAULT_BASE_URL),
		catalog_timeout_s=_env_float("CATALOG_TIMEOUT_S", 20.0),
		debounce_s=_env_float("FILTER_DEBOUNCE_MS", DEFAULT_DELAY_S * 1000) / 1000.0,
		max_presets=int(_env_float("MAX_FILTER_PRESETS", DEFAULT_MAX_PRESETS)),
		presets_path=os.getenv("PRESETS_PATH", "data/presets.json"),
		log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
	)


def configure_logging(level: str = "INFO") -> None:
	"""Send loguru output to stderr at `level`."""
	logger.remove()
	logger.add(sys.stderr, level=level.upper())
