"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Dict, TypeVar

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_WEIGHTS = "semas=0.4,tmap_keyword=0.3,tmap_around=0.3"

T = TypeVar("T")


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    tmap_api_key: str = ""
    naver_client_id: str = ""
    naver_client_secret: str = ""
    semas_api_key: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    adapter_timeout_seconds: float = 5.0
    adapter_retries: int = 1
    semas_max_rows: int = 1000
    category_sample_cap: int = 30
    source_weights: Dict[str, float] = field(default_factory=lambda: parse_source_weights(DEFAULT_SOURCE_WEIGHTS))
    worker_port: int = 9000


def parse_source_weights(raw: str) -> Dict[str, float]:
    """Parse ``"semas=0.4,tmap_keyword=0.3"`` into a weight table."""
    weights: Dict[str, float] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        source_id, sep, value = chunk.partition("=")
        if not sep or not source_id.strip():
            raise ConfigError(f"Malformed SOURCE_WEIGHTS entry: {chunk!r}")
        try:
            weight = float(value)
        except ValueError as exc:
            raise ConfigError(f"SOURCE_WEIGHTS value for {source_id.strip()} is not numeric: {value!r}") from exc
        if weight < 0:
            raise ConfigError(f"SOURCE_WEIGHTS value for {source_id.strip()} must not be negative")
        weights[source_id.strip()] = weight
    if not weights:
        raise ConfigError("SOURCE_WEIGHTS must name at least one source")
    return weights


def _env_number(name: str, default: str, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name, default)
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a {cast.__name__}, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    tmap_api_key = os.getenv("TMAP_API_KEY", "")
    naver_client_id = os.getenv("NAVER_CLIENT_ID", "")
    naver_client_secret = os.getenv("NAVER_CLIENT_SECRET", "")
    semas_api_key = os.getenv("SEMAS_API_KEY", "")
    gemini_api_key = os.getenv("GEMINI_API_KEY", "")
    gemini_model = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    adapter_timeout_seconds = _env_number("ADAPTER_TIMEOUT_SECONDS", "5", float)
    adapter_retries = max(0, _env_number("ADAPTER_RETRIES", "1", int))
    semas_max_rows = _env_number("SEMAS_MAX_ROWS", "1000", int)
    category_sample_cap = _env_number("CATEGORY_SAMPLE_CAP", "30", int)
    source_weights = parse_source_weights(os.getenv("SOURCE_WEIGHTS", DEFAULT_SOURCE_WEIGHTS))
    worker_port = _env_number("WORKER_PORT", "9000", int)

    if not tmap_api_key:
        logger.warning("TMAP_API_KEY is not configured; TMAP requests will fail.")
    if not (naver_client_id and naver_client_secret):
        logger.warning("NAVER_CLIENT_ID/NAVER_CLIENT_SECRET are not configured; Naver local search will fail.")
    if not semas_api_key:
        logger.warning("SEMAS_API_KEY is not configured; SEMAS store statistics will fail.")
    if not gemini_api_key:
        logger.warning("GEMINI_API_KEY is not configured; advisory text generation is disabled.")

    return Settings(
        tmap_api_key=tmap_api_key,
        naver_client_id=naver_client_id,
        naver_client_secret=naver_client_secret,
        semas_api_key=semas_api_key,
        gemini_api_key=gemini_api_key,
        gemini_model=gemini_model,
        adapter_timeout_seconds=adapter_timeout_seconds,
        adapter_retries=adapter_retries,
        semas_max_rows=semas_max_rows,
        category_sample_cap=category_sample_cap,
        source_weights=source_weights,
        worker_port=worker_port,
    )
