"""Configuration management for GlobeAssist."""

import os
from dataclasses import dataclass, field
from typing import List, Sequence
from dotenv import load_dotenv

MAX_NUMBERED_KEYS = 20


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    llm_api_keys: List[str] = field(default_factory=list)
    search_api_keys: List[str] = field(default_factory=list)
    port: int = 8000
    host: str = "0.0.0.0"
    log_level: str = "INFO"
    app_url: str = "http://localhost:3000"
    database_path: str = "globeassist.db"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    serper_base_url: str = "https://google.serper.dev"
    search_model: str = "perplexity/sonar-pro-search"
    parser_model: str = "openai/gpt-4.1-mini"
    chat_model: str = "openai/gpt-oss-120b:free"
    max_retries: int = 3
    request_timeout_seconds: float = 45.0
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 20.0
    default_cooldown_seconds: float = 60.0
    max_cooldown_wait_seconds: float = 5.0
    llm_min_interval_seconds: float = 1.0
    search_min_interval_seconds: float = 0.25

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        if self.llm_min_interval_seconds < 0 or self.search_min_interval_seconds < 0:
            raise ValueError("Minimum request intervals cannot be negative")


def _split_keys(raw: str) -> List[str]:
    return [key.strip() for key in raw.split(",") if key.strip()]


def collect_keys(pool_var: str, legacy_vars: Sequence[str] = ()) -> List[str]:
    """Gather a credential pool from `POOL_VAR`, `POOL_VAR_1..N` style
    numbered variables and any legacy single-key variables.

    Order is preserved and duplicates are dropped.
    """
    numbered_prefix = pool_var[:-1] if pool_var.endswith("S") else pool_var
    keys: List[str] = _split_keys(os.getenv(pool_var, ""))
    for index in range(1, MAX_NUMBERED_KEYS + 1):
        keys.extend(_split_keys(os.getenv(f"{numbered_prefix}_{index}", "")))
    for name in legacy_vars:
        keys.extend(_split_keys(os.getenv(name, "")))

    unique: List[str] = []
    for key in keys:
        if key not in unique:
            unique.append(key)
    return unique


def load_config(use_dotenv: bool = True) -> Config:
    """Load configuration from environment variables.

    Returns:
        Config: Configured application settings

    Raises:
        ValueError: If a numeric setting is malformed or out of range
    """
    if use_dotenv:
        load_dotenv()

    return Config(
        llm_api_keys=collect_keys(
            "OPENROUTER_API_KEYS",
            legacy_vars=("OPENROUTER_API_KEY_SONAR_SEARCH", "OPENROUTER_API_KEY"),
        ),
        search_api_keys=collect_keys(
            "SERPER_API_KEYS", legacy_vars=("SERPER_GOOGLE_SEARCH_API",)
        ),
        port=int(os.getenv("PORT", "8000")),
        host=os.getenv("HOST", "0.0.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        app_url=os.getenv("APP_URL", "http://localhost:3000"),
        database_path=os.getenv("DATABASE_PATH", "globeassist.db"),
        openrouter_base_url=os.getenv(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
        ),
        serper_base_url=os.getenv("SERPER_BASE_URL", "https://google.serper.dev"),
        search_model=os.getenv("SEARCH_MODEL", "perplexity/sonar-pro-search"),
        parser_model=os.getenv("PARSER_MODEL", "openai/gpt-4.1-mini"),
        chat_model=os.getenv("CHAT_MODEL", "openai/gpt-oss-120b:free"),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "45")),
        backoff_base_seconds=float(os.getenv("BACKOFF_BASE_SECONDS", "1")),
        backoff_max_seconds=float(os.getenv("BACKOFF_MAX_SECONDS", "20")),
        default_cooldown_seconds=float(os.getenv("DEFAULT_COOLDOWN_SECONDS", "60")),
        max_cooldown_wait_seconds=float(os.getenv("MAX_COOLDOWN_WAIT_SECONDS", "5")),
        llm_min_interval_seconds=float(os.getenv("LLM_MIN_INTERVAL_SECONDS", "1.0")),
        search_min_interval_seconds=float(
            os.getenv("SEARCH_MIN_INTERVAL_SECONDS", "0.25")
        ),
    )
