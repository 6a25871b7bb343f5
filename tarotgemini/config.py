"""Environment-driven settings. Call Settings.from_env() at the entry point."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

from .llm import LLMConfig
from .prompts import PromptStyle

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class ConfigError(ValueError):
    """Raised when an environment value cannot be parsed."""


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must be >= 0, got {value}")
    return value


def _env_ladder(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        rungs = tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a comma-separated list of integers, got {raw!r}") from exc
    if not rungs or any(r <= 0 for r in rungs) or list(rungs) != sorted(rungs):
        raise ConfigError(f"{name} must be ascending positive integers, got {raw!r}")
    return rungs


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_MODEL
    gemini_base_url: str = DEFAULT_BASE_URL
    connect_timeout: float = 15.0
    call_timeout: float = 60.0
    max_retries: int = 2
    max_overload_retries: int = 4
    token_ladder: Tuple[int, ...] = (2048, 4096)
    prompt_style: PromptStyle = PromptStyle.VERBOSE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        style = (os.getenv("GEMINI_PROMPT_STYLE") or PromptStyle.VERBOSE.value).strip().lower()
        try:
            prompt_style = PromptStyle(style)
        except ValueError as exc:
            raise ConfigError(f"GEMINI_PROMPT_STYLE must be 'verbose' or 'compact', got {style!r}") from exc
        return cls(
            # Empty key is a valid state: the client answers with the local fallback
            gemini_api_key=(os.getenv("GEMINI_API_KEY") or os.getenv("GEMINI_TOKEN") or "").strip(),
            gemini_model=os.getenv("GEMINI_MODEL") or DEFAULT_MODEL,
            gemini_base_url=os.getenv("GEMINI_BASE_URL") or DEFAULT_BASE_URL,
            connect_timeout=_env_float("GEMINI_CONNECT_TIMEOUT", 15.0),
            call_timeout=_env_float("GEMINI_CALL_TIMEOUT", 60.0),
            max_retries=_env_int("GEMINI_MAX_RETRIES", 2),
            max_overload_retries=_env_int("GEMINI_MAX_OVERLOAD_RETRIES", 4),
            token_ladder=_env_ladder("GEMINI_TOKEN_LADDER", (2048, 4096)),
            prompt_style=prompt_style,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.gemini_api_key)

    def llm_config(self) -> LLMConfig:
        return LLMConfig(
            endpoint_base_url=self.gemini_base_url,
            model=self.gemini_model,
            api_key=self.gemini_api_key,
            connect_timeout=self.connect_timeout,
            total_call_timeout=self.call_timeout,
            max_retries=self.max_retries,
            max_overload_retries=self.max_overload_retries,
            token_budget_ladder=self.token_ladder,
            prompt_style=self.prompt_style,
        )


# httpx logs each request URL at INFO, and the Gemini key travels in its query string
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
