"""
llm.py — Interpretation client for the Gemini generateContent REST endpoint.

The client never surfaces a hard failure to its caller: overload responses are
retried with exponential backoff, truncated answers climb the token ladder,
transport failures are retried with linear backoff, and when everything else
is exhausted the answer comes from generate_fallback_text(), a local offline
template. Degraded answers carry a "[Nota: ...]" annotation and
InterpretationResult.degraded is set.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

import httpx

from .prompts import PromptStyle, build_card_meaning_prompt, build_prompt
from .tarot_core import DrawnCard

logger = logging.getLogger(__name__)

OVERLOAD_STATUSES = frozenset({429, 503})
MAX_TOKENS_REASON = "MAX_TOKENS"

NO_API_KEY_NOTE = "[Nota: GEMINI_API_KEY no configurada]"


class GeminiClientError(RuntimeError):
    """Errors raised while talking to Gemini. Handled inside the client."""


class GenerationHTTPError(GeminiClientError):
    """Non-2xx, non-overload status for one attempt."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:300]}")


class MalformedResponseError(GeminiClientError):
    """2xx response whose body is not JSON at all."""


# -----------------------------------------------------------------------------
# Configuration & result types
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class LLMConfig:
    endpoint_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    model: str = "gemini-2.5-flash"
    api_key: str = ""
    connect_timeout: float = 15.0
    total_call_timeout: float = 60.0
    max_retries: int = 2
    max_overload_retries: int = 4
    token_budget_ladder: Tuple[int, ...] = (2048, 4096)
    temperature: float = 0.0
    max_output_chars: int = 300
    # MAX_TOKENS answers shorter than this are treated as unusable
    truncation_min_chars: int = 200
    prompt_style: PromptStyle = PromptStyle.VERBOSE

    def __post_init__(self) -> None:
        ladder = tuple(int(r) for r in self.token_budget_ladder)
        if not ladder or any(r <= 0 for r in ladder):
            raise ValueError("token_budget_ladder needs at least one positive rung")
        if list(ladder) != sorted(ladder):
            raise ValueError("token_budget_ladder must be ascending")
        object.__setattr__(self, "token_budget_ladder", ladder)
        if self.max_retries < 0 or self.max_overload_retries < 0:
            raise ValueError("retry budgets must be >= 0")

    @property
    def generate_url(self) -> str:
        return f"{self.endpoint_base_url.rstrip('/')}/{self.model}:generateContent"


@dataclass(frozen=True)
class InterpretationResult:
    """Either text (success) or error (failure), never both."""
    text: Optional[str] = None
    error: Optional[str] = None
    degraded: bool = False

    def __post_init__(self) -> None:
        if (self.text is None) == (self.error is None):
            raise ValueError("InterpretationResult needs exactly one of text / error")

    @classmethod
    def success(cls, text: str, degraded: bool = False) -> "InterpretationResult":
        return cls(text=text, degraded=degraded)

    @classmethod
    def failure(cls, error: str) -> "InterpretationResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.text is not None


# -----------------------------------------------------------------------------
# Transport
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BackendResponse:
    status_code: int
    body: str


class GenerationBackend:
    """Capability interface for "send this prompt, give me the raw answer"."""

    async def generate(self, prompt: str, max_output_tokens: int) -> BackendResponse:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class HttpGenerationBackend(GenerationBackend):
    """Gemini REST transport over one pooled httpx.AsyncClient."""

    def __init__(self, config: LLMConfig, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.total_call_timeout, connect=config.connect_timeout),
        )

    def build_payload(self, prompt: str, max_output_tokens: int) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._config.temperature,
                "maxOutputTokens": max_output_tokens,
            },
        }

    async def generate(self, prompt: str, max_output_tokens: int) -> BackendResponse:
        logger.debug(
            "POST %s (model=%s, maxOutputTokens=%d, prompt length=%d)",
            self._config.generate_url, self._config.model, max_output_tokens, len(prompt),
        )
        # httpx has no whole-call deadline; wait_for bounds connect + read + body
        response = await asyncio.wait_for(
            self._http.post(
                self._config.generate_url,
                params={"key": self._config.api_key},
                json=self.build_payload(prompt, max_output_tokens),
            ),
            timeout=self._config.total_call_timeout,
        )
        return BackendResponse(status_code=response.status_code, body=response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


# -----------------------------------------------------------------------------
# Response parsing
# -----------------------------------------------------------------------------

def extract_text(node: Any) -> str:
    """
    Recursively pull text out of a parsed-JSON node.

    str -> itself; list -> non-blank pieces joined by newline;
    dict -> its "parts", else a direct "text"/"output" string, else "content".
    Anything else yields "".
    """
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        pieces = [extract_text(item) for item in node]
        return "\n".join(p for p in pieces if p.strip())
    if isinstance(node, dict):
        parts = node.get("parts")
        if isinstance(parts, list):
            text = extract_text(parts)
            if text.strip():
                return text
        for key in ("text", "output"):
            value = node.get(key)
            if isinstance(value, str) and value.strip():
                return value
        if "content" in node:
            return extract_text(node["content"])
    return ""


@dataclass(frozen=True)
class ParsedResponse:
    text: str
    finish_reason: Optional[str] = None
    raw: bool = False  # text is the unparsed body; still stripped and capped like any answer

    @property
    def truncated(self) -> bool:
        return (self.finish_reason or "").upper() == MAX_TOKENS_REASON


def _first_object(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


def _entry_text(entry: Dict[str, Any]) -> str:
    if "content" in entry:
        text = extract_text(entry["content"])
        if text.strip():
            return text
    for key in ("text", "output"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def parse_generation_response(body: str) -> ParsedResponse:
    """
    Probe the known response shapes in order:
    candidates[0] -> outputs[0] -> top-level "output" -> top-level "content".
    When none yields text the raw body is returned with raw=True.
    Raises MalformedResponseError when the body is not JSON.
    """
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError(f"Response body is not JSON: {body[:200]!r}") from exc

    finish_reason: Optional[str] = None
    if isinstance(data, dict):
        for key in ("candidates", "outputs"):
            entry = _first_object(data.get(key))
            if entry is None:
                continue
            reason = entry.get("finishReason")
            if isinstance(reason, str) and finish_reason is None:
                finish_reason = reason
            text = _entry_text(entry)
            if text.strip():
                return ParsedResponse(text=text, finish_reason=reason if isinstance(reason, str) else None)

        output = data.get("output")
        if isinstance(output, str) and output.strip():
            return ParsedResponse(text=output)

        if "content" in data:
            text = extract_text(data["content"])
            if text.strip():
                return ParsedResponse(text=text)

    return ParsedResponse(text=body, finish_reason=finish_reason, raw=True)


# -----------------------------------------------------------------------------
# Local fallback
# -----------------------------------------------------------------------------

_CARD_NAME_RE = re.compile(r"Carta: ([\w\- ]+)")


def generate_fallback_text(prompt: str) -> str:
    """Offline interpretation built only from the card names found in the prompt."""
    names = [m.strip() for m in _CARD_NAME_RE.findall(prompt or "") if m.strip()]
    if not names:
        return (
            "Interpretación (simulada): Las cartas indican que se aproxima un periodo de cambio. "
            "Mantén la mente abierta y actúa con honestidad."
        )
    return "\n\n".join([
        "Interpretación (simulada):",
        f"Resumen de las cartas: {', '.join(names)}",
        "En general, estas cartas sugieren una mezcla de introspección y acción. "
        "Observa las posiciones y cómo se relacionan entre sí: algunas cartas apuntan a desafíos, "
        "otras a oportunidades.",
        "Consejo: toma tiempo para reflexionar, comunica tus inquietudes con claridad y actúa con intención.",
    ])


def _fallback_result(prompt: str, note: str) -> InterpretationResult:
    return InterpretationResult.success(f"{generate_fallback_text(prompt)}\n\n{note}", degraded=True)


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------

SleepFn = Callable[[float], Awaitable[Any]]


class InterpretationClient:
    """
    Owns the request lifecycle for one interpretation at a time per call.

    Calls share nothing but the backend's connection pool, so concurrent
    calls are independent attempt sequences. Cancelling the awaiting task
    aborts pending backoff sleeps and the in-flight request.
    """

    def __init__(
        self,
        config: LLMConfig,
        backend: Optional[GenerationBackend] = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config
        self._backend = backend or HttpGenerationBackend(config)
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def config(self) -> LLMConfig:
        return self._config

    async def __aenter__(self) -> "InterpretationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._backend.aclose()

    async def interpret_spread(self, question: str, drawn_cards: Sequence[DrawnCard]) -> InterpretationResult:
        prompt = build_prompt(question, drawn_cards, self._config.prompt_style)
        return await self.generate(prompt)

    async def get_card_meaning(self, drawn_card: DrawnCard) -> InterpretationResult:
        return await self.generate(build_card_meaning_prompt(drawn_card))

    async def generate(self, prompt: str) -> InterpretationResult:
        if not self._config.api_key:
            logger.info("GEMINI_API_KEY not configured, answering with local fallback")
            return _fallback_result(prompt, NO_API_KEY_NOTE)

        attempt = 0
        while True:
            try:
                text, last_error = await self._climb_ladder(prompt)
            except Exception as exc:  # asyncio.CancelledError is not an Exception and propagates
                attempt += 1
                description = _describe(exc)
                if attempt > self._config.max_retries:
                    logger.error("Gemini call failed after %d attempts: %s", attempt, description)
                    return _fallback_result(prompt, f"[Nota: fallback local. Error: {description}]")
                delay = 0.5 * attempt
                logger.warning(
                    "Gemini attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt, self._config.max_retries + 1, description, delay,
                )
                await self._sleep(delay)
                continue

            if text is not None:
                return InterpretationResult.success(text)
            logger.error("Gemini token ladder exhausted without usable text: %s", last_error)
            return _fallback_result(prompt, f"[Nota: fallback local. Error: {last_error}]")

    async def _climb_ladder(self, prompt: str) -> Tuple[Optional[str], str]:
        """Return (text, "") on success or (None, description) once every rung is spent."""
        ladder = self._config.token_budget_ladder
        last_error = "sin texto utilizable"
        for rung, max_tokens in enumerate(ladder):
            is_last = rung == len(ladder) - 1
            response = await self._post_with_overload_retries(prompt, max_tokens)

            if response.status_code in OVERLOAD_STATUSES:
                last_error = f"HTTP {response.status_code} persistente con maxOutputTokens={max_tokens}"
                logger.warning("Gemini still overloaded at rung %d (%d tokens)", rung, max_tokens)
                continue
            if not 200 <= response.status_code < 300:
                raise GenerationHTTPError(response.status_code, response.body)

            parsed = parse_generation_response(response.body)
            if parsed.truncated and (parsed.raw or len(parsed.text.strip()) < self._config.truncation_min_chars):
                last_error = f"respuesta truncada (MAX_TOKENS) con maxOutputTokens={max_tokens}"
                if not is_last:
                    logger.info("Gemini answer truncated at %d tokens, escalating", max_tokens)
                    continue
                if parsed.raw:
                    continue
            return self._cap(parsed.text), ""
        return None, last_error

    async def _post_with_overload_retries(self, prompt: str, max_tokens: int) -> BackendResponse:
        attempt = 0
        while True:
            response = await self._backend.generate(prompt, max_tokens)
            if response.status_code not in OVERLOAD_STATUSES or attempt >= self._config.max_overload_retries:
                return response
            delay = (1000 * 2 ** attempt + self._rng.random() * 500) / 1000.0
            attempt += 1
            logger.warning(
                "Gemini overloaded (HTTP %d), retry %d/%d in %.2fs",
                response.status_code, attempt, self._config.max_overload_retries, delay,
            )
            await self._sleep(delay)

    def _cap(self, text: str) -> str:
        text = text.strip()
        limit = self._config.max_output_chars
        return text[:limit] if len(text) > limit else text
