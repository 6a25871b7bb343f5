"""
logic.py — Orchestration layer that ties tarot_core mechanics to UI/API needs.

Responsibilities:
- Provide the consumer-facing calls: perform_draw / request_interpretation /
  request_card_meaning.
- Provide a single high-level entry point `perform_reading(...)` for the API
  and the demo script, returning a JSON-like dict.
- Provide TarotSession, the view-state holder the Streamlit UI drives.

Notes:
- Card images are expected under: ./assets/cards/{image_name}.png
- The interpretation client never fails hard; failures produced here come
  from input validation (blank question, no cards drawn yet).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from . import tarot_core
from .llm import InterpretationClient, InterpretationResult
from .prompts import build_prompt
from .tarot_core import Card, DrawnCard, SpreadDefinition

logger = logging.getLogger(__name__)

MSG_BLANK_QUESTION = "Por favor escribe una pregunta"
MSG_NO_CARDS = "Primero debes realizar una tirada"
MSG_DECK_TOO_SMALL = "No hay suficientes cartas en el mazo para esta tirada"


# -----------------------------------------------------------------------------
# Paths & utilities
# -----------------------------------------------------------------------------

# Project root (resolve relative to this file)
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
CARD_ASSETS_DIR = os.path.join(_PROJECT_ROOT, "assets", "cards")


def get_card_image_path(image_name: str, ext: str = "png") -> str:
    """
    Build a file path to a card image: ./assets/cards/{image_name}.png

    The function returns the path string regardless of whether the file exists.
    """
    return os.path.join(CARD_ASSETS_DIR, f"{image_name}.{ext}")


# -----------------------------------------------------------------------------
# Consumer-facing calls
# -----------------------------------------------------------------------------

def perform_draw(
    catalog: Sequence[Card],
    spread: SpreadDefinition,
    seed: Optional[Union[int, str]] = None,
) -> List[DrawnCard]:
    """Draw for a spread. An empty list means the catalog is too small."""
    drawn = tarot_core.draw_cards(catalog, spread, seed=seed)
    if not drawn:
        logger.warning("Catalog of %d cards cannot serve spread %s (%d cards)",
                       len(catalog), spread.id, spread.card_count)
    return drawn


async def request_interpretation(
    client: InterpretationClient,
    question: str,
    drawn_cards: Sequence[DrawnCard],
) -> InterpretationResult:
    if not (question or "").strip():
        return InterpretationResult.failure(MSG_BLANK_QUESTION)
    if not drawn_cards:
        return InterpretationResult.failure(MSG_NO_CARDS)
    return await client.interpret_spread(question.strip(), list(drawn_cards))


async def request_card_meaning(client: InterpretationClient, drawn_card: DrawnCard) -> InterpretationResult:
    return await client.get_card_meaning(drawn_card)


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

async def perform_reading(
    client: InterpretationClient,
    question: Optional[str] = None,
    spread_id: str = tarot_core.DEFAULT_SPREAD_ID,
    seed: Optional[Union[int, str]] = None,
    explain_with_llm: bool = False,
    *,
    include_minor: bool = True,
    image_ext: str = "png",
) -> Dict[str, Any]:
    """
    Perform a tarot reading and (optionally) request the Gemini interpretation.

    Args:
        client: Interpretation client used when explain_with_llm is True.
        question: User's question (required for the interpretation).
        spread_id: Registered spread id ("single", "three_card", ...).
        seed: Reproducibility seed (int or str).
        explain_with_llm: When True, ask the client for an interpretation.
        include_minor: Draw from the full 78-card deck instead of the 22 majors.
        image_ext: Card image file extension (default "png").

    Returns:
        A JSON-serializable dict:

        {
          "meta": {"spread": str, "seed": ..., "question": str|null,
                   "explain_with_llm": bool, "deck_size": int},
          "cards": [DrawnCard.to_dict() + {"image_path": str}, ...],
          "llm": {"prompt": str|null, "response_text": str|null,
                  "degraded": bool, "error": str|null}
        }

    Raises:
        InvalidSpreadError: unknown spread id.
    """
    spread = tarot_core.get_spread(spread_id)
    catalog = tarot_core.get_full_deck(include_minor=include_minor)
    drawn = perform_draw(catalog, spread, seed=seed)

    result: Dict[str, Any] = {
        "meta": {
            "spread": spread.id,
            "seed": seed,
            "question": question or None,
            "explain_with_llm": bool(explain_with_llm),
            "deck_size": len(catalog),
        },
        "cards": [
            {**d.to_dict(), "image_path": get_card_image_path(d.card.image_name, ext=image_ext)}
            for d in drawn
        ],
        "llm": {
            "prompt": None,
            "response_text": None,
            "degraded": False,
            "error": None,
        },
    }

    if explain_with_llm:
        if drawn and (question or "").strip():
            result["llm"]["prompt"] = build_prompt(question.strip(), drawn, client.config.prompt_style)
        interpretation = await request_interpretation(client, question or "", drawn)
        if interpretation.ok:
            result["llm"]["response_text"] = interpretation.text
            result["llm"]["degraded"] = interpretation.degraded
        else:
            result["llm"]["error"] = interpretation.error

    return result


# -----------------------------------------------------------------------------
# View state
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TarotUiState:
    question: str = ""
    spread: SpreadDefinition = field(
        default_factory=lambda: tarot_core.get_spread(tarot_core.DEFAULT_SPREAD_ID)
    )
    drawn_cards: Tuple[DrawnCard, ...] = ()
    interpretation: Optional[str] = None
    selected_card: Optional[DrawnCard] = None
    selected_card_meaning: Optional[str] = None
    is_loading_interpretation: bool = False
    is_loading_card_meaning: bool = False
    error: Optional[str] = None

    @property
    def is_button_enabled(self) -> bool:
        return bool(self.question.strip()) and not self.is_loading_interpretation


class TarotSession:
    """
    Holds UI-facing state and exposes the user intents.

    State is an immutable TarotUiState replaced on every intent. The network
    intents are coroutines; the host UI serializes them by disabling the
    triggering control while is_loading_* is set.
    """

    def __init__(
        self,
        client: InterpretationClient,
        catalog: Optional[Sequence[Card]] = None,
        spread: Optional[SpreadDefinition] = None,
    ) -> None:
        self._client = client
        self._catalog = list(catalog) if catalog is not None else tarot_core.get_full_deck()
        self._state = TarotUiState(spread=spread) if spread is not None else TarotUiState()

    @property
    def state(self) -> TarotUiState:
        return self._state

    def _update(self, **changes: Any) -> TarotUiState:
        self._state = replace(self._state, **changes)
        return self._state

    def set_question(self, question: str) -> None:
        self._update(question=question)

    def set_spread(self, spread: SpreadDefinition) -> None:
        self._update(spread=spread, drawn_cards=(), interpretation=None)

    def perform_draw(self, seed: Optional[Union[int, str]] = None) -> None:
        if not self._state.question.strip():
            self._update(error=MSG_BLANK_QUESTION)
            return
        drawn = perform_draw(self._catalog, self._state.spread, seed=seed)
        if not drawn:
            self._update(drawn_cards=(), error=MSG_DECK_TOO_SMALL)
            return
        self._update(drawn_cards=tuple(drawn), interpretation=None, error=None)

    async def request_interpretation(self) -> None:
        current = self._state
        if not current.drawn_cards:
            self._update(error=MSG_NO_CARDS)
            return
        self._update(is_loading_interpretation=True, error=None)
        try:
            result = await request_interpretation(self._client, current.question, current.drawn_cards)
        finally:
            self._update(is_loading_interpretation=False)
        if result.ok:
            self._update(interpretation=result.text)
        else:
            self._update(error=f"Error al obtener interpretación: {result.error}")

    async def show_card_meaning(self, drawn_card: DrawnCard) -> None:
        self._update(is_loading_card_meaning=True)
        try:
            result = await request_card_meaning(self._client, drawn_card)
        finally:
            self._update(is_loading_card_meaning=False)
        if result.ok:
            self._update(selected_card=drawn_card, selected_card_meaning=result.text)
        else:
            self._update(error=f"Error al obtener significado: {result.error}")

    def dismiss_card_meaning(self) -> None:
        self._update(selected_card=None, selected_card_meaning=None)

    def clear_error(self) -> None:
        self._update(error=None)

    def reset(self) -> None:
        """Start over, keeping the chosen spread."""
        self._state = TarotUiState(spread=self._state.spread)
