"""
prompts.py — Prompt construction for the Gemini interpretation calls.

All builders are pure functions: identical inputs always give identical text.
The verbose style is the default; the compact style trades context for tokens
and asks for a single short line back.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Sequence, Union

from .tarot_core import DrawnCard


class PromptStyle(str, Enum):
    VERBOSE = "verbose"
    COMPACT = "compact"


COMPACT_MAX_CHARS = 600

_PERSONA = (
    "Eres un experto tarotista con años de experiencia en lectura de cartas.\n"
    "Tu objetivo es proporcionar interpretaciones profundas, místicas y significativas.\n"
)

_CLOSING = """Por favor, proporciona:
1. Una interpretación general de la tirada completa
2. Cómo las cartas se relacionan entre sí
3. Un mensaje final o consejo para el consultante

Usa un tono místico pero accesible, comprensivo y esperanzador.

IMPORTANTE: No repitas el prompt ni las instrucciones. Devuelve únicamente la interpretación en texto plano, sin encabezados técnicos ni el prompt. Limítate a la interpretación completa en lenguaje natural.
"""


def build_verbose_prompt(question: str, drawn_cards: Sequence[DrawnCard]) -> str:
    lines: List[str] = [_PERSONA]
    lines.append("PREGUNTA DEL CONSULTANTE:")
    lines.append(f'"{question}"')
    lines.append("")
    lines.append("CARTAS DE LA TIRADA:")
    for n, drawn in enumerate(drawn_cards, start=1):
        lines.append("")
        lines.append(f"Posición {n}: {drawn.position_meaning}")
        lines.append(f"Carta: {drawn.card.name}")
        lines.append(f"Orientación: {drawn.orientation_label}")
        lines.append(f"Significado: {drawn.meaning}")
    lines.append("")
    lines.append(_CLOSING)
    return "\n".join(lines)


def build_compact_prompt(question: str, drawn_cards: Sequence[DrawnCard]) -> str:
    cards = ";".join(
        f"{n}){d.card.name}({'Inv' if d.is_reversed else 'Up'})"
        for n, d in enumerate(drawn_cards, start=1)
    )
    return (
        f"PREGUNTA: {question} | CARTAS: {cards} | "
        f"RESPONDE: una sola línea, máximo {COMPACT_MAX_CHARS} caracteres, "
        "sin razonamiento ni metadatos"
    )


def build_prompt(
    question: str,
    drawn_cards: Sequence[DrawnCard],
    style: Union[PromptStyle, str] = PromptStyle.VERBOSE,
) -> str:
    """Render the question and the ordered drawn cards into one prompt."""
    if PromptStyle(style) is PromptStyle.COMPACT:
        return build_compact_prompt(question, drawn_cards)
    return build_verbose_prompt(question, drawn_cards)


def build_card_meaning_prompt(drawn_card: DrawnCard) -> str:
    """Single-card prompt: no question, asks for a deeper reading of one card."""
    return "\n".join([
        "Explica el significado de la carta del tarot:",
        f"Carta: {drawn_card.card.name}",
        f"Orientación: {drawn_card.orientation_label}",
        "",
        f"Significado base: {drawn_card.meaning}",
        "",
        "Proporciona una explicación más detallada y profunda de este significado.",
        "Incluye consejos prácticos sobre cómo aplicar este mensaje.",
        "Usa un tono místico pero claro, en 2-3 párrafos.",
        "",
    ])
