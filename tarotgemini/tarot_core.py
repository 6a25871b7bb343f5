# -*- coding: utf-8 -*-
"""
tarot_core.py — Core Tarot mechanisms (catalog / spreads / shuffle / draw)

Responsibilities:
- Define the 78-card catalog (22 Major Arcana + 56 Minor Arcana) with Spanish
  names and upright/reversed meanings
- Define spreads (single / three_card / five_card / celtic_cross) with
  labelled positions and optional grid hints
- Provide unbiased shuffling (Fisher–Yates) and drawing (with upright/reversed probability)
- Provide reproducible randomness (seed can be int or str; str will be hashed)
- Public API: get_full_deck / get_card / list_spreads / get_spread / draw_cards

Note:
- This module only implements Tarot mechanics and is UI/LLM agnostic.
  Higher orchestration lives in logic.py.
"""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


# =========================
# Types & Error classes
# =========================

class TarotCoreError(Exception):
    """Base class for tarot-core errors."""


class InvalidSpreadError(TarotCoreError):
    """Raised when a spread id is not registered or its positions are inconsistent."""


class InvalidParameterError(TarotCoreError):
    """Raised when an input parameter is invalid."""


class ArcanaType(str, Enum):
    MAJOR = "MAJOR"
    MINOR = "MINOR"


class Suit(str, Enum):
    CUPS = "CUPS"            # Copas - agua - emociones
    SWORDS = "SWORDS"        # Espadas - aire - intelecto
    WANDS = "WANDS"          # Bastos - fuego - acción
    PENTACLES = "PENTACLES"  # Oros - tierra - lo material


@dataclass(frozen=True)
class Card:
    """A tarot card. Owned by the catalog and shared read-only by every draw."""
    id: int
    name: str                 # e.g., "El Loco", "As de Copas"
    arcana_type: ArcanaType
    suit: Optional[Suit]      # None for Major Arcana
    image_name: str           # e.g., "major_00_fool", "minor_cups_ace"
    upright_meaning: str
    reversed_meaning: str

    def __post_init__(self) -> None:
        if self.arcana_type is ArcanaType.MAJOR and self.suit is not None:
            raise InvalidParameterError(f"Major card '{self.name}' cannot have a suit")
        if self.arcana_type is ArcanaType.MINOR and self.suit is None:
            raise InvalidParameterError(f"Minor card '{self.name}' needs a suit")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "arcana_type": self.arcana_type.value,
            "suit": self.suit.value if self.suit else None,
            "image_name": self.image_name,
            "upright_meaning": self.upright_meaning,
            "reversed_meaning": self.reversed_meaning,
        }


@dataclass(frozen=True)
class GridPosition:
    """Layout hint for presentation only (3x3 grid)."""
    row: int
    col: int


@dataclass(frozen=True)
class SpreadPosition:
    index: int
    meaning: str
    grid: Optional[GridPosition] = None


@dataclass(frozen=True)
class SpreadDefinition:
    """Spread definition. Positions are dense and ordered: 0..card_count-1."""
    id: str
    name: str
    card_count: int
    positions: Tuple[SpreadPosition, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.card_count <= 0:
            raise InvalidSpreadError(f"Spread '{self.id}' needs a positive card_count")
        # Accept any sequence but store a tuple so the definition stays immutable
        object.__setattr__(self, "positions", tuple(self.positions))
        indexes = [p.index for p in self.positions]
        if indexes != list(range(self.card_count)):
            raise InvalidSpreadError(
                f"Spread '{self.id}' expects positions 0..{self.card_count - 1}, got {indexes}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "card_count": self.card_count,
            "positions": [
                {
                    "index": p.index,
                    "meaning": p.meaning,
                    "grid": {"row": p.grid.row, "col": p.grid.col} if p.grid else None,
                }
                for p in self.positions
            ],
        }


@dataclass(frozen=True)
class DrawnCard:
    """A single drawn card bound to its spread position."""
    card: Card
    is_reversed: bool
    position: int
    position_meaning: str

    @property
    def meaning(self) -> str:
        """Operative meaning for the drawn orientation."""
        return self.card.reversed_meaning if self.is_reversed else self.card.upright_meaning

    @property
    def orientation_label(self) -> str:
        return "Invertida" if self.is_reversed else "Normal"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card_id": self.card.id,
            "card_name": self.card.name,
            "arcana_type": self.card.arcana_type.value,
            "suit": self.card.suit.value if self.card.suit else None,
            "image_name": self.card.image_name,
            "orientation": "reversed" if self.is_reversed else "upright",
            "position": self.position,
            "position_meaning": self.position_meaning,
            "meaning": self.meaning,
        }


# =========================
# Spread registry
# =========================

def _positions(*labels: str) -> Tuple[SpreadPosition, ...]:
    return tuple(SpreadPosition(index=i, meaning=label) for i, label in enumerate(labels))


SPREAD_REGISTRY: Dict[str, SpreadDefinition] = {
    "single": SpreadDefinition(
        id="single",
        name="Carta única",
        card_count=1,
        positions=(SpreadPosition(0, "Mensaje central", GridPosition(row=1, col=1)),),
    ),
    "three_card": SpreadDefinition(
        id="three_card",
        name="Tirada de 3 Cartas",
        card_count=3,
        positions=(
            SpreadPosition(0, "Energías actuales", GridPosition(row=1, col=0)),
            SpreadPosition(1, "El problema", GridPosition(row=1, col=1)),
            SpreadPosition(2, "La solución", GridPosition(row=1, col=2)),
        ),
    ),
    "five_card": SpreadDefinition(
        id="five_card",
        name="Tirada de 5 Cartas",
        card_count=5,
        positions=_positions("La situación", "La acción", "El obstáculo", "El recurso", "El resultado"),
    ),
    "celtic_cross": SpreadDefinition(
        id="celtic_cross",
        name="Cruz Celta",
        card_count=10,
        # Common naming; different schools may use slight variants
        positions=_positions(
            "La situación actual",
            "El desafío",
            "La raíz inconsciente",
            "El pasado reciente",
            "La meta consciente",
            "El futuro cercano",
            "Uno mismo",
            "El entorno",
            "Esperanzas y temores",
            "El desenlace",
        ),
    ),
}

DEFAULT_SPREAD_ID = "three_card"


def list_spreads() -> List[SpreadDefinition]:
    """Return all available spreads."""
    return list(SPREAD_REGISTRY.values())


def get_spread(spread_id: str) -> SpreadDefinition:
    """Get a single spread definition; raise if not registered."""
    if spread_id not in SPREAD_REGISTRY:
        raise InvalidSpreadError(f"Spread '{spread_id}' is not registered.")
    return SPREAD_REGISTRY[spread_id]


# =========================
# 78-card catalog
# =========================

_MAJOR_ARCANA: List[Tuple[str, str, str, str]] = [
    # (name, image_name, upright, reversed)
    ("El Loco", "major_00_fool",
     "Nuevos comienzos, espontaneidad, fe en el futuro, aventura",
     "Imprudencia, riesgos innecesarios, falta de dirección"),
    ("El Mago", "major_01_magician",
     "Manifestación, poder personal, recursos disponibles, acción",
     "Manipulación, talentos desperdiciados, falta de energía"),
    ("La Sacerdotisa", "major_02_high_priestess",
     "Intuición, sabiduría interior, conocimiento oculto, misterio",
     "Secretos, desconexión de la intuición, represión"),
    ("La Emperatriz", "major_03_empress",
     "Abundancia, naturaleza, fertilidad, belleza, crianza",
     "Dependencia, sofocación, vacío creativo"),
    ("El Emperador", "major_04_emperor",
     "Autoridad, estructura, control, padre, liderazgo",
     "Tiranía, rigidez, dominación excesiva"),
    ("El Hierofante", "major_05_hierophant",
     "Tradición, conformidad, moralidad, enseñanza",
     "Rebelión, subversión, nuevos enfoques"),
    ("Los Enamorados", "major_06_lovers",
     "Amor, armonía, relaciones, elecciones importantes",
     "Desequilibrio, conflicto de valores, decisiones pobres"),
    ("El Carro", "major_07_chariot",
     "Dirección, control, voluntad, victoria, determinación",
     "Falta de control, agresividad, obstáculos"),
    ("La Fuerza", "major_08_strength",
     "Coraje, persuasión, influencia, compasión, valentía",
     "Debilidad interior, duda, baja autoestima"),
    ("El Ermitaño", "major_09_hermit",
     "Introspección, soledad, guía interior, búsqueda espiritual",
     "Aislamiento, soledad no deseada, rechazo"),
    ("La Rueda de la Fortuna", "major_10_wheel",
     "Cambio, ciclos, destino, puntos de inflexión",
     "Mala suerte, resistencia al cambio, ciclos negativos"),
    ("La Justicia", "major_11_justice",
     "Justicia, equidad, verdad, causa y efecto, ley",
     "Injusticia, falta de responsabilidad, deshonestidad"),
    ("El Colgado", "major_12_hanged",
     "Pausa, rendición, dejar ir, nueva perspectiva",
     "Estancamiento, retraso, resistencia"),
    ("La Muerte", "major_13_death",
     "Finales, transformación, transición, liberación",
     "Resistencia al cambio, estancamiento, apego"),
    ("La Templanza", "major_14_temperance",
     "Balance, moderación, paciencia, propósito, significado",
     "Desequilibrio, exceso, falta de visión"),
    ("El Diablo", "major_15_devil",
     "Ataduras, adicción, sexualidad, materialismo",
     "Liberación, ruptura de cadenas, recuperación"),
    ("La Torre", "major_16_tower",
     "Cambio repentino, revelación, destrucción necesaria",
     "Evitar el desastre, miedo al cambio, crisis personal"),
    ("La Estrella", "major_17_star",
     "Esperanza, fe, rejuvenecimiento, renovación, espiritualidad",
     "Desesperanza, desilusión, desconexión"),
    ("La Luna", "major_18_moon",
     "Ilusión, miedo, ansiedad, subconsciente, intuición",
     "Liberación del miedo, verdad revelada, claridad"),
    ("El Sol", "major_19_sun",
     "Alegría, éxito, celebración, positividad, vitalidad",
     "Negatividad, depresión, tristeza, pesimismo"),
    ("El Juicio", "major_20_judgement",
     "Juicio, renacimiento, perdón, llamado interior",
     "Autocrítica, duda, incapacidad de perdonar"),
    ("El Mundo", "major_21_world",
     "Finalización, logro, viaje, cumplimiento",
     "Incompletud, falta de cierre, búsqueda continúa"),
]

# (suit, slug, Spanish name, domain phrase)
_SUITS: List[Tuple[Suit, str, str, str]] = [
    (Suit.WANDS, "wands", "Bastos", "en la acción y la creatividad"),
    (Suit.CUPS, "cups", "Copas", "en las emociones y los vínculos"),
    (Suit.SWORDS, "swords", "Espadas", "en el pensamiento y las decisiones"),
    (Suit.PENTACLES, "pentacles", "Oros", "en el trabajo y lo material"),
]

# (slug, Spanish rank name, upright theme, reversed theme)
_RANKS: List[Tuple[str, str, str, str]] = [
    ("ace", "As", "Semilla de algo nuevo, oportunidad pura", "Oportunidad desaprovechada, inicio bloqueado"),
    ("2", "Dos", "Elección, equilibrio entre dos fuerzas", "Indecisión, desequilibrio"),
    ("3", "Tres", "Crecimiento, colaboración, primeros frutos", "Retrasos, falta de cooperación"),
    ("4", "Cuatro", "Estabilidad, pausa, consolidación", "Estancamiento, rigidez"),
    ("5", "Cinco", "Conflicto, pérdida, prueba", "Recuperación, fin del conflicto"),
    ("6", "Seis", "Armonía recuperada, generosidad, avance", "Nostalgia, desequilibrio en el dar y recibir"),
    ("7", "Siete", "Evaluación, perseverancia, estrategia", "Dispersión, ilusiones, falta de constancia"),
    ("8", "Ocho", "Movimiento, dedicación, cambio de rumbo", "Bloqueo, impaciencia, abandono"),
    ("9", "Nueve", "Casi cumplimiento, resiliencia, satisfacción", "Ansiedad, agotamiento, insatisfacción"),
    ("10", "Diez", "Culminación de un ciclo, plenitud", "Carga excesiva, cierre doloroso"),
    ("page", "Sota", "Curiosidad, mensajes, aprendizaje", "Inmadurez, noticias confusas"),
    ("knight", "Caballero", "Impulso, búsqueda, compromiso con una meta", "Precipitación, falta de rumbo"),
    ("queen", "Reina", "Madurez receptiva, cuidado, intuición", "Inseguridad, dependencia"),
    ("king", "Rey", "Dominio, liderazgo, responsabilidad", "Autoritarismo, mal uso del poder"),
]


def _build_catalog() -> List[Card]:
    """Build the 78-card catalog (stable order; useful for tests/repro)."""
    catalog: List[Card] = []
    for i, (name, image_name, upright, reversed_) in enumerate(_MAJOR_ARCANA):
        catalog.append(Card(
            id=i, name=name, arcana_type=ArcanaType.MAJOR, suit=None,
            image_name=image_name, upright_meaning=upright, reversed_meaning=reversed_,
        ))

    # Minor Arcana
    next_id = len(catalog)
    for suit, suit_slug, suit_name, domain in _SUITS:
        for rank_slug, rank_name, upright, reversed_ in _RANKS:
            catalog.append(Card(
                id=next_id,
                name=f"{rank_name} de {suit_name}",
                arcana_type=ArcanaType.MINOR,
                suit=suit,
                image_name=f"minor_{suit_slug}_{rank_slug}",
                upright_meaning=f"{upright} {domain}",
                reversed_meaning=f"{reversed_} {domain}",
            ))
            next_id += 1

    assert len(catalog) == 78, f"Catalog size should be 78, got {len(catalog)}"
    assert len({c.id for c in catalog}) == len(catalog), "Card ids must be unique"
    return catalog


CARD_CATALOG: Tuple[Card, ...] = tuple(_build_catalog())
CARD_ID_INDEX: Dict[int, Card] = {c.id: c for c in CARD_CATALOG}  # quick lookup by id


def get_major_arcana() -> List[Card]:
    return [c for c in CARD_CATALOG if c.arcana_type is ArcanaType.MAJOR]


def get_full_deck(include_minor: bool = True) -> List[Card]:
    """Return the catalog as a new list; the Card objects themselves are shared."""
    if not include_minor:
        return get_major_arcana()
    return list(CARD_CATALOG)


def get_card(card_id: int) -> Card:
    card = CARD_ID_INDEX.get(card_id)
    if card is None:
        raise InvalidParameterError(f"Unknown card id: {card_id}")
    return card


# =========================
# RNG / Shuffling
# =========================

def _norm_seed(seed: Optional[Union[int, str]]) -> Optional[int]:
    """
    Normalize seed to int. If str, hash with sha256 and take the first 8 bytes
    as an unsigned 64-bit integer. None stays None.
    """
    if seed is None:
        return None
    if isinstance(seed, bool):
        raise InvalidParameterError("seed must be int | str | None")
    if isinstance(seed, int):
        return seed
    if isinstance(seed, str):
        h = hashlib.sha256(seed.encode("utf-8")).digest()
        return int.from_bytes(h[:8], byteorder="big", signed=False)
    raise InvalidParameterError("seed must be int | str | None")


def _fisher_yates_shuffle(items: Sequence[Card], rng: random.Random) -> List[Card]:
    """
    Fisher–Yates (Knuth) shuffle.
    Returns a new list and does not mutate the input.
    """
    arr = list(items)
    n = len(arr)
    for i in range(n - 1, 0, -1):
        j = rng.randint(0, i)  # inclusive
        arr[i], arr[j] = arr[j], arr[i]
    return arr


# =========================
# Draw
# =========================

def draw_cards(
    catalog: Sequence[Card],
    spread: SpreadDefinition,
    seed: Optional[Union[int, str]] = None,
    orientation_prob: float = 0.5,
    rng: Optional[random.Random] = None,
) -> List[DrawnCard]:
    """
    Core entry point: shuffle, draw, determine orientation, map positions.

    Args:
        catalog: cards to draw from (not mutated)
        spread: spread definition; its card_count decides how many cards are drawn
        seed: reproducibility seed (int or str). str is hashed internally
        orientation_prob: probability of a reversed card in [0, 1]
        rng: explicit random source; takes precedence over seed

    Returns:
        A list of exactly spread.card_count DrawnCard records, or an empty list
        when the catalog holds fewer cards than the spread needs. The empty list
        is the "not enough cards" signal; a valid spread never draws zero cards.
    """
    if not (0.0 <= float(orientation_prob) <= 1.0):
        raise InvalidParameterError("orientation_prob must be within [0.0, 1.0]")

    count = spread.card_count
    if len(catalog) < count:
        return []

    if rng is None:
        rng = random.Random(_norm_seed(seed))

    # Shuffle & pick
    picked = _fisher_yates_shuffle(catalog, rng)[:count]

    # Orientation & position mapping
    result: List[DrawnCard] = []
    for idx, card in enumerate(picked):
        is_reversed = rng.random() < float(orientation_prob)
        if idx < len(spread.positions):
            slot = spread.positions[idx]
            position, position_meaning = slot.index, slot.meaning
        else:
            position, position_meaning = idx, ""
        result.append(DrawnCard(
            card=card,
            is_reversed=is_reversed,
            position=position,
            position_meaning=position_meaning,
        ))
    return result


# =========================
# __main__ demo (structured pprint)
# =========================

if __name__ == "__main__":
    from pprint import pprint

    for spread_id, seed in (("single", "demo-user-001"), ("three_card", "demo-user-002"), ("celtic_cross", "demo-user-010")):
        spread_def = get_spread(spread_id)
        print(f"=== {spread_def.name} ===")
        pprint([d.to_dict() for d in draw_cards(CARD_CATALOG, spread_def, seed=seed)], sort_dicts=False)
        print()
