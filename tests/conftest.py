from __future__ import annotations

import random
from typing import Any, Callable, List, Tuple

import pytest

from helpers import ScriptedBackend
from tarotgemini import tarot_core
from tarotgemini.llm import InterpretationClient, LLMConfig


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(sleeps) -> Callable[..., Tuple[InterpretationClient, ScriptedBackend]]:
    def _make(script=(), repeat_last: bool = False, **config: Any):
        config.setdefault("api_key", "test-key")
        backend = ScriptedBackend(script, repeat_last=repeat_last)
        client = InterpretationClient(LLMConfig(**config), backend, sleep=sleeps, rng=random.Random(7))
        return client, backend
    return _make


@pytest.fixture
def offline_client() -> Tuple[InterpretationClient, ScriptedBackend]:
    backend = ScriptedBackend()
    return InterpretationClient(LLMConfig(api_key=""), backend), backend


@pytest.fixture
def sun_upright() -> tarot_core.DrawnCard:
    return tarot_core.DrawnCard(
        card=tarot_core.get_card(19),  # El Sol
        is_reversed=False,
        position=2,
        position_meaning="La solución",
    )


@pytest.fixture
def three_card_draw() -> List[tarot_core.DrawnCard]:
    return tarot_core.draw_cards(
        tarot_core.get_full_deck(),
        tarot_core.get_spread("three_card"),
        seed="fixture-seed",
    )
