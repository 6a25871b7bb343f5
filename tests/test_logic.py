import asyncio

import pytest

from helpers import gemini_body, ok
from tarotgemini import tarot_core
from tarotgemini.llm import NO_API_KEY_NOTE, GenerationBackend, InterpretationClient, LLMConfig
from tarotgemini.logic import (
    MSG_BLANK_QUESTION,
    MSG_DECK_TOO_SMALL,
    MSG_NO_CARDS,
    TarotSession,
    perform_draw,
    perform_reading,
    request_card_meaning,
    request_interpretation,
)


def test_perform_draw_signals_small_catalog():
    spread = tarot_core.get_spread("five_card")
    assert perform_draw(tarot_core.get_full_deck()[:4], spread) == []
    assert len(perform_draw(tarot_core.get_full_deck(), spread, seed=1)) == 5


def test_request_interpretation_validates_input(offline_client, three_card_draw):
    client, backend = offline_client
    blank = asyncio.run(request_interpretation(client, "   ", three_card_draw))
    assert blank.error == MSG_BLANK_QUESTION
    no_cards = asyncio.run(request_interpretation(client, "¿Y ahora?", []))
    assert no_cards.error == MSG_NO_CARDS
    assert backend.calls == []


def test_request_card_meaning_uses_client(make_client, sun_upright):
    client, backend = make_client([ok(gemini_body("El Sol trae claridad."))])
    result = asyncio.run(request_card_meaning(client, sun_upright))
    assert result.text == "El Sol trae claridad."
    assert "Carta: El Sol" in backend.calls[0][0]


def test_perform_reading_without_llm(offline_client):
    client, _ = offline_client
    result = asyncio.run(perform_reading(client, question="¿Qué hago?", spread_id="five_card", seed=42))
    assert result["meta"]["spread"] == "five_card"
    assert result["meta"]["deck_size"] == 78
    assert len(result["cards"]) == 5
    assert result["cards"][0]["image_path"].endswith(".png")
    assert result["llm"] == {"prompt": None, "response_text": None, "degraded": False, "error": None}


def test_perform_reading_with_offline_llm(offline_client):
    client, _ = offline_client
    result = asyncio.run(perform_reading(client, question="¿Qué hago?", seed="s", explain_with_llm=True))
    assert "Carta: " in result["llm"]["prompt"]
    assert result["llm"]["degraded"] is True
    assert NO_API_KEY_NOTE in result["llm"]["response_text"]
    assert result["llm"]["error"] is None


def test_perform_reading_llm_needs_question(offline_client):
    client, _ = offline_client
    result = asyncio.run(perform_reading(client, question=None, explain_with_llm=True))
    assert result["llm"]["error"] == MSG_BLANK_QUESTION
    assert result["llm"]["prompt"] is None


class TestTarotSession:

    def test_draw_requires_question(self, offline_client):
        client, _ = offline_client
        session = TarotSession(client)
        assert not session.state.is_button_enabled
        session.perform_draw()
        assert session.state.error == MSG_BLANK_QUESTION
        assert session.state.drawn_cards == ()

    def test_full_flow(self, make_client):
        client, backend = make_client([
            ok(gemini_body("Todo fluye.")),
            ok(gemini_body("Una carta de claridad.")),
        ])
        session = TarotSession(client)
        session.set_question("¿Tendré éxito?")
        assert session.state.is_button_enabled

        session.perform_draw(seed="flow")
        drawn = session.state.drawn_cards
        assert len(drawn) == 3
        assert session.state.error is None

        asyncio.run(session.request_interpretation())
        assert session.state.interpretation == "Todo fluye."
        assert not session.state.is_loading_interpretation

        asyncio.run(session.show_card_meaning(drawn[0]))
        assert session.state.selected_card == drawn[0]
        assert session.state.selected_card_meaning == "Una carta de claridad."

        session.dismiss_card_meaning()
        assert session.state.selected_card is None
        assert session.state.selected_card_meaning is None
        assert len(backend.calls) == 2

    def test_interpretation_requires_draw(self, offline_client):
        client, backend = offline_client
        session = TarotSession(client)
        session.set_question("¿Algo?")
        asyncio.run(session.request_interpretation())
        assert session.state.error == MSG_NO_CARDS
        session.clear_error()
        assert session.state.error is None
        assert backend.calls == []

    def test_small_catalog_error(self, offline_client):
        client, _ = offline_client
        session = TarotSession(client, catalog=tarot_core.get_full_deck()[:2])
        session.set_question("¿Algo?")
        session.perform_draw()
        assert session.state.error == MSG_DECK_TOO_SMALL
        assert session.state.drawn_cards == ()

    def test_reset_keeps_spread(self, offline_client):
        client, _ = offline_client
        single = tarot_core.get_spread("single")
        session = TarotSession(client, spread=single)
        session.set_question("¿Algo?")
        session.perform_draw(seed=1)
        asyncio.run(session.request_interpretation())
        assert session.state.interpretation
        session.reset()
        assert session.state.spread == single
        assert session.state.question == ""
        assert session.state.drawn_cards == ()
        assert session.state.interpretation is None

    def test_cancelled_requests_clear_loading_flags(self, three_card_draw):
        class HangingBackend(GenerationBackend):
            async def generate(self, prompt, max_output_tokens):
                await asyncio.Event().wait()

        session = TarotSession(InterpretationClient(LLMConfig(api_key="k"), HangingBackend()))
        session.set_question("¿Algo?")
        session.perform_draw(seed=3)

        async def cancel(coro):
            task = asyncio.create_task(coro)
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(cancel(session.request_interpretation()))
        assert not session.state.is_loading_interpretation
        assert session.state.interpretation is None

        asyncio.run(cancel(session.show_card_meaning(three_card_draw[0])))
        assert not session.state.is_loading_card_meaning
        assert session.state.selected_card is None
