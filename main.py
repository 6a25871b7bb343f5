import asyncio
from pprint import pprint

from tarotgemini.config import Settings, configure_logging
from tarotgemini.llm import InterpretationClient
from tarotgemini.logic import perform_reading


async def _demo(settings: Settings) -> dict:
    async with InterpretationClient(settings.llm_config()) as client:
        # Example: three-card spread (current energies / problem / solution)
        return await perform_reading(
            client,
            question="¿Debería cambiar de trabajo?",
            spread_id="three_card",
            seed="demo-seed",
            explain_with_llm=True,  # without GEMINI_API_KEY the local fallback answers
        )


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    pprint(asyncio.run(_demo(settings)), sort_dicts=False)
