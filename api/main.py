# api/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional, Literal, Union

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from tarotgemini import __version__, tarot_core
from tarotgemini.config import Settings, configure_logging
from tarotgemini.llm import InterpretationClient
from tarotgemini.logic import perform_reading, request_card_meaning
from tarotgemini.tarot_core import DrawnCard, TarotCoreError

logger = logging.getLogger(__name__)


# ---------- Pydantic Schemas ----------
class ReadingRequest(BaseModel):
    spread: str = Field(tarot_core.DEFAULT_SPREAD_ID, description="single|three_card|five_card|celtic_cross")
    seed: Optional[Union[int, str]] = None
    question: Optional[str] = None
    explain_with_llm: bool = False
    include_minor: bool = True
    image_ext: Literal["png", "jpg", "webp"] = "png"


class CardMeaningRequest(BaseModel):
    card_id: int = Field(..., ge=0)
    is_reversed: bool = False
    position: int = Field(0, ge=0)
    position_meaning: str = ""


class HealthResponse(BaseModel):
    status: str
    version: str
    has_gemini_key: bool


class InterpretationResponse(BaseModel):
    text: Optional[str] = None
    error: Optional[str] = None
    degraded: bool = False


# ---------- FastAPI app ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app.state.settings = settings
    # One pooled client for the whole process
    async with InterpretationClient(settings.llm_config()) as client:
        app.state.client = client
        logger.info("Interpretation client ready (model=%s, key configured=%s)",
                    settings.gemini_model, settings.has_api_key)
        yield


app = FastAPI(title="Tarot Gemini API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_methods=["*"], allow_headers=["*"], allow_credentials=False
)


def get_client(request: Request) -> InterpretationClient:
    return request.app.state.client


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else Settings.from_env()


@app.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_settings)):
    return HealthResponse(
        status="ok",
        version=app.version,
        has_gemini_key=settings.has_api_key,
    )


@app.get("/v1/spreads")
def list_spreads():
    return {"spreads": [s.to_dict() for s in tarot_core.list_spreads()]}


@app.get("/v1/cards")
def list_cards(include_minor: bool = True):
    return {"cards": [c.to_dict() for c in tarot_core.get_full_deck(include_minor=include_minor)]}


@app.post("/v1/readings")
async def create_reading(req: ReadingRequest, client: InterpretationClient = Depends(get_client)):
    try:
        return await perform_reading(
            client,
            question=req.question,
            spread_id=req.spread,
            seed=req.seed,
            explain_with_llm=req.explain_with_llm,
            include_minor=req.include_minor,
            image_ext=req.image_ext,
        )
    except tarot_core.InvalidSpreadError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TarotCoreError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/v1/card-meaning", response_model=InterpretationResponse)
async def card_meaning(req: CardMeaningRequest, client: InterpretationClient = Depends(get_client)):
    try:
        card = tarot_core.get_card(req.card_id)
    except TarotCoreError as e:
        raise HTTPException(status_code=404, detail=str(e))
    drawn = DrawnCard(
        card=card,
        is_reversed=req.is_reversed,
        position=req.position,
        position_meaning=req.position_meaning,
    )
    result = await request_card_meaning(client, drawn)
    return InterpretationResponse(text=result.text, error=result.error, degraded=result.degraded)
