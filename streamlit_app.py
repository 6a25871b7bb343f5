# streamlit_app.py — Tarot Gemini UI
# Run:  streamlit run streamlit_app.py

from __future__ import annotations

import asyncio
import os
import threading
from typing import Any, Awaitable, Tuple

import streamlit as st

from tarotgemini import tarot_core
from tarotgemini.config import Settings, configure_logging
from tarotgemini.llm import InterpretationClient
from tarotgemini.logic import TarotSession, get_card_image_path


# -----------------------------
# Background runtime
# -----------------------------
@st.cache_resource
def _runtime() -> Tuple[asyncio.AbstractEventLoop, InterpretationClient]:
    """One event loop thread and one pooled client per Streamlit process."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, name="tarot-llm", daemon=True).start()
    return loop, InterpretationClient(settings.llm_config())

def run(coro: Awaitable[Any]) -> Any:
    loop, _ = _runtime()
    return asyncio.run_coroutine_threadsafe(coro, loop).result()

def get_session() -> TarotSession:
    if "tarot_session" not in st.session_state:
        _, client = _runtime()
        st.session_state["tarot_session"] = TarotSession(client)
    return st.session_state["tarot_session"]

# -----------------------------
# Page setup
# -----------------------------
st.set_page_config(
    page_title="Tarot Gemini",
    page_icon="🔮",
    layout="wide",
)

st.title("🔮 Tarot Gemini")
st.caption("Escribe tu pregunta, realiza la tirada y pide la interpretación.")

session = get_session()

# -----------------------------
# Sidebar controls
# -----------------------------
st.sidebar.header("Tirada")

spreads = tarot_core.list_spreads()
spread_ids = [s.id for s in spreads]
current_spread = session.state.spread
chosen_id = st.sidebar.selectbox(
    "Tipo de tirada",
    spread_ids,
    index=spread_ids.index(current_spread.id),
    format_func=lambda sid: tarot_core.get_spread(sid).name,
)
if chosen_id != current_spread.id:
    session.set_spread(tarot_core.get_spread(chosen_id))

seed = st.sidebar.text_input(
    "Semilla (opcional)",
    value="",
    placeholder="Vacío = tirada aleatoria",
)
show_paths = st.sidebar.checkbox("Mostrar rutas de imagen (debug)", value=False)

# -----------------------------
# Main panel inputs
# -----------------------------
question = st.text_area(
    "Tu pregunta",
    value=session.state.question,
    placeholder="¿Qué quieres preguntarle al tarot?",
    height=100,
)
session.set_question(question)

state = session.state
col_btn1, col_btn2, col_btn3 = st.columns([1, 1, 1])
with col_btn1:
    draw = st.button("🔀 Realizar tirada", use_container_width=True, disabled=not state.is_button_enabled)
with col_btn2:
    interpret = st.button(
        "✨ Interpretar",
        use_container_width=True,
        disabled=not state.drawn_cards or state.is_loading_interpretation,
    )
with col_btn3:
    clear = st.button("🧹 Empezar de nuevo", use_container_width=True)

if clear:
    session.reset()
    st.rerun()

if draw:
    seed_val = seed.strip() or None
    session.perform_draw(seed=int(seed_val) if seed_val and seed_val.isdigit() else seed_val)

if interpret:
    with st.spinner("Consultando a las cartas..."):
        run(session.request_interpretation())

state = session.state
if state.error:
    st.error(state.error)
    if st.button("Cerrar aviso"):
        session.clear_error()
        st.rerun()

# -----------------------------
# Render cards
# -----------------------------
if state.drawn_cards:
    cols = st.columns(min(len(state.drawn_cards), 5), gap="small")
    for i, drawn in enumerate(state.drawn_cards):
        col = cols[i % len(cols)]
        col.markdown(f"**{drawn.position_meaning or f'Posición {drawn.position + 1}'}**")
        image_path = get_card_image_path(drawn.card.image_name)
        caption = f"{drawn.card.name} · {drawn.orientation_label}"
        if os.path.isfile(image_path):
            col.image(image_path, caption=caption, use_column_width=True)
        else:
            col.markdown(f"🖼️ *Imagen no encontrada*\n\n{caption}")
        if show_paths:
            col.code(image_path)
        if col.button("ℹ️ Significado", key=f"meaning-{drawn.card.id}"):
            with st.spinner("Buscando el significado..."):
                run(session.show_card_meaning(drawn))

state = session.state
if state.selected_card is not None and state.selected_card_meaning:
    st.markdown("---")
    st.subheader(f"{state.selected_card.card.name} ({state.selected_card.orientation_label})")
    st.markdown(state.selected_card_meaning)
    if st.button("Cerrar significado"):
        session.dismiss_card_meaning()
        st.rerun()

if state.interpretation:
    st.markdown("---")
    st.subheader("Interpretación")
    st.markdown(state.interpretation)

if not state.drawn_cards:
    st.info("Escribe una pregunta y pulsa **Realizar tirada**.")
