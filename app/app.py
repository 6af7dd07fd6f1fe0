"""
UI layer
Purpose: Streamlit-only glue. Renders widgets/tabs, collects user inputs, and delegates
all work to AssistantSession / CatalogClient / AuthClient. Keeps UI concerns
(layout/state widgets) separate from the orchestration so that can be unit tested
without Streamlit.
"""

import asyncio
import hashlib

import streamlit as st
from audio_recorder_streamlit import audio_recorder

from shopassist.config import load_config
from shopassist.context import ClientContext
from shopassist.controller import AssistantSession
from shopassist.errors import ClientInputError, ShopAssistError
from shopassist.models import Product, Role, VoiceRecording
from shopassist.services.assistant_api import AssistantApi
from shopassist.services.auth import AuthClient
from shopassist.services.catalog import CatalogClient
from shopassist.services.transport import TransportClient
from shopassist.utils.log import configure_logging


# ---------------------------
# Page config
# ---------------------------
st.set_page_config(
    page_title="Storefront Assistant",
    page_icon="🛍️",
    layout="wide",
    initial_sidebar_state="expanded",
)

SAMPLE_PROMPTS = [
    "Vintage sneakers under $100",
    "Winter jackets size M",
    "Vintage cameras",
]

# ---------------------------
# Session state init
# ---------------------------
st_session = st.session_state
st_session.setdefault("config", None)
st_session.setdefault("context", None)
st_session.setdefault("assistant", None)
st_session.setdefault("catalog", None)
st_session.setdefault("auth", None)
st_session.setdefault("last_voice_sig", None)
st_session.setdefault("pending_prompt", None)


# ---------------------------
# Helpers
# ---------------------------
def run(coro):
    """Run one coroutine to completion on a fresh loop (one per rerun)."""
    return asyncio.run(coro)


def init_clients() -> None:
    """Build context + clients once per browser session."""
    if st_session.assistant is not None:
        return
    config = load_config()
    configure_logging(config.log_level)
    context = ClientContext.from_config(config)
    transport = TransportClient(context)
    st_session.config = config
    st_session.context = context
    st_session.assistant = AssistantSession(AssistantApi(transport), context.sessions)
    st_session.catalog = CatalogClient(transport)
    st_session.auth = AuthClient(transport)


def get_assistant() -> AssistantSession:
    return st_session.assistant


def show_notices() -> None:
    """Toast every failure the assistant recorded since the last rerun."""
    for notice in get_assistant().drain_notices():
        st.toast(notice.text, icon="⚠️")


def submit_text(text: str) -> None:
    try:
        with st.spinner("Thinking…"):
            run(get_assistant().send_text(text))
    except ClientInputError as e:
        st.toast(str(e), icon="⚠️")


def submit_voice(wav_bytes: bytes) -> bool:
    """Send a recorder clip once; the widget keeps returning it on every rerun."""
    sig = hashlib.sha1(wav_bytes).hexdigest()
    if sig == st_session.last_voice_sig:
        return False
    st_session.last_voice_sig = sig
    try:
        with st.spinner("Sending voice message…"):
            run(get_assistant().send_voice(VoiceRecording(wav_bytes, "audio/wav")))
    except ClientInputError as e:
        st.toast(str(e), icon="⚠️")
    return True


def render_product(product: Product) -> None:
    with st.container(border=True):
        if product.images:
            st.image(product.images[0], use_container_width=True)
        st.markdown(f"**{product.name}**")
        st.caption(" · ".join(x for x in [product.brand or "", product.condition] if x))
        st.markdown(f"### ${product.price:,.2f}")
        if product.description:
            st.write(product.description[:160])
        if product.stock <= 0:
            st.caption("Out of stock")


def render_products(products, *, columns: int = 3) -> None:
    if not products:
        st.info("No products yet.")
        return
    cols = st.columns(columns)
    for i, product in enumerate(products):
        with cols[i % columns]:
            render_product(product)


init_clients()

# ---------------------------
# SIDEBAR: account & session
# ---------------------------
with st.sidebar:
    st.markdown("# Account")
    user = st_session.auth.current_user()
    if user:
        st.success(f"Signed in as {user.full_name or user.username} ({user.role})")
        if st.button("Sign out", use_container_width=True):
            st_session.auth.logout()
            st.rerun()
    else:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in", use_container_width=True):
                try:
                    run(st_session.auth.login(email, password))
                    st.rerun()
                except ShopAssistError as e:
                    st.error(f"Sign-in failed: {e}")

    st.divider()
    st.markdown("## Session")
    st.code(get_assistant().session_id, language=None)
    resume_id = st.text_input("Resume session id")
    if st.button("Resume", disabled=not resume_id.strip()):
        try:
            run(get_assistant().resume(resume_id.strip()))
        except ClientInputError as e:
            st.toast(str(e), icon="⚠️")
        st.rerun()
    if st.button("Clear chat"):
        get_assistant().reset()
        st.rerun()
    st.caption(f"API: {st_session.config.api_base_url}")


# ---------------------------
# Main tabs
# ---------------------------
assistant_tab, browse_tab = st.tabs(["AI Shopping Assistant", "Browse"])

with assistant_tab:
    chat_col, results_col = st.columns([1, 1])

    with chat_col:
        st.subheader("AI Shopping Assistant")
        transcript = st.container(height=420, border=True)
        with transcript:
            with st.chat_message("assistant"):
                st.markdown("Hi! I'm your AI shopping assistant. What are you looking for today?")
            for msg in get_assistant().transcript:
                with st.chat_message("user" if msg.role is Role.USER else "assistant"):
                    st.markdown(msg.text)

        prompt_cols = st.columns(len(SAMPLE_PROMPTS))
        for col, prompt in zip(prompt_cols, SAMPLE_PROMPTS):
            if col.button(prompt, use_container_width=True):
                st_session.pending_prompt = prompt

        wav_bytes = audio_recorder(
            pause_threshold=2,
            sample_rate=16_000,
            text="Hold to speak",
            icon_size="2x",
        )
        raw = st.chat_input("Try: 'I'm looking for vintage sneakers under $100'")

        user_text = st_session.pending_prompt or (raw.strip() if raw else None)
        st_session.pending_prompt = None
        if user_text:
            submit_text(user_text)
            st.rerun()
        elif wav_bytes and submit_voice(wav_bytes):
            st.rerun()

    with results_col:
        st.subheader("Suggestions")
        render_products(get_assistant().suggestions, columns=2)

    show_notices()

with browse_tab:
    st.subheader("Featured")
    try:
        render_products(run(st_session.catalog.featured()))
    except ShopAssistError as e:
        st.warning(f"Could not load featured products: {e}")

    st.divider()
    st.subheader("Search the catalog")
    q_col, min_col, max_col = st.columns([3, 1, 1])
    query = q_col.text_input("Search", placeholder="brand, model, keyword…")
    min_price = min_col.number_input("Min $", min_value=0.0, value=0.0, step=5.0)
    max_price = max_col.number_input("Max $", min_value=0.0, value=0.0, step=5.0)
    if query.strip():
        try:
            render_products(
                run(
                    st_session.catalog.list_products(
                        search=query.strip(),
                        min_price=min_price or None,
                        max_price=max_price or None,
                        limit=24,
                    )
                )
            )
        except ShopAssistError as e:
            st.warning(f"Search failed: {e}")
