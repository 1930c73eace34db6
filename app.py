"""
Albi Mall Assistant - Streamlit console

Drives the same Assistant as the HTTP API, in-process, for demos and
manual testing against the bundled catalog.

Run with: streamlit run app.py

Architecture:
- This file: Streamlit UI only
- core/orchestrator.py: Turn processing and wiring (build_assistant)
- handlers/: Intent-specific handlers
- core/: Business logic (filters, sessions, merging, retrieval, cache)
- llm/: Text generation, prompts and response composition
"""

import logging

import streamlit as st

from catalog_loader import get_catalog_statistics
from config.settings import get_settings
from core.orchestrator import build_assistant
from core.sessions import generate_session_id
from core.structured_logging import setup_logging, get_logger


# =============================================================================
# CONFIGURATION
# =============================================================================

settings = get_settings()

setup_logging(
    log_dir=settings.log_dir,
    console_level=getattr(logging, settings.log_level.upper(), logging.INFO),
    enable_console=True,
    enable_file=settings.log_to_file,
    enable_error_log=settings.log_to_file,
)
app_logger = get_logger("app")

st.set_page_config(
    page_title="Albi Mall Assistant",
    page_icon="🛍️",
    layout="wide"
)


# =============================================================================
# COMPONENT INITIALIZATION
# =============================================================================

@st.cache_resource
def get_assistant():
    """Build the assistant once per process (cached)."""
    try:
        assistant = build_assistant(settings)
        assistant.start()
        return assistant, get_catalog_statistics(assistant.catalog), None
    except FileNotFoundError as e:
        return None, {}, str(e)
    except ValueError as e:
        return None, {}, f"Error loading catalog: {e}"


def new_session() -> None:
    st.session_state.session_id = generate_session_id()
    st.session_state.messages = []


def render_products(products) -> None:
    """Show recommended products as a row of cards."""
    if not products:
        return
    columns = st.columns(min(len(products), 3))
    for i, product in enumerate(products):
        with columns[i % len(columns)]:
            if product.image_url:
                st.image(product.image_url, use_container_width=True)
            st.markdown(f"**{product.name}**")
            st.write(f"${product.price:.2f} · {product.color or 'Assorted'}")
            if product.discount_percentage:
                st.caption(f"{product.discount_percentage:.0f}% off")


# =============================================================================
# MAIN APP
# =============================================================================

def main():
    st.title("🛍️ Albi Mall Assistant")
    st.markdown(f"*Your {settings.store_brand} shopping assistant*")

    assistant, stats, error = get_assistant()
    if error:
        st.error(f"❌ {error}")
        st.info(f"💡 Set ALBI_CATALOG_PATH or place the catalog at {settings.catalog_path}")
        st.stop()

    if not assistant.catalog:
        st.warning("⚠️ No products loaded. Check the catalog file.")

    # Sidebar: catalog
    with st.sidebar:
        st.header("📦 Product Catalog")
        st.metric("Total Products", stats['total'])

        if stats['total']:
            col1, col2 = st.columns(2)
            with col1:
                st.metric("Lowest Price", f"${stats['price_min']:.0f}")
            with col2:
                st.metric("Highest Price", f"${stats['price_max']:.0f}")

            with st.expander("📊 Categories"):
                for cat, count in sorted(stats['by_category'].items()):
                    st.write(f"• **{cat}:** {count}")

        st.markdown("---")

    # Initialize session state
    if "session_id" not in st.session_state:
        new_session()

    session_id = st.session_state.session_id

    # Sidebar: session
    with st.sidebar:
        st.header("📊 Session")
        st.write(f"**Session ID:** `{session_id[:24]}...`")
        st.write(f"**Messages:** {len(st.session_state.messages)}")

        snapshot = assistant.session_snapshot(session_id)
        if snapshot and snapshot.get("last_products"):
            st.write(f"**Products in Context:** {len(snapshot['last_products'])}")

        if st.button("🔄 New Session"):
            assistant.clear_session(session_id)
            new_session()
            st.rerun()

    # Display chat history
    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])
            render_products(message.get("products", []))

    prompt = st.chat_input(f"What {settings.store_brand} piece are you looking for?")

    if prompt:
        st.session_state.messages.append({"role": "user", "content": prompt})
        with st.chat_message("user"):
            st.markdown(prompt)

        with st.chat_message("assistant"):
            with st.spinner("Browsing the collection..."):
                reply = assistant.handle_message(prompt, session_id=session_id)
                response = reply.response
                st.markdown(response.assistant_text)
                render_products(reply.products)

                if settings.debug:
                    with st.expander("🔍 Debug Info"):
                        st.write(f"**Intent Detected:** {reply.intent.value}")
                        st.write(f"**Fallback Used:** {response.used_fallback}")
                        for note in response.audit_notes:
                            st.write(f"• {note}")
                        for line in reply.debug_lines:
                            st.code(line)

        st.session_state.messages.append({
            "role": "assistant",
            "content": response.assistant_text,
            "products": reply.products,
        })


if __name__ == "__main__":
    main()
