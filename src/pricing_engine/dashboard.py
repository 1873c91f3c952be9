"""
Pricing Step Engine - Streamlit Dashboard.
Scenario preview, reordering and spreadsheet exchange for a product's steps.

Run with:  streamlit run src/pricing_engine/dashboard.py
"""

import pandas as pd
import streamlit as st

from pricing_engine import (
    JURISDICTIONS,
    DocumentFormat,
    MoveDirection,
    PricingEngine,
    PricingError,
    RoundingMode,
    ValueType,
)
from pricing_engine.config import configure_logging, get_settings
from pricing_engine.samples import (
    SAMPLE_COVERAGES,
    SAMPLE_PRODUCT_ID,
    SAMPLE_PRODUCT_NAME,
    SAMPLE_UPSTREAM_CODES,
    seed_store,
)
from pricing_engine.storage import MongoStepStore

# =============================================================================
# Page Configuration
# =============================================================================
st.set_page_config(
    page_title="Pricing Model",
    page_icon="🧮",
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# Helper Functions
# =============================================================================
def get_engine(use_database: bool) -> PricingEngine:
    """Build (once per session) an engine over MongoDB or the sample store."""
    key = "engine_db" if use_database else "engine_sample"
    if key not in st.session_state:
        configure_logging()
        store = MongoStepStore.from_settings() if use_database else seed_store()
        engine = PricingEngine(
            store,
            SAMPLE_PRODUCT_ID,
            product_name=SAMPLE_PRODUCT_NAME,
            coverages=SAMPLE_COVERAGES,
            upstream_codes=SAMPLE_UPSTREAM_CODES,
        )
        engine.load()
        st.session_state[key] = engine
    return st.session_state[key]


def run_action(action, *args, **kwargs) -> None:
    """Invoke an engine operation and surface pricing errors in the page."""
    try:
        action(*args, **kwargs)
    except PricingError as e:
        st.session_state["last_error"] = e.message
    else:
        st.session_state.pop("last_error", None)


# =============================================================================
# Sidebar
# =============================================================================
with st.sidebar:
    st.markdown("## 🧮 Pricing Model")
    use_database = st.toggle(
        "Use MongoDB",
        value=False,
        help=f"Connects to {get_settings().mongodb_uri}",
    )
    engine = get_engine(use_database)

    st.markdown("### Scenario")
    coverage_names = [c.name for c in engine.coverages]
    selected_coverage = st.selectbox(
        "Coverage", options=["All Coverages", *sorted(coverage_names)]
    )
    coverage = None if selected_coverage == "All Coverages" else selected_coverage
    states = st.multiselect("States", options=list(JURISDICTIONS))

    if st.button("🔄 Reload", use_container_width=True):
        run_action(engine.load)


# =============================================================================
# Premium
# =============================================================================
st.title(engine.product_name or engine.product_id)

if "last_error" in st.session_state:
    st.error(st.session_state["last_error"])

view = engine.view(coverage, states)
col1, col2, col3 = st.columns(3)
with col1:
    st.metric("Premium", engine.premium_display(coverage, states))
with col2:
    st.metric("Steps shown", f"{len(view)} of {len(engine.steps)}")
with col3:
    st.metric("Version", engine.version)

st.markdown("---")


# =============================================================================
# Step Table
# =============================================================================
st.markdown("### Steps")
worksheet = engine.worksheet(coverage, states)
if view:
    st.dataframe(pd.DataFrame(worksheet.rows()), use_container_width=True, hide_index=True)
else:
    st.info("No steps match this scenario.")

with st.expander("↕️ Reorder", expanded=False):
    for index, step in enumerate(engine.steps):
        label = step.step_name if step.is_factor else step.operand.value
        c1, c2, c3 = st.columns([6, 1, 1])
        c1.write(f"{step.order}. {label}")
        c2.button(
            "▲",
            key=f"up-{step.id}",
            disabled=index == 0,
            on_click=run_action,
            args=(engine.move_step, index, MoveDirection.UP, engine.version),
        )
        c3.button(
            "▼",
            key=f"down-{step.id}",
            disabled=index == len(engine.steps) - 1,
            on_click=run_action,
            args=(engine.move_step, index, MoveDirection.DOWN, engine.version),
        )

with st.expander("➕ Add factor", expanded=False):
    with st.form("add_factor", clear_on_submit=True):
        step_name = st.text_input("Step name")
        factor_coverages = st.multiselect("Coverages", options=coverage_names)
        upstream_code = st.selectbox(
            "Upstream code", options=["", *engine.upstream_codes], format_func=lambda c: c or "None"
        )
        f1, f2, f3 = st.columns(3)
        value = f1.text_input("Value")
        rounding = f2.selectbox("Rounding", options=[m.value for m in RoundingMode])
        value_type = f3.selectbox("Value type", options=[t.value for t in ValueType])
        table = st.text_input("Table")
        factor_states = st.multiselect("Applies in", options=list(JURISDICTIONS))
        if st.form_submit_button("Add factor"):
            run_action(
                engine.add_factor,
                step_name,
                factor_coverages,
                value=value or None,
                states=factor_states,
                rounding=rounding,
                value_type=value_type,
                table=table,
                upstream_code=upstream_code or None,
            )
            st.rerun()

with st.expander("➕ Add operand", expanded=False):
    symbol = st.selectbox("Operand", options=["+", "-", "*", "/", "="])
    if st.button("Add operand"):
        run_action(engine.add_operand, symbol)
        st.rerun()

st.markdown("---")


# =============================================================================
# Exchange
# =============================================================================
st.markdown("### 📤 Export / 📥 Import")
exp1, exp2 = st.columns(2)

with exp1:
    st.download_button(
        label="📄 Download XLSX",
        data=engine.export_document(DocumentFormat.XLSX),
        file_name=f"pricing_{engine.product_name or engine.product_id}.xlsx",
        mime=DocumentFormat.XLSX.mime_type,
    )
    st.download_button(
        label="📝 Download CSV",
        data=engine.export_document(DocumentFormat.CSV),
        file_name=f"pricing_{engine.product_name or engine.product_id}.csv",
        mime=DocumentFormat.CSV.mime_type,
    )

with exp2:
    uploaded_file = st.file_uploader("Import steps", type=["xlsx", "csv"])
    if uploaded_file is not None and st.button("Import"):
        try:
            report = engine.import_document(uploaded_file)
        except PricingError as e:
            st.error(f"Import failed: {e.message}")
        else:
            st.success(
                f"Import complete: {report.factor_count} new factor steps, "
                f"{report.skipped_count} duplicates skipped."
            )
