# app.py - partner onboarding demo for the multi-step form engine
from __future__ import annotations

import logging
from pathlib import Path
import sys
from typing import Any

import streamlit as st

APP_ROOT = Path(__file__).resolve().parent
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

import config  # noqa: E402
from constants.keys import StateKeys, UIKeys  # noqa: E402
from state.persistence import SessionStateStorage  # noqa: E402
from utils.logging_context import configure_logging  # noqa: E402
from utils.telemetry import setup_tracing  # noqa: E402
from wizard.navigation.ui import (  # noqa: E402
    bind_text_field,
    clear_widget_state,
    discard_engine,
    get_or_create_engine,
    render_wizard,
    run_async,
)
from wizard.engine import MultiStepFormEngine  # noqa: E402
from wizard.submission import SubmissionStatus  # noqa: E402
from wizard_pages.partner import build_partner_config  # noqa: E402

APP_VERSION = "0.1.0"

configure_logging(level=config.LOG_LEVEL)
setup_tracing()
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Partner onboarding", page_icon="🧭", layout="centered")


async def _record_partner(data: dict[str, Any]) -> None:
    """Stand-in for the partner API: keep submissions in the session."""

    submissions = st.session_state.setdefault(StateKeys.SUBMISSIONS, [])
    submissions.append(data)
    logger.info("Partner '%s' submitted", data.get("unified_number"))


def _render_partner_step(engine: MultiStepFormEngine) -> None:
    bind_text_field(engine, "type", "Business type")
    bind_text_field(engine, "unified_number", "Unified number")
    bind_text_field(engine, "payout_per_parcel", "Payout per parcel")
    bind_text_field(engine, "currency", "Currency", help="ISO code, e.g. EGP or SAR")


def _render_representative_step(engine: MultiStepFormEngine) -> None:
    bind_text_field(engine, "name", "Name")
    bind_text_field(engine, "phone_number", "Phone number")
    bind_text_field(engine, "job_title", "Job title")
    bind_text_field(engine, "id_number", "ID number (optional)")
    bind_text_field(engine, "email", "Email")


def _render_bank_step(engine: MultiStepFormEngine) -> None:
    bind_text_field(engine, "account_holder_name", "Account holder")
    bind_text_field(engine, "bank_name", "Bank")
    bind_text_field(engine, "account_number", "Account number")
    bind_text_field(engine, "iban", "IBAN")
    company_account = st.checkbox(
        "Company account",
        value=bool(engine.form_state.get("company_account")),
    )
    if company_account != engine.form_state.get("company_account"):
        engine.set_field("company_account", company_account)


wizard_config = build_partner_config(
    on_complete=_record_partner,
    persist_state=True,
    storage=SessionStateStorage(),
)
engine = get_or_create_engine(wizard_config)

st.title("Partner onboarding")
render_wizard(
    engine,
    {
        "partner": _render_partner_step,
        "representative": _render_representative_step,
        "bank_account": _render_bank_step,
    },
)

with st.sidebar:
    st.caption(f"v{APP_VERSION}")
    if st.button("Start over", key=UIKeys.NAV_RESET):
        if engine.submission_status is SubmissionStatus.SUCCESS:
            discard_engine(wizard_config.storage_key)
        else:
            run_async(engine.reset_form())
            clear_widget_state(wizard_config.storage_key)
        st.rerun()
    submitted = st.session_state.get(StateKeys.SUBMISSIONS) or []
    if submitted:
        st.subheader("Submitted partners")
        st.json(submitted)
