"""Streamlit surface for :class:`~wizard.engine.MultiStepFormEngine`.

Streamlit reruns the script on every interaction and has no event loop of its
own, so engine coroutines are driven with :func:`asyncio.run` from button
callbacks. Engines live in ``st.session_state`` (one per storage key), never
in module globals.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Literal, Mapping, TypeVar

import streamlit as st

from constants.keys import UIKeys
from core.errors import FORM_ERROR_KEY
from wizard.engine import MultiStepFormEngine, WizardConfig
from wizard.navigation.keys import WizardSessionKeys
from wizard.navigation.router import TransitionOutcome, TransitionResult
from wizard.submission import SubmissionOutcome, SubmissionResult, SubmissionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")
StepRenderer = Callable[[MultiStepFormEngine], None]
NavigationAction = Literal["back", "next", "submit"]


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Drive an engine coroutine to completion from synchronous Streamlit code."""

    return asyncio.run(coro)


def get_or_create_engine(wizard_config: WizardConfig) -> MultiStepFormEngine:
    """Return the session's engine for ``wizard_config.storage_key``, creating it once."""

    keys = WizardSessionKeys(wizard_config.storage_key)
    engine = st.session_state.get(keys.engine)
    if isinstance(engine, MultiStepFormEngine) and not engine.is_disposed:
        return engine
    engine = run_async(MultiStepFormEngine.create(wizard_config))
    st.session_state[keys.engine] = engine
    return engine


def discard_engine(storage_key: str) -> None:
    """Tear down the session's engine so late results are not applied."""

    keys = WizardSessionKeys(storage_key)
    engine = st.session_state.pop(keys.engine, None)
    if isinstance(engine, MultiStepFormEngine):
        engine.dispose()
    clear_widget_state(storage_key)


def clear_widget_state(storage_key: str) -> None:
    """Drop cached widget values so inputs re-read the form state."""

    prefix = WizardSessionKeys(storage_key).field_widget("")
    for key in [key for key in st.session_state if isinstance(key, str) and key.startswith(prefix)]:
        st.session_state.pop(key, None)


def bind_text_field(
    engine: MultiStepFormEngine,
    field_name: str,
    label: str,
    *,
    placeholder: str = "",
    help: str | None = None,
) -> str:
    """Render a text input bound to ``field_name`` of the engine's form state.

    The widget mirrors the form value only on first render; later edits flow
    back through ``engine.set_field`` in the ``on_change`` callback.
    """

    widget_key = WizardSessionKeys(engine.storage_key).field_widget(field_name)
    if widget_key not in st.session_state:
        current = engine.form_state.get(field_name)
        st.session_state[widget_key] = "" if current is None else str(current)

    def _on_change() -> None:
        engine.set_field(field_name, st.session_state[widget_key])

    value = st.text_input(
        label,
        key=widget_key,
        placeholder=placeholder,
        help=help,
        on_change=_on_change,
    )
    error = engine.field_errors.get(field_name)
    if error:
        st.caption(f":red[{error}]")
    return value


def render_progress(engine: MultiStepFormEngine) -> None:
    step = engine.current_step_config
    st.progress(int(engine.progress))
    st.caption(f"Step {engine.current_step_index + 1} of {engine.total_steps}: {step.title}")


def render_step_heading(engine: MultiStepFormEngine) -> None:
    step = engine.current_step_config
    st.subheader(step.title)
    if step.description:
        st.caption(step.description)


def render_field_errors(engine: MultiStepFormEngine) -> None:
    """Show form-level errors; field errors are rendered next to their inputs."""

    form_error = engine.field_errors.get(FORM_ERROR_KEY)
    if form_error:
        st.error(form_error)
    if engine.submission_status is SubmissionStatus.ERROR and engine.submission_error is not None:
        st.error(f"Submission failed: {engine.submission_error.cause}. Your entries are kept, please retry.")


def dispatch(engine: MultiStepFormEngine, action: NavigationAction) -> TransitionResult | SubmissionResult:
    """Run the engine coroutine behind a navigation button."""

    if action == "back":
        result: TransitionResult | SubmissionResult = run_async(engine.prev_step())
    elif action == "next":
        result = run_async(engine.next_step())
    else:
        result = run_async(engine.submit_form())
        if isinstance(result, SubmissionResult) and result.succeeded:
            clear_widget_state(engine.storage_key)
    st.session_state[WizardSessionKeys(engine.storage_key).last_result] = result
    logger.debug("Navigation action %s finished with %s", action, result.outcome)
    return result


def render_navigation(engine: MultiStepFormEngine) -> None:
    """Render Back and Next/Submit buttons for the active step."""

    busy = engine.is_transitioning or engine.submission_status is SubmissionStatus.SUBMITTING
    done = engine.submission_status is SubmissionStatus.SUCCESS
    cols = st.columns((1, 1), gap="small")
    suffix = f"{engine.storage_key}.{engine.current_step_index}"
    cols[0].button(
        "◀ Back",
        key=f"{UIKeys.NAV_BACK}.{suffix}",
        disabled=engine.is_first_step or busy or done,
        on_click=dispatch,
        args=(engine, "back"),
        use_container_width=True,
    )
    if engine.is_last_step:
        cols[1].button(
            "Submit",
            key=f"{UIKeys.NAV_SUBMIT}.{suffix}",
            type="primary",
            disabled=busy or done,
            on_click=dispatch,
            args=(engine, "submit"),
            use_container_width=True,
        )
    else:
        cols[1].button(
            "Next ▶",
            key=f"{UIKeys.NAV_NEXT}.{suffix}",
            type="primary",
            disabled=busy or done,
            on_click=dispatch,
            args=(engine, "next"),
            use_container_width=True,
        )


def render_last_result(engine: MultiStepFormEngine) -> None:
    result = st.session_state.get(WizardSessionKeys(engine.storage_key).last_result)
    if isinstance(result, TransitionResult) and result.outcome is TransitionOutcome.BLOCKED:
        st.warning("Please fix the highlighted fields before continuing.")
    elif isinstance(result, SubmissionResult) and result.outcome is SubmissionOutcome.SUBMITTED:
        st.success("Submitted successfully.")


def render_wizard(engine: MultiStepFormEngine, renderers: Mapping[str, StepRenderer] | None = None) -> None:
    """Render progress, the active step's fields and the navigation controls.

    A step's ``component`` is used as its renderer when it is callable;
    ``renderers`` (keyed by step id) takes precedence.
    """

    step = engine.current_step_config
    render_progress(engine)
    render_step_heading(engine)
    renderer = (renderers or {}).get(step.id) or (step.component if callable(step.component) else None)
    if renderer is None:
        for field_name in sorted(step.field_keys):
            bind_text_field(engine, field_name, field_name)
    else:
        renderer(engine)
    render_field_errors(engine)
    render_last_result(engine)
    render_navigation(engine)
    if engine.has_pending_autosave:
        run_async(engine.flush())


__all__ = [
    "bind_text_field",
    "clear_widget_state",
    "discard_engine",
    "dispatch",
    "get_or_create_engine",
    "render_field_errors",
    "render_navigation",
    "render_progress",
    "render_step_heading",
    "render_wizard",
    "run_async",
]
