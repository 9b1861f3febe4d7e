"""Multi-step form engine: navigation, validation, autosave and submission.

One :class:`MultiStepFormEngine` drives one wizard instance. It owns its form
state, cursor and submission status; nothing is shared between instances
except a storage backend explicitly configured with the same key.

Only three things ever suspend: a step validator, a storage read/write, and
the completion callback. While one transition (``next_step``, ``prev_step``,
``go_to_step``, ``submit_form``, ``reset_form``) awaits, any other transition
request is ignored rather than queued.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from opentelemetry import trace

import config
from core.errors import ConfigurationError
from state.autosave import PersistedSnapshot, build_snapshot
from state.persistence import JsonFileStorage, PersistenceAdapter, SnapshotPersistence
from utils.logging_context import log_context
from wizard.form_state import FormState
from wizard.navigation.router import StepNavigator, TransitionOutcome, TransitionResult
from wizard.step_registry import StepDefinition, StepRegistry
from wizard.submission import (
    SubmissionController,
    SubmissionOutcome,
    SubmissionResult,
    SubmissionStatus,
)
from wizard.types import CompletionCallback, FieldErrors, FormData, StepChangeCallback
from wizard.validation import ValidationGate

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class WizardConfig:
    """Instance-scoped construction options for :class:`MultiStepFormEngine`."""

    steps: Sequence[StepDefinition]
    default_values: Mapping[str, Any] = field(default_factory=dict)
    on_complete: CompletionCallback | None = None
    persist_state: bool = config.PERSIST_STATE_DEFAULT
    storage_key: str = config.DEFAULT_STORAGE_KEY
    storage: PersistenceAdapter | None = None
    on_step_change: StepChangeCallback | None = None
    autosave_debounce: float = config.AUTOSAVE_DEBOUNCE_SECONDS

    def __post_init__(self) -> None:
        if not isinstance(self.storage_key, str) or not self.storage_key.strip():
            raise ConfigurationError("storage_key must be a non-empty string")
        if self.autosave_debounce < 0:
            raise ConfigurationError("autosave_debounce must be >= 0")
        if self.on_complete is not None and not callable(self.on_complete):
            raise ConfigurationError("on_complete must be callable")
        if self.on_step_change is not None and not callable(self.on_step_change):
            raise ConfigurationError("on_step_change must be callable")
        if not isinstance(self.default_values, Mapping):
            raise ConfigurationError("default_values must be a mapping")


class MultiStepFormEngine:
    """Drive a wizard across an ordered list of steps.

    Construct with :meth:`create` to hydrate from storage before the first
    render; plain construction leaves hydration to an explicit
    :meth:`hydrate` call.
    """

    def __init__(self, wizard_config: WizardConfig) -> None:
        self._config = wizard_config
        self._steps = StepRegistry(wizard_config.steps)
        self._form_state = FormState(wizard_config.default_values)
        self._navigator = StepNavigator(self._steps, gate=ValidationGate())
        self._submission = SubmissionController(wizard_config.on_complete)
        self._persistence: SnapshotPersistence | None = None
        if wizard_config.persist_state:
            backend = wizard_config.storage or JsonFileStorage(config.STORAGE_DIR)
            self._persistence = SnapshotPersistence(backend, wizard_config.storage_key)
        self._field_errors: FieldErrors = {}
        self._busy = False
        self._disposed = False
        self._hydrated = False
        self._autosave_dirty = False
        self._autosave_task: asyncio.Task[None] | None = None
        self._form_state.set_listener(self._on_field_edit)

    @classmethod
    async def create(cls, wizard_config: WizardConfig) -> "MultiStepFormEngine":
        """Build an engine and hydrate it from storage when persistence is on."""

        engine = cls(wizard_config)
        await engine.hydrate()
        return engine

    # ------------------------------------------------------------------
    # Read-only surface for the UI layer
    # ------------------------------------------------------------------

    @property
    def steps(self) -> StepRegistry:
        return self._steps

    @property
    def storage_key(self) -> str:
        return self._config.storage_key

    @property
    def persistence_enabled(self) -> bool:
        return self._persistence is not None

    @property
    def current_step_index(self) -> int:
        return self._navigator.current_index

    @property
    def current_step_config(self) -> StepDefinition:
        return self._navigator.current_step

    @property
    def total_steps(self) -> int:
        return self._navigator.total_steps

    @property
    def is_first_step(self) -> bool:
        return self._navigator.is_first_step

    @property
    def is_last_step(self) -> bool:
        return self._navigator.is_last_step

    @property
    def progress(self) -> float:
        return self._navigator.progress

    @property
    def max_reached_index(self) -> int:
        return self._navigator.max_reached_index

    @property
    def form_state(self) -> FormState:
        """Read/write binding for field widgets."""

        return self._form_state

    @property
    def field_errors(self) -> FieldErrors:
        return dict(self._field_errors)

    @property
    def submission_status(self) -> SubmissionStatus:
        return self._submission.status

    @property
    def submission_error(self) -> Exception | None:
        return self._submission.last_error

    @property
    def is_transitioning(self) -> bool:
        return self._busy

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def has_pending_autosave(self) -> bool:
        return self._persistence is not None and self._autosave_dirty

    def is_step_unlocked(self, index: int) -> bool:
        return self._navigator.is_step_unlocked(index)

    def get_step_data(self) -> FormData:
        """Return a deep copy of the whole form state."""

        return self._form_state.snapshot()

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    def set_field(self, name: str, value: Any) -> None:
        if self._disposed:
            logger.debug("Ignoring edit of '%s' on a disposed wizard", name)
            return
        self._form_state[name] = value

    def update_fields(self, values: Mapping[str, Any]) -> None:
        if self._disposed:
            logger.debug("Ignoring edits of %s on a disposed wizard", sorted(values))
            return
        self._form_state.update_fields(values)

    def _on_field_edit(self, name: str, _value: Any) -> None:
        self._field_errors.pop(name, None)
        self._schedule_autosave()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def hydrate(self) -> bool:
        """Load a stored snapshot once; return ``True`` when one was applied.

        Validation is not re-run for a resumed position; the next forward
        move validates as usual.
        """

        if self._hydrated:
            return False
        self._hydrated = True
        if self._persistence is None:
            return False
        with log_context(wizard_id=self.storage_key):
            snapshot = await self._persistence.load()
            if snapshot is None or self._disposed:
                return False
            self._apply_snapshot(snapshot)
            logger.info(
                "Resumed wizard at step %s from snapshot taken %s",
                self.current_step_index,
                snapshot.timestamp.isoformat(),
            )
        return True

    def dispose(self) -> None:
        """Mark the owning UI as torn down; late async results are discarded."""

        self._disposed = True
        self._cancel_autosave()
        self._form_state.set_listener(None)

    async def flush(self) -> bool:
        """Write a pending debounced autosave immediately."""

        self._cancel_autosave()
        if not self.has_pending_autosave:
            return False
        return await self._persist()

    async def clear_persisted_data(self) -> bool:
        self._cancel_autosave()
        self._autosave_dirty = False
        if self._persistence is None:
            return False
        return await self._persistence.clear()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def next_step(self) -> TransitionResult:
        """Validate the active step and move forward by one."""

        origin = self.current_step_index
        with self._transition("next_step") as admitted:
            if not admitted or self._submission.is_terminal:
                return TransitionResult.stay(TransitionOutcome.IGNORED, origin)
            with tracer.start_as_current_span("wizard.next_step") as span:
                span.set_attribute("wizard.step_id", self.current_step_config.id)
                result = await self._navigator.next_step(
                    self._form_state.read_only_view(),
                    apply_guard=self._is_active,
                )
                span.set_attribute("wizard.outcome", result.outcome.value)
                await self._after_transition(result)
                return result

    async def prev_step(self) -> TransitionResult:
        """Move back by one; never validates and never touches form data."""

        origin = self.current_step_index
        with self._transition("prev_step") as admitted:
            if not admitted or self._submission.is_terminal:
                return TransitionResult.stay(TransitionOutcome.IGNORED, origin)
            result = self._navigator.prev_step()
            await self._after_transition(result)
            return result

    async def go_to_step(self, index: int) -> TransitionResult:
        """Jump to ``index``; forward jumps are limited to unlocked steps.

        Raises:
            ConfigurationError: if ``index`` is out of range.
        """

        origin = self.current_step_index
        if isinstance(index, bool) or not isinstance(index, int) or not self._steps.contains_index(index):
            raise ConfigurationError(f"Step index {index!r} out of range (valid range: 0-{self._steps.last_index})")
        with self._transition("go_to_step") as admitted:
            if not admitted or self._submission.is_terminal:
                return TransitionResult.stay(TransitionOutcome.IGNORED, origin)
            with tracer.start_as_current_span("wizard.go_to_step") as span:
                span.set_attribute("wizard.step_id", self.current_step_config.id)
                span.set_attribute("wizard.target_index", index)
                result = await self._navigator.go_to_step(
                    index,
                    self._form_state.read_only_view(),
                    apply_guard=self._is_active,
                )
                span.set_attribute("wizard.outcome", result.outcome.value)
                await self._after_transition(result)
                return result

    async def submit_form(self) -> SubmissionResult:
        """Validate the final step and hand the full form state to ``on_complete``."""

        with self._transition("submit_form") as admitted:
            if not admitted:
                return self._submission.skipped(SubmissionOutcome.IGNORED)
            if self._submission.is_terminal:
                return self._submission.skipped(SubmissionOutcome.ALREADY_SUBMITTED)
            if not self._submission.can_submit():
                return self._submission.skipped(SubmissionOutcome.IGNORED)
            if not self.is_last_step:
                logger.debug("submit_form ignored on step %s", self.current_step_index)
                return self._submission.skipped(SubmissionOutcome.NOT_ON_LAST_STEP)

            with tracer.start_as_current_span("wizard.submit_form") as span:
                span.set_attribute("wizard.step_id", self.current_step_config.id)
                validation = await self._navigator.validate_current(self._form_state.read_only_view())
                if not self._is_active():
                    return self._submission.skipped(SubmissionOutcome.DISCARDED)
                if not validation.passed:
                    self._field_errors = dict(validation.field_errors)
                    span.set_attribute("wizard.outcome", SubmissionOutcome.BLOCKED.value)
                    return self._submission.blocked(validation)

                self._field_errors = {}
                result = await self._submission.submit(self._form_state.snapshot(), apply_guard=self._is_active)
                span.set_attribute("wizard.outcome", result.outcome.value)
                if result.error is not None and result.outcome is SubmissionOutcome.FAILED:
                    span.record_exception(result.error.cause)
                if result.succeeded:
                    await self._finish_submission()
                return result

    async def reset_form(self) -> bool:
        """Return to the first step with default values and no stored snapshot."""

        with self._transition("reset_form") as admitted:
            if not admitted:
                return False
            self._navigator.reset()
            self._form_state.reset()
            self._field_errors = {}
            self._submission.reset()
            await self.clear_persisted_data()
            logger.info("Wizard reset to defaults")
            return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _transition(self, operation: str) -> Iterator[bool]:
        if self._disposed:
            logger.debug("Ignoring %s on a disposed wizard", operation)
            yield False
            return
        if self._busy:
            logger.debug("Ignoring %s: another transition is still pending", operation)
            yield False
            return
        self._busy = True
        try:
            with log_context(wizard_id=self.storage_key, wizard_step=self.current_step_config.id):
                yield True
        finally:
            self._busy = False

    def _is_active(self) -> bool:
        return not self._disposed

    async def _after_transition(self, result: TransitionResult) -> None:
        if result.outcome is TransitionOutcome.BLOCKED and result.error is not None:
            self._field_errors = dict(result.field_errors)
            return
        if not result.moved:
            return
        self._field_errors = {}
        await self._persist()
        self._notify_step_change(result.to_index)

    async def _finish_submission(self) -> None:
        self._cancel_autosave()
        self._autosave_dirty = False
        if self._persistence is not None:
            await self._persistence.clear()
        self._form_state.reset()
        logger.info("Wizard submitted successfully")

    def _notify_step_change(self, index: int) -> None:
        callback = self._config.on_step_change
        if callback is None:
            return
        try:
            callback(index, self._form_state.snapshot())
        except Exception:
            logger.exception("on_step_change callback failed for step %s", index)

    def _apply_snapshot(self, snapshot: PersistedSnapshot) -> None:
        self._form_state.replace(snapshot.form_state)
        self._navigator.restore(snapshot.cursor_index, snapshot.max_reached_index)

    async def _persist(self) -> bool:
        if self._persistence is None:
            return False
        self._cancel_autosave()
        self._autosave_dirty = False
        snapshot = build_snapshot(
            self.storage_key,
            self._form_state.snapshot(),
            cursor_index=self.current_step_index,
            max_reached_index=self.max_reached_index,
        )
        return await self._persistence.save(snapshot)

    def _schedule_autosave(self) -> None:
        if self._persistence is None:
            return
        self._autosave_dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (e.g. a synchronous Streamlit callback); flush() writes it later.
            return
        self._cancel_autosave()
        self._autosave_task = loop.create_task(self._debounced_autosave())

    async def _debounced_autosave(self) -> None:
        await asyncio.sleep(self._config.autosave_debounce)
        self._autosave_task = None
        if self._disposed or not self._autosave_dirty:
            return
        with log_context(wizard_id=self.storage_key):
            await self._persist()

    def _cancel_autosave(self) -> None:
        task = self._autosave_task
        self._autosave_task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = ["MultiStepFormEngine", "WizardConfig"]
