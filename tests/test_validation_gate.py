from __future__ import annotations

from typing import Any, Mapping

import pytest
from pydantic import BaseModel, Field

from core.errors import FORM_ERROR_KEY, GENERIC_FIELD_ERROR, StepValidationError
from wizard.step_registry import StepDefinition
from wizard.validation import ValidationGate, schema_field_errors


class _NameSchema(BaseModel):
    name: str = Field(min_length=3)


@pytest.mark.asyncio
async def test_missing_validator_always_passes() -> None:
    outcome = await ValidationGate().run(StepDefinition(id="a", title="A"), {})

    assert outcome.passed
    assert outcome.field_errors == {}


@pytest.mark.asyncio
async def test_sync_and_async_predicates_are_supported() -> None:
    async def _async_ok(data: Mapping[str, Any]) -> bool:
        return data["x"] == 1

    gate = ValidationGate()
    sync_step = StepDefinition(id="s", title="S", validate=lambda data: data["x"] == 1)
    async_step = StepDefinition(id="a", title="A", validate=_async_ok)

    assert (await gate.run(sync_step, {"x": 1})).passed
    assert (await gate.run(async_step, {"x": 1})).passed
    assert not (await gate.run(async_step, {"x": 2})).passed


@pytest.mark.asyncio
async def test_false_verdict_flags_every_declared_field() -> None:
    step = StepDefinition(id="a", title="A", field_keys=frozenset({"x", "y"}), validate=lambda _data: False)

    outcome = await ValidationGate().run(step, {"x": "", "y": ""})

    assert not outcome.passed
    assert outcome.field_errors == {"x": GENERIC_FIELD_ERROR, "y": GENERIC_FIELD_ERROR}
    assert isinstance(outcome.error, StepValidationError)
    assert outcome.error.step_id == "a"


@pytest.mark.asyncio
async def test_false_verdict_without_fields_uses_form_key() -> None:
    step = StepDefinition(id="a", title="A", validate=lambda _data: False)

    outcome = await ValidationGate().run(step, {})

    assert outcome.field_errors == {FORM_ERROR_KEY: GENERIC_FIELD_ERROR}


@pytest.mark.asyncio
async def test_validator_can_raise_precise_field_errors() -> None:
    def _validate(_data: Mapping[str, Any]) -> bool:
        raise StepValidationError("bad email", field_errors={"email": "Invalid email"})

    step = StepDefinition(id="a", title="A", field_keys=frozenset({"email"}), validate=_validate)

    outcome = await ValidationGate().run(step, {"email": "nope"})

    assert outcome.field_errors == {"email": "Invalid email"}
    assert str(outcome.error) == "bad email"


@pytest.mark.asyncio
async def test_rejected_validator_blocks_without_raising() -> None:
    async def _boom(_data: Mapping[str, Any]) -> bool:
        raise RuntimeError("service down")

    outcome = await ValidationGate().run(StepDefinition(id="a", title="A", validate=_boom), {})

    assert not outcome.passed
    assert outcome.field_errors == {FORM_ERROR_KEY: "service down"}


@pytest.mark.asyncio
async def test_validator_sees_all_fields_but_cannot_mutate_them() -> None:
    seen: dict[str, Any] = {}

    def _validate(data: Mapping[str, Any]) -> bool:
        seen.update(data)
        data["later"] = "changed"  # type: ignore[index]
        return True

    step = StepDefinition(id="a", title="A", field_keys=frozenset({"x"}), validate=_validate)
    form = {"x": 1, "later": "from another step"}

    outcome = await ValidationGate().run(step, _ReadOnly(form))

    assert not outcome.passed
    assert seen == {"x": 1, "later": "from another step"}
    assert form["later"] == "from another step"


@pytest.mark.asyncio
async def test_non_bool_verdict_counts_as_failure() -> None:
    step = StepDefinition(id="a", title="A", field_keys=frozenset({"x"}), validate=lambda _data: "yes")

    outcome = await ValidationGate().run(step, {"x": 1})

    assert not outcome.passed


def test_schema_errors_are_keyed_by_field() -> None:
    step = StepDefinition(id="a", title="A", field_keys=frozenset({"name"}), schema=_NameSchema)

    assert schema_field_errors(step, {"name": "Al"}).keys() == {"name"}
    assert schema_field_errors(step, {"name": "Alice"}) == {}


@pytest.mark.asyncio
async def test_schema_failure_short_circuits_predicate() -> None:
    calls: list[int] = []

    def _validate(_data: Mapping[str, Any]) -> bool:
        calls.append(1)
        return True

    step = StepDefinition(
        id="a",
        title="A",
        field_keys=frozenset({"name"}),
        schema=_NameSchema,
        validate=_validate,
    )

    outcome = await ValidationGate().run(step, {"name": ""})

    assert not outcome.passed
    assert "name" in outcome.field_errors
    assert calls == []


class _ReadOnly(dict):
    """Mimic the engine's read-only view for direct gate calls."""

    def __setitem__(self, key: str, value: Any) -> None:
        raise TypeError("read-only")
