"""Saga runner: ordered steps, reverse compensation, best-effort external steps."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from opsledger.app.core.config import settings
from opsledger.app.core.errors import ValidationError
from opsledger.app.services.saga import SagaStep, StepKind, run_saga


class Recorder:
    def __init__(self) -> None:
        self.events: list[str] = []
        self.raised: list[Exception] = []

    def local(self, name: str, *, fail: bool = False, fail_undo: bool = False) -> SagaStep:
        def action(ctx: dict[str, Any]) -> str:
            self.events.append(f"do:{name}")
            if fail:
                err = RuntimeError(f"{name} failed")
                self.raised.append(err)
                raise err
            return f"value-{name}"

        def compensate(ctx: dict[str, Any], value: Any) -> None:
            self.events.append(f"undo:{name}:{value}")
            if fail_undo:
                raise RuntimeError(f"undo {name} failed")

        return SagaStep(name, StepKind.LOCAL, action, compensate)

    def external(self, name: str, *, fail: bool = False) -> SagaStep:
        def action(ctx: dict[str, Any]) -> None:
            self.events.append(f"call:{name}")
            if fail:
                raise ConnectionError(f"{name} unreachable")

        return SagaStep(name, StepKind.EXTERNAL, action)


class TestHappyPath:
    def test_steps_run_in_order(self) -> None:
        rec = Recorder()
        result = run_saga([rec.local("a"), rec.local("b"), rec.external("x")])

        assert rec.events == ["do:a", "do:b", "call:x"]
        assert result.completed == ["a", "b", "x"]
        assert result.external_failures == {}

    def test_context_is_shared(self) -> None:
        def first(ctx: dict[str, Any]) -> None:
            ctx["id"] = 42

        seen: list[int] = []
        steps = [
            SagaStep("first", StepKind.LOCAL, first),
            SagaStep("second", StepKind.LOCAL, lambda ctx: seen.append(ctx["id"])),
        ]
        result = run_saga(steps, {"seed": True})
        assert seen == [42]
        assert result.context == {"seed": True, "id": 42}


class TestCompensation:
    def test_reverse_order_and_original_exception(self) -> None:
        rec = Recorder()
        steps = [rec.local("a"), rec.local("b"), rec.external("x"), rec.local("c", fail=True)]

        with pytest.raises(RuntimeError, match="c failed"):
            run_saga(steps)

        assert rec.events == [
            "do:a",
            "do:b",
            "call:x",
            "do:c",
            "undo:b:value-b",
            "undo:a:value-a",
        ]

    def test_middle_step_failure_compensates_only_completed_steps(self) -> None:
        rec = Recorder()
        steps = [rec.local("a"), rec.local("b", fail=True), rec.local("c")]

        with pytest.raises(RuntimeError) as exc_info:
            run_saga(steps)

        assert rec.events == ["do:a", "do:b", "undo:a:value-a"]
        assert exc_info.value is rec.raised[0]

    def test_first_step_failure_compensates_nothing(self) -> None:
        rec = Recorder()
        with pytest.raises(RuntimeError):
            run_saga([rec.local("a", fail=True), rec.local("b")])
        assert rec.events == ["do:a"]

    def test_exception_identity_is_preserved(self) -> None:
        boom = KeyError("missing")

        def fail(ctx: dict[str, Any]) -> None:
            raise boom

        with pytest.raises(KeyError) as exc_info:
            run_saga([SagaStep("fail", StepKind.LOCAL, fail)])
        assert exc_info.value is boom

    def test_failing_compensation_is_logged_and_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        rec = Recorder()
        steps = [rec.local("a"), rec.local("b", fail_undo=True), rec.local("c", fail=True)]

        with caplog.at_level(logging.ERROR, logger="opsledger.app.services.saga"):
            with pytest.raises(RuntimeError, match="c failed"):
                run_saga(steps)

        assert rec.events[-2:] == ["undo:b:value-b", "undo:a:value-a"]
        assert "Compensation for step 'b' failed" in caplog.text


class TestExternalSteps:
    def test_failure_is_recorded_and_workflow_continues(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        rec = Recorder()
        with caplog.at_level(logging.WARNING, logger="opsledger.app.services.saga"):
            result = run_saga([rec.local("a"), rec.external("x", fail=True), rec.external("y")])

        assert rec.events == ["do:a", "call:x", "call:y"]
        assert result.external_failures == {"x": "x unreachable"}
        assert not result.succeeded("x")
        assert result.succeeded("y")
        assert "External step 'x' failed" in caplog.text

    def test_external_failure_never_compensates(self) -> None:
        rec = Recorder()
        run_saga([rec.local("a"), rec.external("x", fail=True)])
        assert not any(e.startswith("undo:") for e in rec.events)

    def test_too_many_external_steps(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "SAGA_MAX_EXTERNAL_STEPS", 2)
        rec = Recorder()
        steps = [rec.external("x"), rec.external("y"), rec.external("z")]

        with pytest.raises(ValidationError):
            run_saga(steps)
        assert rec.events == []
