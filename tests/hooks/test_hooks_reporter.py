"""Tests for the result reporter."""

from __future__ import annotations

import io
import logging

import pytest
from rich.console import Console

from hookguard.core.hooks.reporter import emit, render_summary, report, report_legacy
from hookguard.core.hooks.types import (
    AggregatedResult,
    Decision,
    HookDescriptor,
    HookOutcome,
    OutcomeStatus,
)


def _result(*outcomes: HookOutcome) -> AggregatedResult:
    result = AggregatedResult()
    result.merge(list(outcomes))
    return result


def _blocked(command: str, message: str | None) -> HookOutcome:
    return HookOutcome(
        hook=HookDescriptor(command=command, priority="high"),
        status=OutcomeStatus.BLOCKED,
        message=message,
        exit_code=2,
    )


class TestReport:
    def test_allow(self) -> None:
        protocol = report(_result())

        assert protocol.decision == Decision.ALLOW
        assert protocol.exit_code == 0
        assert protocol.message == ""

    def test_block_message_is_the_hook_text(self) -> None:
        protocol = report(_result(_blocked("env.sh", "env files protected")))

        assert protocol.decision == Decision.BLOCK
        assert protocol.exit_code == 2
        assert protocol.message == "env files protected"

    def test_block_message_kept_verbatim(self) -> None:
        protocol = report(_result(_blocked("multi.sh", "line one\nline two\n")))

        assert protocol.message == "line one\nline two\n"

    def test_first_block_wins(self) -> None:
        protocol = report(_result(_blocked("a.sh", "first\n"), _blocked("b.sh", "second\n")))

        assert protocol.message == "first\n"

    def test_block_without_message_uses_default(self) -> None:
        protocol = report(_result(_blocked("quiet.sh", None)))

        assert protocol.message == "Operation blocked by hook validation"

    def test_errors_alone_allow(self) -> None:
        failed = HookOutcome.failure(HookDescriptor(command="crash.sh"), "boom")

        protocol = report(_result(failed))

        assert protocol.decision == Decision.ALLOW
        assert protocol.exit_code == 0

    def test_errors_logged_only_when_verbose(self, caplog: pytest.LogCaptureFixture) -> None:
        failed = HookOutcome.failure(HookDescriptor(command="crash.sh"), "boom")

        with caplog.at_level(logging.WARNING, logger="hookguard.core.hooks.reporter"):
            report(_result(failed))
            assert "crash.sh" not in caplog.text
            report(_result(failed), verbose=True)

        assert "1 hooks had errors" in caplog.text
        assert "crash.sh: boom" in caplog.text


class TestReportLegacy:
    def test_ok(self) -> None:
        assert report_legacy(_result()) == {"status": "ok"}

    def test_blocked(self) -> None:
        data = report_legacy(_result(_blocked("env.sh", "env files protected\n")))

        assert data == {"status": "blocked", "message": "env files protected"}


class TestEmit:
    def test_block_writes_message(self) -> None:
        stream = io.StringIO()

        code = emit(report(_result(_blocked("env.sh", "nope"))), stream)

        assert code == 2
        assert stream.getvalue() == "nope\n"

    def test_terminated_message_written_unchanged(self) -> None:
        stream = io.StringIO()

        emit(report(_result(_blocked("multi.sh", "line one\nline two\n"))), stream)

        assert stream.getvalue() == "line one\nline two\n"

    def test_allow_is_silent(self) -> None:
        stream = io.StringIO()

        code = emit(report(_result()), stream)

        assert code == 0
        assert stream.getvalue() == ""


class TestRenderSummary:
    def test_summary_lists_hooks(self) -> None:
        buffer = io.StringIO()
        console = Console(file=buffer, width=200, force_terminal=False)
        result = _result(
            HookOutcome(
                hook=HookDescriptor(command="lint.sh", priority="low"),
                status=OutcomeStatus.ALLOWED,
                duration=0.25,
            ),
            _blocked("env.sh", "env files protected\n"),
        )
        result.wall_clock = 0.25

        render_summary(result, console)

        output = buffer.getvalue()
        assert "lint.sh" in output
        assert "env files protected" in output
        assert "Total hooks: 2" in output
        assert "Blocked: 1" in output
        assert "low: 1 hooks, 250ms avg" in output
