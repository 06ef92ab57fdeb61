"""
Tests for the transport strategies.
"""

import os
import re

import pytest

from posprint.config.constants import MethodNames, Sentinels
from posprint.transports import (
    LegacyCommandTransport,
    ManagementObjectTransport,
    PortCopyTransport,
    PrintQueueTransport,
    RawScriptTransport,
    RetryingTransport,
    TransportOutcome,
    build_transports,
)
from posprint.transports import base
from posprint.transports.port_copy import share_path
from posprint.utils.config import PosPrintSettings
from posprint.utils.errors import TransportTimeoutError
from posprint.utils.retry import RetryConfig

from helpers import FakeTransport, failed, ok

STRATEGIES = [
    (ManagementObjectTransport, Sentinels.MANAGEMENT_OBJECT, MethodNames.MANAGEMENT_OBJECT),
    (PrintQueueTransport, Sentinels.PRINT_QUEUE, MethodNames.PRINT_QUEUE),
    (PortCopyTransport, Sentinels.PORT_COPY, MethodNames.PORT_COPY),
    (LegacyCommandTransport, Sentinels.LEGACY_COMMAND, MethodNames.LEGACY_COMMAND),
]


@pytest.mark.parametrize("cls,sentinel,name", STRATEGIES)
class TestScriptTransports:

    def test_sentinel_means_success(self, runner, tmp_path, cls, sentinel, name):
        transport = cls(runner, timeout=12, temp_dir=str(tmp_path))
        runner.default = ok("some noise", sentinel)

        outcome = transport.attempt("RONGTA 80mm", b"\x1b@receipt")

        assert outcome
        assert transport.name == name
        assert runner.calls[0][1] == 12

    def test_exit_zero_without_sentinel_is_failure(self, runner, tmp_path, cls, sentinel, name):
        transport = cls(runner, timeout=10, temp_dir=str(tmp_path))
        runner.default = ok("Operation completed")

        outcome = transport.attempt("RONGTA 80mm", b"data")

        assert not outcome
        assert sentinel in outcome.detail

    def test_nonzero_exit_is_failure(self, runner, tmp_path, cls, sentinel, name):
        transport = cls(runner, timeout=10, temp_dir=str(tmp_path))
        runner.default = failed("Error: The printer name is invalid")

        outcome = transport.attempt("RONGTA 80mm", b"data")

        assert not outcome
        assert outcome.detail == "Error: The printer name is invalid"

    def test_timeout_becomes_failure(self, runner, tmp_path, cls, sentinel, name):
        transport = cls(runner, timeout=10, temp_dir=str(tmp_path))
        runner.default = TransportTimeoutError("script", 10)

        outcome = transport.attempt("RONGTA 80mm", b"data")

        assert not outcome
        assert "timed out" in outcome.detail

    def test_payload_file_removed_on_every_path(self, runner, tmp_path, cls, sentinel, name):
        transport = cls(runner, timeout=10, temp_dir=str(tmp_path))
        seen = {}

        def check_file(script):
            path = script.variables["source"]
            seen["path"] = path
            with open(path, "rb") as fh:
                seen["payload"] = fh.read()
            return ok(sentinel)

        runner.default = check_file
        transport.attempt("RONGTA 80mm", b"\x1b@hello")

        assert seen["payload"] == b"\x1b@hello"
        assert not os.path.exists(seen["path"])

        runner.default = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            transport.attempt("RONGTA 80mm", b"data")
        assert list(tmp_path.iterdir()) == []

    def test_printer_name_only_enters_as_literal(self, runner, tmp_path, cls, sentinel, name):
        transport = cls(runner, timeout=10, temp_dir=str(tmp_path))
        hostile = "P'; Remove-Item C:\\ -Recurse; '"
        runner.default = ok(sentinel)

        transport.attempt(hostile, b"data")
        text = runner.calls[0][0].render()
        lines = [line.strip() for line in text.splitlines() if "Remove-Item C:" in line]

        assert lines
        assert all(re.match(r"^\$\w+ = '", line) for line in lines)


class TestScriptContents:

    def test_management_object_uses_out_printer(self, runner):
        script = ManagementObjectTransport(runner, 15).build_script("POS-80", "C:\\t\\a.prn")
        text = script.render()
        assert "Win32_Printer" in text
        assert "Out-Printer -Name $printerName" in text
        assert script.variables["filter"] == "Name='POS-80'"

    def test_print_queue_uses_job_name(self, runner):
        script = PrintQueueTransport(runner, 10, job_name="Kitchen").build_script("POS-80", "a.prn")
        assert script.variables["jobName"] == "Kitchen"
        assert "AddJob($jobName)" in script.render()

    def test_print_queue_releases_handles_in_finally(self, runner):
        lines = PrintQueueTransport(runner, 10).build_script("POS-80", "a.prn").render().splitlines()
        inner_try = lines.index("    try {")
        cleanup = lines.index("    } finally {")

        def position(fragment):
            return next(i for i, line in enumerate(lines) if fragment in line)

        assert inner_try < position("New-Object System.Printing.PrintServer") < cleanup
        assert inner_try < position("New-Object System.Printing.PrintQueue") < cleanup
        for fragment in ("$stream.Close()", "$queue.Dispose()", "$server.Dispose()"):
            assert position(fragment) > cleanup

    def test_port_copy_falls_back_to_share(self, runner):
        script = PortCopyTransport(runner, 10).build_script("POS-80", "a.prn")
        assert script.variables["shareTarget"].endswith("\\POS-80")
        assert "copy /b" in script.render()

    def test_share_path(self):
        assert share_path("POS-80", hostname="TILL1") == "\\\\TILL1\\POS-80"

    def test_legacy_command_uses_print_exe(self, runner):
        text = LegacyCommandTransport(runner, 10).build_script("POS-80", "a.prn").render()
        assert "print /d:" in text


class TestRawScriptTransport:

    def test_stops_at_first_success(self):
        first = FakeTransport("WMI", TransportOutcome(False, "no"))
        second = FakeTransport("NET PRINT", TransportOutcome(True))
        third = FakeTransport("COPY", TransportOutcome(True))

        outcome = RawScriptTransport([first, second, third]).attempt("POS-80", b"x")

        assert outcome
        assert outcome.detail == "via NET PRINT"
        assert third.calls == []

    def test_collects_failures(self):
        inner = [FakeTransport("WMI"), FakeTransport("NET PRINT", RuntimeError("bad"))]

        outcome = RawScriptTransport(inner).attempt("POS-80", b"x")

        assert not outcome
        assert "WMI: WMI failed" in outcome.detail
        assert "NET PRINT: RuntimeError: bad" in outcome.detail

    def test_name(self):
        assert RawScriptTransport([FakeTransport("WMI")]).name == MethodNames.RAW_SCRIPT

    def test_requires_transports(self):
        with pytest.raises(ValueError):
            RawScriptTransport([])


class TestRetryingTransport:

    def test_retries_transient_failure(self, sleeps):
        inner = FakeTransport("COPY", TransportOutcome(False, "device busy"), TransportOutcome(True))
        config = RetryConfig(max_attempts=3, base_delay=1.0, jitter_factor=0)

        outcome = RetryingTransport(inner, config, sleep=sleeps.append).attempt("POS-80", b"x")

        assert outcome
        assert len(inner.calls) == 2
        assert sleeps == [1.0]

    def test_permanent_failure_not_retried(self, sleeps):
        inner = FakeTransport("COPY", TransportOutcome(False, "access denied"))

        outcome = RetryingTransport(inner, RetryConfig(), sleep=sleeps.append).attempt("POS-80", b"x")

        assert not outcome
        assert outcome.detail == "access denied"
        assert len(inner.calls) == 1
        assert sleeps == []

    def test_reports_attempt_count(self, sleeps):
        inner = FakeTransport("COPY", TransportOutcome(False, "timed out"))
        config = RetryConfig(max_attempts=2, base_delay=0.5, jitter_factor=0)

        outcome = RetryingTransport(inner, config, sleep=sleeps.append).attempt("POS-80", b"x")

        assert outcome.detail == "timed out (after 2 attempts)"
        assert RetryingTransport(inner).name == "COPY"


def test_build_transports_registers_all_methods(runner):
    settings = PosPrintSettings(port_copy_timeout=7)
    transports = build_transports(runner, settings)

    assert set(transports) == {
        MethodNames.MANAGEMENT_OBJECT,
        MethodNames.PRINT_QUEUE,
        MethodNames.PORT_COPY,
        MethodNames.LEGACY_COMMAND,
        MethodNames.RAW_SCRIPT,
    }
    assert transports[MethodNames.PORT_COPY].timeout == 7
    assert [t.name for t in transports[MethodNames.RAW_SCRIPT].transports] == [
        "WMI", "NET PRINT", "COPY", "PRINT"
    ]


def test_payload_unlink_retried_while_file_is_held(runner, tmp_path, monkeypatch):
    transport = PortCopyTransport(runner, timeout=10, temp_dir=str(tmp_path))
    runner.default = ok(Sentinels.PORT_COPY)
    real_unlink = os.unlink
    failures = []

    def held_once(path):
        if not failures:
            failures.append(path)
            raise PermissionError(32, "The process cannot access the file", path)
        real_unlink(path)

    monkeypatch.setattr(base.os, "unlink", held_once)
    monkeypatch.setattr(base.time, "sleep", lambda seconds: None)

    assert transport.attempt("POS-80", b"data")
    assert len(failures) == 1
    assert list(tmp_path.iterdir()) == []
