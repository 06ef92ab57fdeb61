"""
Tests for strategy ordering and dispatch.
"""

import pytest

from posprint.config.constants import MethodNames
from posprint.models import DispatchMode, PrintOptions, PrintRequest
from posprint.services.driver_classifier import classify
from posprint.services.locks import PrinterLockRegistry
from posprint.services.print_dispatcher import PrintDispatcher, order_for
from posprint.transports import TransportOutcome
from posprint.utils.errors import ConfigurationError, PrinterBusyError, TransportTimeoutError

from helpers import FakeTransport

ALL_METHODS = [
    MethodNames.MANAGEMENT_OBJECT,
    MethodNames.PRINT_QUEUE,
    MethodNames.PORT_COPY,
    MethodNames.LEGACY_COMMAND,
    MethodNames.RAW_SCRIPT,
]


def make_transports(succeed=()):
    return {
        name: FakeTransport(name, TransportOutcome(name in succeed, "" if name in succeed else f"{name} failed"))
        for name in ALL_METHODS
    }


class TestOrdering:

    def test_conservative(self):
        assert order_for(DispatchMode.CONSERVATIVE) == ["WMI", "NET PRINT", "COPY", "PRINT"]

    def test_bypass(self):
        assert order_for(DispatchMode.BYPASS) == ["COPY", "PRINT", "PowerShell Raw", "NET PRINT", "WMI"]

    def test_auto_direct_usb(self):
        assert order_for(DispatchMode.AUTO, classify("RONGTA 80mm", "USB001")) == order_for(DispatchMode.BYPASS)

    def test_auto_hybrid(self):
        order = order_for(DispatchMode.AUTO, classify("Acme Label", "USB001"))
        assert order == ["COPY", "PRINT", "WMI", "NET PRINT"]

    def test_auto_spooler_and_unknown(self):
        conservative = order_for(DispatchMode.CONSERVATIVE)
        assert order_for(DispatchMode.AUTO, classify("Generic / Text Only", "LPT1")) == conservative
        assert order_for(DispatchMode.AUTO) == conservative

    def test_order_is_a_copy(self):
        order_for(DispatchMode.CONSERVATIVE).clear()
        assert len(order_for(DispatchMode.CONSERVATIVE)) == 4


class TestDispatch:

    def test_stops_at_first_success(self):
        transports = make_transports(succeed={"NET PRINT", "COPY"})

        result = PrintDispatcher(transports).dispatch("POS-80", b"data")

        assert result.success
        assert result.method_used == "NET PRINT"
        assert [a.method_name for a in result.attempts] == ["WMI", "NET PRINT"]
        assert [a.success for a in result.attempts] == [False, True]
        assert transports["COPY"].calls == []

    def test_all_failed(self):
        result = PrintDispatcher(make_transports()).dispatch("POS-80", b"data")

        assert not result.success
        assert result.method_used == "All methods failed"
        assert [a.method_name for a in result.attempts] == ["WMI", "NET PRINT", "COPY", "PRINT"]
        assert result.attempts[0].error_detail == "WMI failed"
        assert result.failed_methods == ["WMI", "NET PRINT", "COPY", "PRINT"]

    def test_bypass_order_used(self):
        transports = make_transports(succeed={"PowerShell Raw"})

        result = PrintDispatcher(transports).dispatch("POS-80", b"data", mode=DispatchMode.BYPASS)

        assert result.method_used == "PowerShell Raw"
        assert [a.method_name for a in result.attempts] == ["COPY", "PRINT", "PowerShell Raw"]
        assert transports["WMI"].calls == []

    def test_exceptions_and_false_become_attempts(self):
        strategies = [
            FakeTransport("WMI", TransportTimeoutError("wmi-print", 15)),
            FakeTransport("NET PRINT", False),
            FakeTransport("COPY", True),
        ]

        result = PrintDispatcher({}).dispatch("POS-80", b"data", strategies=strategies)

        assert result.success and result.method_used == "COPY"
        assert "timed out after 15s" in result.attempts[0].error_detail
        assert result.attempts[1].error_detail == "returned false"
        assert result.attempts[2].error_detail is None
        assert all(a.elapsed_ms >= 0 for a in result.attempts)

    def test_payload_passed_unchanged(self):
        transports = make_transports(succeed={"WMI"})
        PrintDispatcher(transports).dispatch("POS-80", b"\x1b@\x00raw")
        assert transports["WMI"].calls == [("POS-80", b"\x1b@\x00raw")]

    def test_missing_transport(self):
        with pytest.raises(ConfigurationError):
            PrintDispatcher({}).dispatch("POS-80", b"data")

    def test_lock_held_during_dispatch(self):
        locks = PrinterLockRegistry(timeout_seconds=0.05)
        seen = []

        class LockCheckingTransport(FakeTransport):
            def attempt(self, printer_name, payload):
                seen.append(locks.active_printers)
                return TransportOutcome(True)

        PrintDispatcher({}, locks=locks).dispatch("POS-80", b"x", strategies=[LockCheckingTransport("WMI")])

        assert seen == [{"POS-80"}]
        assert locks.active_printers == set()

    def test_busy_printer(self):
        locks = PrinterLockRegistry(timeout_seconds=0.05)
        with locks.printer("POS-80"):
            with pytest.raises(PrinterBusyError):
                PrintDispatcher(make_transports(), locks=locks).dispatch("POS-80", b"x")


class TestAutoMode:

    def test_classifies_printer(self, query):
        query.add("POS-80", driver_name="RONGTA 80mm Series Printer", port_name="USB001")
        transports = make_transports()

        result = PrintDispatcher(transports, query=query).dispatch("POS-80", b"x", mode=DispatchMode.AUTO)

        assert [a.method_name for a in result.attempts] == order_for(DispatchMode.BYPASS)

    def test_lookup_failure_falls_back_to_conservative(self, query):
        query.list_error = RuntimeError("WMI down")

        result = PrintDispatcher(make_transports(), query=query).dispatch("POS-80", b"x", mode=DispatchMode.AUTO)

        assert [a.method_name for a in result.attempts] == order_for(DispatchMode.CONSERVATIVE)


class TestDispatchRequest:

    def test_applies_copies_and_plain_text(self):
        transports = make_transports(succeed={"WMI"})
        request = PrintRequest(
            target_printer_name="POS-80",
            payload="Total: 5.00\nThanks",
            options=PrintOptions(copies=2, is_plain_text=True)
        )

        PrintDispatcher(transports).dispatch_request(request)

        sent = transports["WMI"].calls[0][1]
        assert sent == b"Total: 5.00\r\nThanks\r\n" * 2

    def test_text_payload_encoded_as_utf8(self):
        request = PrintRequest(target_printer_name="POS-80", payload="Café")
        assert request.payload == "Café".encode("utf-8")
        assert request.rendered_payload() == "Café".encode("utf-8")
