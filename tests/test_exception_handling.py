"""
Unit tests for dispatcher exception handling capabilities.

Tests verify that by default a failing action aborts the run and its exception
reaches the caller, and that installed exception handler policies (stop,
continue, silent, collecting) change that behavior as documented.
"""

import logging

import pytest

import orca
from orca import handlers


app = orca.Orca()


def test_default_propagates_and_stops_run() -> None:
    """Test that by default the exception propagates and later actions are skipped."""
    app.reset()
    app.set_action_exception_handler(None)
    calls: list[str] = []

    def failing_action() -> None:
        calls.append("failing")
        raise ValueError("Test exception")

    def should_not_run() -> None:
        calls.append("should_not_run")

    app.register_action("test.event", failing_action, priority=10)
    app.register_action("test.event", should_not_run, priority=5)

    with pytest.raises(ValueError, match="Test exception"):
        app.run("test.event")

    assert calls == ["failing"]


def test_failing_global_skips_namespace_phase() -> None:
    """Test that a failing global action prevents namespace actions from running."""
    app.reset()
    app.set_action_exception_handler(None)
    calls: list[str] = []

    def failing_global() -> None:
        raise RuntimeError("Global failure")

    app.register_global_action(failing_global)
    app.register_action("foo", lambda: calls.append("foo"))

    with pytest.raises(RuntimeError):
        app.run("foo")

    assert calls == []


def test_stop_and_log_handler_stops_run(caplog: pytest.LogCaptureFixture) -> None:
    """Test that the stop handler logs the error and ends the whole run."""
    app.reset()
    app.set_action_exception_handler(handlers.stop_and_log_action_exception)
    calls: list[str] = []

    def failing_action() -> None:
        raise ValueError("Stop here")

    app.register_action("foo", failing_action, priority=10)
    app.register_action("foo", lambda: calls.append("foo"), priority=5)
    app.register_action("bar", lambda: calls.append("bar"))

    with caplog.at_level(logging.ERROR, logger="orca.handlers"):
        app.run(["foo", "bar"])

    assert calls == []
    assert "failing_action" in caplog.text
    assert "ValueError: Stop here" in caplog.text

    app.set_action_exception_handler(None)


def test_log_and_continue_handler(caplog: pytest.LogCaptureFixture) -> None:
    """Test that the continue handler logs a warning and keeps running."""
    app.reset()
    app.set_action_exception_handler(handlers.log_and_continue_action_exception)
    calls: list[str] = []

    def failing_action() -> None:
        raise ValueError("Keep going")

    app.register_action("foo", failing_action, priority=10)
    app.register_action("foo", lambda: calls.append("foo"), priority=5)

    with caplog.at_level(logging.WARNING, logger="orca.handlers"):
        app.run("foo")

    assert calls == ["foo"]
    assert "Keep going" in caplog.text

    app.set_action_exception_handler(None)


def test_silent_handler_continues() -> None:
    """Test that the silent handler continues to the next action."""
    app.reset()
    app.set_action_exception_handler(handlers.silent_action_exception)
    calls: list[str] = []

    def failing_action() -> None:
        calls.append("failing")
        raise ValueError("Test exception")

    app.register_global_action(failing_action, priority=10)
    app.register_global_action(lambda: calls.append("succeeding"), priority=5)

    app.run()

    assert calls == ["failing", "succeeding"]

    app.set_action_exception_handler(None)


def test_collecting_handler() -> None:
    """Test that the collector records each failure with its action record."""
    app.reset()
    collector = handlers.ActionExceptionCollector()
    app.set_action_exception_handler(collector)

    def failing_action1() -> None:
        raise ValueError("First error")

    def failing_action2() -> None:
        raise TypeError("Second error")

    app.register_action("test.event", failing_action1, priority=10)
    app.register_action(
        "test.event.nested", failing_action2, priority=5, excludes="quiet"
    )

    app.run("test.event")

    first, second = collector.failures

    assert isinstance(first.exception, ValueError)
    assert isinstance(second.exception, TypeError)
    assert first.namespace == "test.event"
    assert second.namespace == "test.event.nested"
    assert first.action.callback is failing_action1
    assert second.action.priority == 5
    assert first.traceback is not None
    assert "ValueError: First error" in str(first)
    assert "[excludes=quiet]" in str(second)
    assert "[priority=5]" in str(second)

    collector.clear()
    assert collector.failures == []

    app.set_action_exception_handler(None)


def test_collector_keeps_most_recent_failures() -> None:
    """Test that a collector only holds its most recent max_failures."""
    app.reset()
    collector = handlers.ActionExceptionCollector(max_failures=2)
    app.set_action_exception_handler(collector)

    for index in range(3):

        def failing_action(index: int = index) -> None:
            raise ValueError(f"error {index}")

        app.register_action("test", failing_action, priority=-index)

    app.run("test")

    assert [str(f.exception) for f in collector.failures] == ["error 1", "error 2"]

    app.set_action_exception_handler(None)


def test_collectors_are_per_dispatcher() -> None:
    """Test that two dispatchers keep their failures apart."""
    first_app = orca.Orca()
    second_app = orca.Orca()
    first_collector = handlers.ActionExceptionCollector()
    second_collector = handlers.ActionExceptionCollector()
    first_app.set_action_exception_handler(first_collector)
    second_app.set_action_exception_handler(second_collector)

    def failing_action() -> None:
        raise ValueError("boom")

    first_app.register_action("foo", failing_action)
    first_app.run("foo")
    second_app.run("foo")

    assert len(first_collector.failures) == 1
    assert second_collector.failures == []


def test_collector_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        handlers.ActionExceptionCollector(max_failures=0)


def test_custom_handler_stops_on_specific_exception() -> None:
    """Test a custom handler that stops only on specific exception types."""
    app.reset()
    calls: list[str] = []

    def custom_handler(_, exception):
        return isinstance(exception, ValueError)

    app.set_action_exception_handler(custom_handler)

    def fails_with_type_error() -> None:
        calls.append("type_error")
        raise TypeError("Continue after this")

    def fails_with_value_error() -> None:
        calls.append("value_error")
        raise ValueError("Stop here")

    app.register_action("test", fails_with_type_error, priority=30)
    app.register_action("test", lambda: calls.append("after_type_error"), priority=20)
    app.register_action("test", fails_with_value_error, priority=10)
    app.register_action("test", lambda: calls.append("after_value_error"), priority=0)

    app.run("test")

    assert calls == ["type_error", "after_type_error", "value_error"]

    app.set_action_exception_handler(None)


def test_handler_receives_action_record() -> None:
    """Test that handlers receive the failing Action, globals under the global key."""
    app.reset()
    seen: list[orca.action.Action] = []

    def recording_handler(action_, __):
        seen.append(action_)
        return handlers.CONTINUE

    app.set_action_exception_handler(recording_handler)

    def failing_global() -> None:
        raise ValueError("boom")

    app.register_global_action(failing_global, priority=7, excludes=["a", "b"])
    app.run()

    assert len(seen) == 1
    assert seen[0].path == app.global_key
    assert seen[0].callback is failing_global
    assert seen[0].priority == 7
    assert seen[0].excludes == frozenset({"a", "b"})

    app.set_action_exception_handler(None)


def test_describe_failure() -> None:
    """Test that failure descriptions name the action, namespace and priority."""
    app.reset()

    def render() -> None:
        pass

    app.register_action("ui.header", render, priority=3, excludes="print")
    action_ = app.get_actions("ui.header")[0]

    description = handlers.describe_failure(action_, KeyError("missing"))

    assert description.startswith(action_.name)
    assert "[excludes=print]" in description
    assert "in 'ui.header' [priority=3]" in description
    assert description.endswith("raised KeyError: 'missing'")
