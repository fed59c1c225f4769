"""
Exception handling policies for actions that fail during a run.

With no handler installed the dispatcher re-raises the first failure and the
rest of the run is skipped. A handler replaces that policy: it receives the
failing Action record and the exception and returns STOP to end the run or
CONTINUE to move on to the next action.

Built-in policies:
    stop_and_log_action_exception       log at ERROR with traceback, end the run
    log_and_continue_action_exception   log at WARNING, keep running
    silent_action_exception             keep running, log nothing
    ActionExceptionCollector            record failures for later inspection
"""

import collections
import logging
import sys
from dataclasses import dataclass
from types import TracebackType
from typing import Callable
from typing import Optional

from orca import action


logger = logging.getLogger(__name__)


ACTION_EXCEPTION_HANDLER = Callable[[action.Action, Exception], bool]
"""(failing action, exception) -> True to stop the run, False to continue."""

STOP = True
CONTINUE = False


def describe_failure(action_: action.Action, exception: Exception) -> str:
    """One line naming the action, where it lives and what it raised."""
    return (
        f"{action_.label} in '{action_.path}' [priority={action_.priority}] "
        f"raised {exception.__class__.__name__}: {exception}"
    )


def stop_and_log_action_exception(
    action_: action.Action, exception: Exception
) -> bool:
    """Log the failure with its traceback and end the run."""
    logger.error(
        f"Action failed, stopping run: {describe_failure(action_, exception)}",
        exc_info=True,
    )
    return STOP


def log_and_continue_action_exception(
    action_: action.Action, exception: Exception
) -> bool:
    logger.warning(
        f"Action failed, continuing: {describe_failure(action_, exception)}"
    )
    return CONTINUE


def silent_action_exception(_: action.Action, __: Exception) -> bool:
    return CONTINUE


@dataclass(frozen=True)
class ActionFailure(object):
    """A failure recorded by ActionExceptionCollector."""

    action: action.Action
    exception: Exception
    traceback: Optional[TracebackType]

    @property
    def namespace(self) -> str:
        return self.action.path

    def __str__(self) -> str:
        return describe_failure(self.action, self.exception)


class ActionExceptionCollector(object):
    """
    Handler that records failures and keeps the run going.

    Install one instance per dispatcher:

        collector = handlers.ActionExceptionCollector()
        app.set_action_exception_handler(collector)
        app.run("app.render")
        for failure in collector.failures: ...

    Only the most recent max_failures are kept.
    """

    def __init__(self, max_failures: int = 100) -> None:
        if max_failures < 1:
            raise ValueError(f"max_failures must be at least 1, got {max_failures}")

        self._failures: collections.deque[ActionFailure] = collections.deque(
            maxlen=max_failures
        )

    def __call__(self, action_: action.Action, exception: Exception) -> bool:
        self._failures.append(
            ActionFailure(
                action=action_,
                exception=exception,
                traceback=sys.exc_info()[2],
            )
        )
        return CONTINUE

    @property
    def failures(self) -> list[ActionFailure]:
        """Recorded failures, oldest first."""
        return list(self._failures)

    def clear(self) -> None:
        self._failures.clear()
