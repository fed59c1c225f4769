"""
Action data structures and type definitions for the dispatcher.

Defines the Action dataclass which wraps a callback with the metadata the
dispatcher needs to decide when it runs: its priority, the scopes it is
excluded from, the namespace it was registered to, and its registration order.
Also defines the ACTION type alias used throughout the package for type hints.
"""

from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Iterable
from typing import Optional
from typing import Union

ACTION = Callable[[], Any]
"""
The callback that runs when its scope is run. Actions take no arguments; any
state they need is closed over by the caller.

Return values are discarded.
"""

PRIORITY = Union[int, float]

EXCLUDES = Optional[Union[str, Iterable[str]]]
"""A single namespace path or an iterable of namespace paths."""


@dataclass(frozen=True)
class Action(object):
    """A registered callback with its priority and exclusions."""

    callback: ACTION
    """What gets ran."""

    priority: PRIORITY
    """
    Where in the execution order the callback should take place.
    Higher numbers are executed before lower numbers.
    """

    excludes: frozenset[str]
    """Requested scopes that suppress this action for a whole run."""

    path: str
    """The namespace the action was registered to."""

    order: int
    """Registration sequence number, breaks ties between equal priorities."""

    def is_excluded(self, scopes: Iterable[str]) -> bool:
        """True if any requested scope exactly matches one of the excludes."""
        return any(scope in self.excludes for scope in scopes)

    @property
    def sort_key(self) -> tuple[PRIORITY, int]:
        return -self.priority, self.order

    @property
    def name(self) -> str:
        return get_callable_name(self.callback)

    @property
    def label(self) -> str:
        """The callback name, tagged with its excludes when it has any."""
        if not self.excludes:
            return self.name

        return f"{self.name} [excludes={','.join(sorted(self.excludes))}]"


def get_callable_name(callable_: Callable) -> str:
    """
    Returns 'Class.method' for bound methods, 'module.qualname' for functions,
    or str(callable_) for anything else.
    """
    if hasattr(callable_, "__self__") and hasattr(callable_, "__name__"):
        return f"{callable_.__self__.__class__.__name__}.{callable_.__name__}"

    elif hasattr(callable_, "__qualname__"):
        # Regular function, static method, or class method
        module = getattr(callable_, "__module__", "<unknown>")
        return f"{module}.{callable_.__qualname__}"

    # Fallback for unusual callables
    return str(callable_)


def normalize_excludes(excludes: EXCLUDES) -> frozenset[str]:
    """
    Accept None, a bare path string, or an iterable of path strings.

    Raises:
        TypeError: If excludes is not iterable, is bytes, or holds anything
            other than strings.
    """
    if excludes is None:
        return frozenset()

    if isinstance(excludes, str):
        return frozenset([excludes])

    if isinstance(excludes, (bytes, bytearray)) or not isinstance(excludes, Iterable):
        raise TypeError(
            f"Excludes must be a string or an iterable of strings, "
            f"got {type(excludes).__name__}"
        )

    members = list(excludes)
    for member in members:
        if not isinstance(member, str):
            raise TypeError(
                f"Excludes must hold namespace strings, got {type(member).__name__}"
            )

    return frozenset(members)
