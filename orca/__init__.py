"""
# Hierarchical Action Dispatcher

Herein is the Orca dispatcher, which stores actions in a namespace tree and
runs them for one or more requested scopes.

Actions are registered under dotted namespace paths ('app.render.header') or as
global actions that apply to every run. Running a scope runs the actions
registered at that exact path and at every path nested below it, never those
of its ancestors. Global actions run once per run call unless disabled for the
run or excluded by one of the requested scopes.

Higher priorities run first. Equal priorities run in registration order.
"""

import itertools
import json
import logging
import math
import os
from typing import Callable
from typing import Iterable
from typing import Optional
from typing import Union

from orca import action
from orca import handlers
from orca import namespaces


version_major = 1
version_minor = 0
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"

DEFAULT_GLOBAL_KEY = "*"
DEFAULT_ENTRY_KEY = "__actions__"

SCOPE = Optional[Union[str, Iterable[str]]]
"""A single namespace path, several paths, or None for a global-only run."""

logger = logging.getLogger(__name__)


# -----Exceptions--------------------------------------------------------------
class OrcaError(Exception):
    """Base class for dispatcher errors."""


class ReservedKeyError(OrcaError):
    """Raised when a namespace path uses the reserved entry key as a segment."""


class InvalidNamespaceError(OrcaError):
    """Raised when a namespace path is empty or has an empty segment."""


# -----------------------------------------------------------------------------


class Orca(object):
    """
    Primary action coordinator.
    Supports hierarchical namespaces through dot notation plus a global scope.

    To manage actions use
    register_action() and register_global_action(),
    or decorate with @register and @register_global.

    Use run() to execute the actions for one or more scopes, and reset() to
    discard every registration.
    """

    def __init__(
        self,
        global_key: str = DEFAULT_GLOBAL_KEY,
        entry_key: str = DEFAULT_ENTRY_KEY,
    ) -> None:
        """
        Args:
            global_key (str): Root segment naming the global scope.
            entry_key (str): Reserved key naming a node's own actions. It may
                not be used as a namespace segment.
        Raises:
            ValueError: If either key is empty, the keys are equal, or
                global_key contains a '.'.
        """
        for name, value in (("global_key", global_key), ("entry_key", entry_key)):
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string, got {value!r}")

        if "." in global_key:
            raise ValueError(f"global_key must be a single segment, got {global_key!r}")

        if global_key == entry_key:
            raise ValueError(
                f"global_key and entry_key must differ, both are {global_key!r}"
            )

        self._global_key = global_key
        self._entry_key = entry_key

        self._tree: namespaces.NamespaceEntry = namespaces.new_entry()
        self._sequence = itertools.count()

        self._action_exception_handler: Optional[
            handlers.ACTION_EXCEPTION_HANDLER
        ] = None

    @property
    def global_key(self) -> str:
        return self._global_key

    @property
    def entry_key(self) -> str:
        return self._entry_key

    def reset(self) -> None:
        """Discard every registration."""
        self._tree = namespaces.new_entry()
        self._sequence = itertools.count()
        logger.debug("Namespace tree reset.")

    # -----Action Management---------------------------------------------------

    def _validate_path(self, path: str) -> list[str]:
        """
        Split a registration path into segments, rejecting bad segments.

        Raises:
            TypeError: If path is not a string.
            InvalidNamespaceError: If path or any of its segments is empty.
            ReservedKeyError: If any segment equals the entry key.
        """
        if not isinstance(path, str):
            raise TypeError(
                f"Namespace path must be a string, got {type(path).__name__}"
            )

        segments = namespaces.split_path(path)
        if not all(segments):
            raise InvalidNamespaceError(f"Namespace '{path}' has an empty segment.")

        if self._entry_key in segments:
            raise ReservedKeyError(
                f"Namespace '{path}' uses the reserved key '{self._entry_key}'."
            )

        return segments

    def register_action(
        self,
        path: str,
        callback: action.ACTION,
        priority: action.PRIORITY = 0,
        excludes: action.EXCLUDES = None,
    ) -> None:
        """
        Register a callback to a namespace.

        Args:
            path (str): Dotted namespace path (e.g., 'app.render.header').
            callback (Callable): Function to call when the namespace, or one of
                its ancestors, is run. Called with no arguments.
            priority (int | float): The priority used for callback execution
                order. Higher priorities are ran before lower priorities.
            excludes (str | Iterable[str]): Scope paths that suppress this
                action for any run requesting them.
        Raises:
            TypeError: If callback is not callable, priority is not a number,
                or excludes holds anything but strings.
            ValueError: If priority is NaN.
            InvalidNamespaceError: If path has an empty segment.
            ReservedKeyError: If a path segment equals the entry key.
        """
        if not callable(callback):
            raise TypeError(
                f"Action for namespace '{path}' must be callable, "
                f"got {type(callback).__name__}"
            )

        if isinstance(priority, bool) or not isinstance(priority, (int, float)):
            raise TypeError(
                f"Priority must be a number, got {type(priority).__name__}"
            )

        # NaN has no place in a descending order.
        if isinstance(priority, float) and math.isnan(priority):
            raise ValueError(f"Priority for namespace '{path}' cannot be NaN")

        segments = self._validate_path(path)
        excluded = action.normalize_excludes(excludes)

        entry = namespaces.ensure_entry(self._tree, segments)
        entry["actions"].setdefault(priority, []).append(
            action.Action(
                callback=callback,
                priority=priority,
                excludes=excluded,
                path=path,
                order=next(self._sequence),
            )
        )

        logger.debug(
            f"Registered {action.get_callable_name(callback)} to '{path}' "
            f"[priority={priority}]"
        )

    def register_global_action(
        self,
        callback: action.ACTION,
        priority: action.PRIORITY = 0,
        excludes: action.EXCLUDES = None,
    ) -> None:
        """
        Register a callback to the global scope.

        Global actions run on every run() call unless run_globals is False or
        one of the requested scopes is in excludes.

        Args:
            callback (Callable): Function to call. Called with no arguments.
            priority (int | float): Higher priorities are ran first.
            excludes (str | Iterable[str]): Scope paths that suppress this
                action for any run requesting them.
        """
        self.register_action(self._global_key, callback, priority, excludes)

    def register(
        self,
        path: str,
        priority: action.PRIORITY = 0,
        excludes: action.EXCLUDES = None,
    ) -> Callable[[action.ACTION], action.ACTION]:
        """
        Decorator to register a function as an action.

        Args:
            path (str): The namespace to register to.
            priority (int | float): The execution priority. Defaults to 0.
            excludes (str | Iterable[str]): Scopes that suppress the action.
        """

        def decorator(func: action.ACTION) -> action.ACTION:
            self.register_action(path, func, priority, excludes)
            return func

        return decorator

    def register_global(
        self,
        priority: action.PRIORITY = 0,
        excludes: action.EXCLUDES = None,
    ) -> Callable[[action.ACTION], action.ACTION]:
        """Decorator to register a function as a global action."""

        def decorator(func: action.ACTION) -> action.ACTION:
            self.register_global_action(func, priority, excludes)
            return func

        return decorator

    def set_action_exception_handler(
        self, handler: Optional[handlers.ACTION_EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the exception handler for action errors.
        The handler is called when an action raises an exception during run.

        Args:
            Optional[handlers.ACTION_EXCEPTION_HANDLER]:
                Callable with signature (Action, Exception) -> bool.
                Returns True to stop the run, False to continue.
                Pass None to restore default behavior (re-raise exceptions).
        """
        self._action_exception_handler = handler

    # -----Running-------------------------------------------------------------

    @staticmethod
    def _normalize_scope(scope: SCOPE) -> list[str]:
        """Requested scope paths in request order, without duplicates."""
        if scope is None:
            return []

        if isinstance(scope, str):
            return [scope]

        return list(dict.fromkeys(scope))

    def _invoke(self, actions: list[action.Action]) -> bool:
        """
        Call each action in order.

        Returns:
            bool: False if the exception handler asked to stop the run.
        """
        for action_ in actions:
            try:
                action_.callback()
            except Exception as e:
                if self._action_exception_handler is None:
                    raise

                stop = self._action_exception_handler(action_, e)
                if stop:
                    return False

        return True

    def run(self, scope: SCOPE = None, run_globals: bool = True) -> None:
        """
        Run every action that applies to the requested scopes.

        Global actions run first, once per call. Then, for each requested
        path, the actions at that path and at every path nested below it run.
        Within each phase actions run by descending priority, ties in
        registration order. An action reachable from more than one requested
        path runs once.

        Args:
            scope (str | Iterable[str] | None): Namespace path(s) to run. None
                runs global actions only.
            run_globals (bool): If False, no global action runs.
        Note:
            Unknown scopes are not an error, they contribute no actions.
            Actions excluded from any requested scope are skipped.
        """
        scopes = self._normalize_scope(scope)
        global_entry = self._tree["children"].get(self._global_key)
        invoked: set[int] = set()

        logger.debug(f"Running scopes {scopes} [run_globals={run_globals}]")

        # -----Global phase-----
        if run_globals and global_entry is not None:
            eligible = [
                a
                for a in namespaces.sorted_actions(global_entry)
                if not a.is_excluded(scopes)
            ]
            if not self._invoke(eligible):
                return

        # -----Namespace phase-----
        for path in scopes:
            entry = namespaces.find_entry(self._tree, path)
            if entry is None:
                logger.debug(f"No namespace registered for '{path}'")
                continue

            gathered = []
            for node in namespaces.iter_entries(entry):
                if node is global_entry:
                    continue

                for action_ in namespaces.iter_actions(node):
                    if id(action_) in invoked or action_.is_excluded(scopes):
                        continue

                    invoked.add(id(action_))
                    gathered.append(action_)

            gathered.sort(key=lambda a: a.sort_key)
            if not self._invoke(gathered):
                return

    # -----Introspection API---------------------------------------------------

    def is_empty(self) -> bool:
        """True when nothing has been registered since construction or reset."""
        return not self._tree["children"] and not self._tree["actions"]

    def get_namespaces(self) -> list[str]:
        """Get every namespace path holding at least one action."""
        return sorted(
            path
            for path, entry in namespaces.iter_paths(self._tree)
            if entry["actions"]
        )

    def namespace_exists(self, path: str) -> bool:
        """Check if a path reaches a node in the namespace tree."""
        return namespaces.find_entry(self._tree, path) is not None

    def get_actions(self, path: str) -> list[action.Action]:
        """
        Get the actions registered exactly at a namespace.

        Args:
            path (str): Namespace to get actions for.
        Returns:
            list[action.Action]: Actions in the order they would run. Actions
                of nested namespaces are not included.
        """
        entry = namespaces.find_entry(self._tree, path)
        if entry is None:
            return []

        return namespaces.sorted_actions(entry)

    def get_global_actions(self) -> list[action.Action]:
        """Get the global actions in the order they would run."""
        return self.get_actions(self._global_key)

    def get_action_count(self, path: str) -> int:
        """Get the number of actions registered exactly at a namespace."""
        return len(self.get_actions(path))

    def is_registered(self, callback: action.ACTION, path: str) -> bool:
        """
        Check if a specific callback is registered to a namespace.

        Args:
            callback (Callable): The callback function to check.
            path (str): The namespace to check.

        Returns:
            bool: True if callback is registered to path, False otherwise.
        """
        return any(a.callback == callback for a in self.get_actions(path))

    def get_registrations(self, callback: action.ACTION) -> list[str]:
        """
        Get all namespaces that a callback is registered to.

        Example:
            >>> app = Orca()
            >>> def handler(): pass
            >>> app.register_action('test.one', handler)
            >>> app.register_action('test.two', handler)
            >>> app.get_registrations(handler)
            ['test.one', 'test.two']
        """
        return sorted(
            path
            for path, entry in namespaces.iter_paths(self._tree)
            if any(a.callback == callback for a in namespaces.iter_actions(entry))
        )

    def get_statistics(self) -> dict[str, object]:
        """
        Get overall dispatcher statistics.

        Example:
            {
                "total_namespaces": 3,
                "total_actions": 7,
                "total_global_actions": 2,
                "max_depth": 3,
                "priorities": [20, 10, 0],
            }
        """
        paths = list(namespaces.iter_paths(self._tree))
        all_actions = [
            a for _, entry in paths for a in namespaces.iter_actions(entry)
        ]

        return {
            "total_namespaces": sum(1 for _, entry in paths if entry["actions"]),
            "total_actions": len(all_actions),
            "total_global_actions": len(self.get_global_actions()),
            "max_depth": max(
                (len(namespaces.split_path(path)) for path, _ in paths), default=0
            ),
            "priorities": sorted({a.priority for a in all_actions}, reverse=True),
        }

    def _entry_to_dict(self, entry: namespaces.NamespaceEntry) -> dict:
        data = {}

        if entry["actions"]:
            data[self._entry_key] = {
                str(priority): [a.label for a in bucket]
                for priority, bucket in sorted(
                    entry["actions"].items(), key=lambda item: item[0], reverse=True
                )
            }

        for segment, child in entry["children"].items():
            data[segment] = self._entry_to_dict(child)

        return data

    def to_dict(self) -> dict:
        """
        Convert the namespace tree to a nested dictionary.

        Each namespace maps its child segments to nested dictionaries, and the
        entry key to its own actions grouped by priority.
        """
        return self._entry_to_dict(self._tree)

    def to_string(self) -> str:
        """Returns a string representation of the namespace tree."""
        return json.dumps(self.to_dict(), indent=4)

    def export(self, filepath: Union[str, os.PathLike]) -> None:
        """Export the namespace tree to filepath as JSON."""
        with open(filepath, "w") as outfile:
            json.dump(self.to_dict(), outfile, indent=4)
