from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..core.geometry import Rectangle

logger = logging.getLogger(__name__)

ChangeListener = Callable[["Rectangle"], None]

_SCOPED_FLAGS = frozenset(
    {
        "screen_updating",
        "display_alerts",
        "skip_change_events",
        "using_scratch_sheet",
        "active_binding",
    }
)


class HostSession:
    """Document-wide host switches shared by one editing session.

    The host is single-writer, so these flags need no locking; they must be
    restored to their prior value on every exit path of the operation that
    changed them (see ``scoped``).
    """

    def __init__(self) -> None:
        self.screen_updating = True
        self.display_alerts = True
        self.skip_change_events = False
        self.using_scratch_sheet = False
        self.active_binding: str | None = None
        self._listeners: list[ChangeListener] = []

    @contextmanager
    def scoped(self, **overrides: object) -> Iterator[HostSession]:
        """Temporarily override session flags and restore them on exit.

        Args:
            **overrides: Flag names and the values to hold while in scope.

        Yields:
            This session.

        Raises:
            ValueError: If an unknown flag name is given.
        """
        unknown = set(overrides) - _SCOPED_FLAGS
        if unknown:
            raise ValueError(f"Unknown session flags: {', '.join(sorted(unknown))}")
        previous = {name: getattr(self, name) for name in overrides}
        try:
            for name, value in overrides.items():
                setattr(self, name, value)
            yield self
        finally:
            for name, value in previous.items():
                setattr(self, name, value)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a callback fired after cells change."""
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        """Unregister a change callback (no-op when absent)."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_change(self, rect: Rectangle) -> None:
        """Fire change listeners unless change events are suppressed."""
        if self.skip_change_events:
            logger.debug("Change event suppressed for %s", rect)
            return
        for listener in list(self._listeners):
            listener(rect)
