from __future__ import annotations

import pytest

from gridbind.core.geometry import Rectangle
from gridbind.host.session import HostSession


def test_scoped_restores_flags_on_exception() -> None:
    session = HostSession()
    with pytest.raises(RuntimeError):
        with session.scoped(screen_updating=False, active_binding="Orders"):
            assert session.screen_updating is False
            assert session.active_binding == "Orders"
            raise RuntimeError("boom")
    assert session.screen_updating is True
    assert session.active_binding is None


def test_scoped_rejects_unknown_flags() -> None:
    with pytest.raises(ValueError, match="Unknown session flags"):
        with HostSession().scoped(bogus=True):
            pass


def test_change_events_can_be_suppressed() -> None:
    session = HostSession()
    seen: list[Rectangle] = []
    session.add_change_listener(seen.append)
    rect = Rectangle.from_a1("Data", "A1")
    session.notify_change(rect)
    with session.scoped(skip_change_events=True):
        session.notify_change(rect)
    session.remove_change_listener(seen.append)
    session.notify_change(rect)
    assert seen == [rect]
