"""A selectable I/O channel: an fd, the events of interest and their handlers."""

from __future__ import annotations

import logging
import select
import weakref
from typing import Any, Callable, Optional

_log = logging.getLogger(__name__)

POLLIN = getattr(select, "POLLIN", 0x001)
POLLPRI = getattr(select, "POLLPRI", 0x002)
POLLOUT = getattr(select, "POLLOUT", 0x004)
POLLERR = getattr(select, "POLLERR", 0x008)
POLLHUP = getattr(select, "POLLHUP", 0x010)
POLLNVAL = getattr(select, "POLLNVAL", 0x020)
POLLRDHUP = getattr(select, "POLLRDHUP", 0x2000)

NONE_EVENT = 0
READ_EVENT = POLLIN | POLLPRI
WRITE_EVENT = POLLOUT

_EVENT_NAMES = (
    (POLLIN, "IN"),
    (POLLPRI, "PRI"),
    (POLLOUT, "OUT"),
    (POLLHUP, "HUP"),
    (POLLRDHUP, "RDHUP"),
    (POLLERR, "ERR"),
    (POLLNVAL, "NVAL"),
)

EventCallback = Callable[[], Any]
ReadEventCallback = Callable[[float], Any]


def events_to_string(fd: int, events: int) -> str:
    """Describe a poll event mask, e.g. ``"5: IN OUT "``."""
    return f"{fd}: " + "".join(f"{name} " for flag, name in _EVENT_NAMES if events & flag)


class Channel:
    """Dispatches the I/O events of one file descriptor to callbacks.

    The channel does not own the descriptor. Changes to the events of
    interest are passed on to the owning loop's ``update_channel``.
    """

    def __init__(self, loop: Any, fd: int) -> None:
        self.loop = loop
        self.fd = fd
        self.events = NONE_EVENT
        self.revents = 0
        self.index = -1
        self.read_callback: Optional[ReadEventCallback] = None
        self.write_callback: Optional[EventCallback] = None
        self.close_callback: Optional[EventCallback] = None
        self.error_callback: Optional[EventCallback] = None
        self._log_hup = True
        self._tie: Optional[weakref.ReferenceType] = None
        self._event_handling = False
        self._added_to_loop = False

    def __repr__(self) -> str:
        return f"Channel({self.events_to_string()!r})"

    def tie(self, owner: object) -> None:
        """Skip event handling once ``owner`` has been garbage collected."""
        self._tie = weakref.ref(owner)

    def handle_event(self, receive_time: float) -> None:
        if self._tie is not None:
            guard = self._tie()
            if guard is None:
                return
            self._handle_event_with_guard(receive_time)
            del guard
        else:
            self._handle_event_with_guard(receive_time)

    def _handle_event_with_guard(self, receive_time: float) -> None:
        self._event_handling = True
        try:
            revents = self.revents
            _log.debug("%s", self.revents_to_string())
            if revents & POLLHUP and not revents & POLLIN:
                if self._log_hup:
                    _log.warning("fd = %s Channel.handle_event() POLLHUP", self.fd)
                if self.close_callback:
                    self.close_callback()
            if revents & POLLNVAL:
                _log.warning("fd = %s Channel.handle_event() POLLNVAL", self.fd)
            if revents & (POLLERR | POLLNVAL):
                if self.error_callback:
                    self.error_callback()
            if revents & (POLLIN | POLLPRI | POLLRDHUP):
                if self.read_callback:
                    self.read_callback(receive_time)
            if revents & POLLOUT:
                if self.write_callback:
                    self.write_callback()
        finally:
            self._event_handling = False

    def is_none_event(self) -> bool:
        return self.events == NONE_EVENT

    def enable_reading(self) -> None:
        self.events |= READ_EVENT
        self._update()

    def disable_reading(self) -> None:
        self.events &= ~READ_EVENT
        self._update()

    def enable_writing(self) -> None:
        self.events |= WRITE_EVENT
        self._update()

    def disable_writing(self) -> None:
        self.events &= ~WRITE_EVENT
        self._update()

    def disable_all(self) -> None:
        self.events = NONE_EVENT
        self._update()

    def is_writing(self) -> bool:
        return bool(self.events & WRITE_EVENT)

    def is_reading(self) -> bool:
        return bool(self.events & READ_EVENT)

    def revents_to_string(self) -> str:
        return events_to_string(self.fd, self.revents)

    def events_to_string(self) -> str:
        return events_to_string(self.fd, self.events)

    def do_not_log_hup(self) -> None:
        self._log_hup = False

    def _update(self) -> None:
        self._added_to_loop = True
        self.loop.update_channel(self)

    def remove(self) -> None:
        """Detach from the loop; all events must have been disabled first."""
        if not self.is_none_event():
            raise RuntimeError("cannot remove a channel that still has events")
        self._added_to_loop = False
        self.loop.remove_channel(self)