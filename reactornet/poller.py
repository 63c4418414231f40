"""I/O multiplexing over the channels of an event loop."""

from __future__ import annotations

import math
import os
import select
import selectors
import time
from typing import Any, Optional

from .channel import POLLIN, POLLOUT, READ_EVENT, WRITE_EVENT, Channel

_NEW = -1
_ADDED = 1
_DELETED = 2

_USE_POLL_ENV = "MCOMMON_USE_POLL"


def _selector_mask(events: int) -> int:
    mask = 0
    if events & READ_EVENT:
        mask |= selectors.EVENT_READ
    if events & WRITE_EVENT:
        mask |= selectors.EVENT_WRITE
    return mask


def _poll_events(mask: int) -> int:
    events = 0
    if mask & selectors.EVENT_READ:
        events |= POLLIN
    if mask & selectors.EVENT_WRITE:
        events |= POLLOUT
    return events


class Poller:
    """Watches channels for readiness; must be used from the loop's thread.

    This implementation uses the platform's best selector (epoll on Linux).
    The poller does not own the channels.
    """

    def __init__(self, loop: Any) -> None:
        self._loop = loop
        self._channels: dict[int, Channel] = {}
        self._open()

    def __enter__(self) -> Poller:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def poll(self, timeout: Optional[float]) -> tuple[float, list[Channel]]:
        """Wait up to ``timeout`` seconds (None: forever).

        Returns the time polling returned and the channels with events, each
        with its ``revents`` set.
        """
        ready = self._wait(timeout)
        now = time.time()
        active = []
        for channel, revents in ready:
            channel.revents = revents
            active.append(channel)
        return now, active

    def update_channel(self, channel: Channel) -> None:
        """Register the channel or apply a change of its events."""
        self._loop.assert_in_loop_thread()
        fd = channel.fd
        index = channel.index
        if index in (_NEW, _DELETED):
            if index == _NEW:
                if fd in self._channels:
                    raise RuntimeError(f"fd {fd} is already watched by another channel")
                self._channels[fd] = channel
            elif self._channels.get(fd) is not channel:
                raise RuntimeError(f"channel for fd {fd} is not known to this poller")
            if channel.is_none_event():
                channel.index = _DELETED
            else:
                self._register(channel)
                channel.index = _ADDED
        else:
            if self._channels.get(fd) is not channel:
                raise RuntimeError(f"channel for fd {fd} is not known to this poller")
            if channel.is_none_event():
                self._unregister(channel)
                channel.index = _DELETED
            else:
                self._modify(channel)

    def remove_channel(self, channel: Channel) -> None:
        """Forget a channel whose events have all been disabled."""
        self._loop.assert_in_loop_thread()
        fd = channel.fd
        if self._channels.get(fd) is not channel:
            raise RuntimeError(f"channel for fd {fd} is not known to this poller")
        if not channel.is_none_event():
            raise RuntimeError("cannot remove a channel that still has events")
        if channel.index not in (_ADDED, _DELETED):
            raise RuntimeError(f"channel for fd {fd} was never added")
        del self._channels[fd]
        if channel.index == _ADDED:
            self._unregister(channel)
        channel.index = _NEW

    def has_channel(self, channel: Channel) -> bool:
        self._loop.assert_in_loop_thread()
        return self._channels.get(channel.fd) is channel

    def close(self) -> None:
        self._selector.close()

    # Backend ----------------------------------------------------------

    def _open(self) -> None:
        self._selector = selectors.DefaultSelector()

    def _register(self, channel: Channel) -> None:
        self._selector.register(channel.fd, _selector_mask(channel.events), channel)

    def _modify(self, channel: Channel) -> None:
        self._selector.modify(channel.fd, _selector_mask(channel.events), channel)

    def _unregister(self, channel: Channel) -> None:
        self._selector.unregister(channel.fd)

    def _wait(self, timeout: Optional[float]) -> list[tuple[Channel, int]]:
        return [(key.data, _poll_events(mask)) for key, mask in self._selector.select(timeout)]


class _PollPoller(Poller):
    """Poller built on poll(2), reporting hang-up and error events as well."""

    def _open(self) -> None:
        self._poll = select.poll()

    def _register(self, channel: Channel) -> None:
        self._poll.register(channel.fd, channel.events)

    def _modify(self, channel: Channel) -> None:
        self._poll.modify(channel.fd, channel.events)

    def _unregister(self, channel: Channel) -> None:
        self._poll.unregister(channel.fd)

    def _wait(self, timeout: Optional[float]) -> list[tuple[Channel, int]]:
        millis = -1 if timeout is None else max(0, math.ceil(timeout * 1000))
        return [
            (self._channels[fd], revents)
            for fd, revents in self._poll.poll(millis)
            if fd in self._channels
        ]

    def close(self) -> None:
        self._channels.clear()


def new_default_poller(loop: Any) -> Poller:
    """The poll(2) poller if MCOMMON_USE_POLL is set, else the selector one."""
    if os.environ.get(_USE_POLL_ENV) is not None and hasattr(select, "poll"):
        return _PollPoller(loop)
    return Poller(loop)