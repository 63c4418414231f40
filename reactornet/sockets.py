"""Socket helpers and a closing wrapper for TCP socket descriptors."""

from __future__ import annotations

import logging
import socket
import struct

from .inet_address import InetAddress

_log = logging.getLogger(__name__)

# struct tcp_info: eight one-byte fields followed by 24 unsigned 32-bit words.
_TCP_INFO_HEAD = 8
_TCP_INFO_WORDS = 24
_TCP_INFO_LEN = _TCP_INFO_HEAD + 4 * _TCP_INFO_WORDS
_TCP_INFO_FORMAT = (
    "unrecovered={} rto={} ato={} snd_mss={} rcv_mss={} "
    "lost={} retrans={} rtt={} rttvar={} "
    "sshthresh={} cwnd={} total_retrans={}"
)


def create_nonblocking(family: int) -> socket.socket:
    """Create a non-blocking, close-on-exec TCP socket; raises OSError on failure."""
    sock = socket.socket(family, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    sock.setblocking(False)
    return sock


def connect(sock: socket.socket, addr: InetAddress) -> int:
    """Start connecting to ``addr``; return 0 or the errno of the attempt."""
    return sock.connect_ex(addr.sockaddr())


def shutdown_write(sock: socket.socket) -> None:
    """Close the writing half of the connection; failures are logged."""
    try:
        sock.shutdown(socket.SHUT_WR)
    except OSError:
        _log.exception("sockets.shutdown_write")


def get_socket_error(sock: socket.socket) -> int:
    """Pending SO_ERROR of the socket, or the errno of reading it."""
    try:
        return sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError as exc:
        return exc.errno or 0


def get_local_addr(sock: socket.socket) -> InetAddress:
    return InetAddress.from_sockaddr(sock.family, sock.getsockname())


def get_peer_addr(sock: socket.socket) -> InetAddress:
    return InetAddress.from_sockaddr(sock.family, sock.getpeername())


def is_self_connect(sock: socket.socket) -> bool:
    """True when the socket is connected to its own local endpoint."""
    try:
        local = get_local_addr(sock)
        peer = get_peer_addr(sock)
    except (OSError, ValueError):
        return False
    return local.port() == peer.port() and local.to_ip() == peer.to_ip()


def _tcp_info_string(sock: socket.socket) -> str | None:
    option = getattr(socket, "TCP_INFO", None)
    if option is None:
        return None
    try:
        raw = sock.getsockopt(socket.IPPROTO_TCP, option, _TCP_INFO_LEN)
    except OSError:
        return None
    raw = raw[:_TCP_INFO_LEN].ljust(_TCP_INFO_LEN, b"\0")
    retransmits = raw[2]
    words = struct.unpack(f"={_TCP_INFO_WORDS}I", raw[_TCP_INFO_HEAD:])
    (rto, ato, snd_mss, rcv_mss, _unacked, _sacked, lost, retrans,
     _fackets, _lds, _las, _ldr, _lar, _pmtu, _rcv_ssthresh, rtt, rttvar,
     snd_ssthresh, snd_cwnd, _advmss, _reordering, _rcv_rtt, _rcv_space,
     total_retrans) = words
    return _TCP_INFO_FORMAT.format(
        retransmits, rto, ato, snd_mss, rcv_mss, lost, retrans,
        rtt, rttvar, snd_ssthresh, snd_cwnd, total_retrans,
    )


class Socket:
    """Owner of a socket; closes it on close() or when leaving a with block."""

    __slots__ = ("_sock",)

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def __enter__(self) -> Socket:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Socket(fd={self.fileno()})"

    def fileno(self) -> int:
        return self._sock.fileno()

    def bind_address(self, addr: InetAddress) -> None:
        """Bind to ``addr``; raises OSError if that fails."""
        self._sock.bind(addr.sockaddr())

    def listen(self) -> None:
        """Start listening; raises OSError if that fails."""
        self._sock.listen(socket.SOMAXCONN)

    def accept(self) -> tuple[socket.socket, InetAddress]:
        """Accept a connection as a non-blocking socket with its peer address.

        Raises BlockingIOError when no connection is pending and OSError on
        other failures.
        """
        conn, raw_addr = self._sock.accept()
        conn.setblocking(False)
        return conn, InetAddress.from_sockaddr(conn.family, raw_addr)

    def shutdown_write(self) -> None:
        shutdown_write(self._sock)

    def _set_flag(self, level: int, option: int, on: bool) -> None:
        self._sock.setsockopt(level, option, 1 if on else 0)

    def set_tcp_no_delay(self, on: bool) -> None:
        """Enable or disable TCP_NODELAY (Nagle's algorithm off when on)."""
        self._set_flag(socket.IPPROTO_TCP, socket.TCP_NODELAY, on)

    def set_reuse_addr(self, on: bool) -> None:
        self._set_flag(socket.SOL_SOCKET, socket.SO_REUSEADDR, on)

    def set_reuse_port(self, on: bool) -> None:
        """Enable or disable SO_REUSEPORT; problems are logged when enabling."""
        option = getattr(socket, "SO_REUSEPORT", None)
        if option is None:
            if on:
                _log.error("SO_REUSEPORT is not supported.")
            return
        try:
            self._set_flag(socket.SOL_SOCKET, option, on)
        except OSError:
            if on:
                _log.exception("SO_REUSEPORT failed.")

    def set_keep_alive(self, on: bool) -> None:
        self._set_flag(socket.SOL_SOCKET, socket.SO_KEEPALIVE, on)

    def tcp_info_string(self) -> str | None:
        """Summary of the kernel's TCP_INFO, or None where it is unavailable."""
        return _tcp_info_string(self._sock)

    def close(self) -> None:
        self._sock.close()