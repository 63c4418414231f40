import errno
import select
import socket

import pytest

from reactornet.inet_address import InetAddress
from reactornet.sockets import (
    Socket,
    connect,
    create_nonblocking,
    get_local_addr,
    get_peer_addr,
    get_socket_error,
    is_self_connect,
    shutdown_write,
)


def _wait_readable(sock, timeout=5.0):
    readable, _, _ = select.select([sock], [], [], timeout)
    assert readable, "socket never became readable"


def _wait_writable(sock, timeout=5.0):
    _, writable, _ = select.select([], [sock], [], timeout)
    assert writable, "socket never became writable"


@pytest.fixture
def listener():
    raw = create_nonblocking(socket.AF_INET)
    sock = Socket(raw)
    sock.set_reuse_addr(True)
    sock.bind_address(InetAddress(0, loopback_only=True))
    sock.listen()
    yield raw, sock
    sock.close()


@pytest.fixture
def connected(listener):
    raw, sock = listener
    client = create_nonblocking(socket.AF_INET)
    rc = connect(client, get_local_addr(raw))
    assert rc in (0, errno.EINPROGRESS)
    _wait_readable(raw)
    conn, peer = sock.accept()
    _wait_writable(client)
    yield client, conn, peer
    client.close()
    conn.close()


def test_create_nonblocking_makes_tcp_socket():
    sock = create_nonblocking(socket.AF_INET)
    try:
        assert sock.getblocking() is False
        assert sock.type == socket.SOCK_STREAM
        assert sock.family == socket.AF_INET
    finally:
        sock.close()


def test_listener_bound_to_loopback(listener):
    raw, _ = listener
    local = get_local_addr(raw)
    assert local.to_ip() == "127.0.0.1"
    assert local.port() > 0


def test_accept_reports_client_address(connected):
    client, conn, peer = connected
    assert peer == get_local_addr(client)
    assert conn.getblocking() is False


def test_local_and_peer_addresses_mirror(connected):
    client, conn, _ = connected
    assert get_peer_addr(client) == get_local_addr(conn)
    assert get_peer_addr(conn) == get_local_addr(client)


def test_normal_connection_is_not_self_connect(connected):
    client, conn, _ = connected
    assert is_self_connect(client) is False
    assert is_self_connect(conn) is False


def test_unconnected_socket_is_not_self_connect():
    sock = create_nonblocking(socket.AF_INET)
    try:
        assert is_self_connect(sock) is False
    finally:
        sock.close()


def test_accept_without_pending_connection_raises(listener):
    _, sock = listener
    with pytest.raises(BlockingIOError):
        sock.accept()


def test_socket_error_zero_when_connected(connected):
    client, _, _ = connected
    assert get_socket_error(client) == 0


def test_socket_error_reports_refused_connection():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    client = create_nonblocking(socket.AF_INET)
    try:
        rc = connect(client, InetAddress.from_ip_port("127.0.0.1", port))
        if rc == errno.EINPROGRESS:
            _wait_writable(client)
            rc = get_socket_error(client)
        assert rc == errno.ECONNREFUSED
    finally:
        client.close()


def test_shutdown_write_gives_peer_end_of_stream(connected):
    client, conn, _ = connected
    shutdown_write(client)
    _wait_readable(conn)
    assert conn.recv(16) == b""


def test_socket_shutdown_write_method(connected):
    client, conn, _ = connected
    Socket(conn).shutdown_write()
    _wait_readable(client)
    assert client.recv(16) == b""


def test_tcp_no_delay_toggles(connected):
    client, _, _ = connected
    wrapped = Socket(client)
    wrapped.set_tcp_no_delay(True)
    assert client.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) != 0
    wrapped.set_tcp_no_delay(False)
    assert client.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) == 0


def test_keep_alive_toggles(connected):
    client, _, _ = connected
    wrapped = Socket(client)
    wrapped.set_keep_alive(True)
    assert client.getsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE) != 0
    wrapped.set_keep_alive(False)
    assert client.getsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE) == 0


def test_reuse_addr_set(listener):
    raw, sock = listener
    assert raw.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR) != 0
    assert sock.fileno() == raw.fileno()
    assert get_local_addr(raw).to_ip() == "127.0.0.1"


def test_bind_to_address_in_use_raises(listener):
    raw, _ = listener
    other = Socket(create_nonblocking(socket.AF_INET))
    try:
        with pytest.raises(OSError):
            other.bind_address(get_local_addr(raw))
    finally:
        other.close()


def test_fileno_matches_wrapped_socket():
    raw = create_nonblocking(socket.AF_INET)
    wrapped = Socket(raw)
    try:
        assert wrapped.fileno() == raw.fileno()
    finally:
        wrapped.close()


def test_close_releases_descriptor():
    raw = create_nonblocking(socket.AF_INET)
    wrapped = Socket(raw)
    wrapped.close()
    assert raw.fileno() == -1


def test_context_manager_closes():
    raw = create_nonblocking(socket.AF_INET)
    with Socket(raw) as wrapped:
        assert wrapped.fileno() >= 0
    assert raw.fileno() == -1


def test_tcp_info_string_format(connected):
    _, conn, _ = connected
    info = Socket(conn).tcp_info_string()
    assert (info is not None) == hasattr(socket, "TCP_INFO")
    assert info is None or [item.split("=")[0] for item in info.split()] == [
        "unrecovered", "rto", "ato", "snd_mss", "rcv_mss", "lost",
        "retrans", "rtt", "rttvar", "sshthresh", "cwnd", "total_retrans",
    ]