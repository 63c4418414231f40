"""Internet socket endpoint: address family, IP and port."""

from __future__ import annotations

import socket
import sys


def _check_port(port: int) -> int:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port {port} out of range")
    return port


def _normalise(family: int, ip: str) -> str:
    try:
        return socket.inet_ntop(family, socket.inet_pton(family, ip))
    except (OSError, ValueError) as exc:
        raise ValueError(f"invalid address {ip!r}") from exc


class InetAddress:
    """An IPv4 or IPv6 endpoint."""

    __slots__ = ("_family", "_ip", "_port", "_flowinfo", "_scope_id")

    def __init__(self, port: int = 0, loopback_only: bool = False, ipv6: bool = False) -> None:
        """Endpoint on the wildcard (or loopback) address, as used for listening."""
        self._port = _check_port(port)
        self._flowinfo = 0
        self._scope_id = 0
        if ipv6:
            self._family = socket.AF_INET6
            self._ip = "::1" if loopback_only else "::"
        else:
            self._family = socket.AF_INET
            self._ip = "127.0.0.1" if loopback_only else "0.0.0.0"

    @classmethod
    def _build(cls, family: int, ip: str, port: int,
               flowinfo: int = 0, scope_id: int = 0) -> InetAddress:
        addr = cls.__new__(cls)
        addr._family = family
        addr._ip = _normalise(family, ip)
        addr._port = _check_port(port)
        addr._flowinfo = flowinfo
        addr._scope_id = scope_id
        return addr

    @classmethod
    def from_ip_port(cls, ip: str, port: int, ipv6: bool = False) -> InetAddress:
        """Endpoint from a numeric IP; a colon in ``ip`` implies IPv6."""
        family = socket.AF_INET6 if ipv6 or ":" in ip else socket.AF_INET
        return cls._build(family, ip, port)

    @classmethod
    def from_sockaddr(cls, family: int, sockaddr: tuple) -> InetAddress:
        """Endpoint from an address tuple as returned by the socket module."""
        if family == socket.AF_INET:
            host, port = sockaddr[:2]
            return cls._build(family, host, port)
        if family == socket.AF_INET6:
            host, port = sockaddr[:2]
            flowinfo = sockaddr[2] if len(sockaddr) > 2 else 0
            scope_id = sockaddr[3] if len(sockaddr) > 3 else 0
            return cls._build(family, host.split("%", 1)[0], port, flowinfo, scope_id)
        raise ValueError(f"unsupported address family {family}")

    def family(self) -> int:
        return self._family

    def to_ip(self) -> str:
        return self._ip

    def to_ip_port(self) -> str:
        if self._family == socket.AF_INET6:
            return f"[{self._ip}]:{self._port}"
        return f"{self._ip}:{self._port}"

    def port(self) -> int:
        return self._port

    def sockaddr(self) -> tuple:
        """Address tuple suitable for socket.bind / socket.connect."""
        if self._family == socket.AF_INET6:
            return (self._ip, self._port, self._flowinfo, self._scope_id)
        return (self._ip, self._port)

    def ipv4_net_endian(self) -> int:
        """The IPv4 address as a 32-bit value holding network byte order."""
        if self._family != socket.AF_INET:
            raise ValueError("not an IPv4 address")
        return int.from_bytes(socket.inet_aton(self._ip), sys.byteorder)

    def port_net_endian(self) -> int:
        """The port as a 16-bit value holding network byte order."""
        return int.from_bytes(self._port.to_bytes(2, "big"), sys.byteorder)

    def resolve(self, hostname: str) -> bool:
        """Replace the IPv4 address with that of ``hostname``.

        Port and family are kept. Returns False if the name does not resolve.
        """
        if self._family != socket.AF_INET:
            raise ValueError("resolve works on IPv4 addresses only")
        try:
            self._ip = socket.gethostbyname(hostname)
        except (OSError, UnicodeError):
            return False
        return True

    def set_scope_id(self, scope_id: int) -> None:
        """Set the IPv6 scope id; ignored for IPv4."""
        if self._family == socket.AF_INET6:
            self._scope_id = scope_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InetAddress):
            return NotImplemented
        return (self._family, self._ip, self._port, self._flowinfo, self._scope_id) == (
            other._family, other._ip, other._port, other._flowinfo, other._scope_id
        )

    def __hash__(self) -> int:
        return hash((self._family, self._ip, self._port, self._flowinfo, self._scope_id))

    def __repr__(self) -> str:
        return f"InetAddress({self.to_ip_port()!r})"

    def __str__(self) -> str:
        return self.to_ip_port()