"""Building blocks for reactor-style networking: buffers, endpoints, sockets, channels, pollers, timers and a framed protobuf codec."""

__version__ = "1.0.0"