# reactornet

Building blocks for reactor-style TCP networking. The package gives you a byte
buffer, IPv4/IPv6 endpoints, socket helpers, I/O channels, a poller and a timer
queue. It also has a length-prefixed, checksummed protobuf codec and a few
supporting pools.

## Modules

| Module | What it gives you |
| --- | --- |
| `reactornet.buffer` | `Buffer`: a byte buffer with a prependable area, a readable area and a writable area, plus big-endian integer helpers and `read_fd` |
| `reactornet.inet_address` | `InetAddress`: an IPv4/IPv6 endpoint |
| `reactornet.sockets` | socket helpers (`create_nonblocking`, `connect`, `shutdown_write`, `get_socket_error`, `get_local_addr`, `get_peer_addr`, `is_self_connect`) and the `Socket` wrapper |
| `reactornet.channel` | `Channel`: binds a file descriptor to read, write, close and error callbacks; `events_to_string` |
| `reactornet.poller` | `Poller` and `new_default_poller` |
| `reactornet.timer_queue` | `Timer`, `TimerId` and `TimerQueue` |
| `reactornet.codec` | framed protobuf `encode`, `parse`, `decode` and `create_message`, with `ErrorCode` and `CodecError` |
| `reactornet.thread_pool` | `ThreadPool`: a plain worker pool |
| `reactornet.message_buffer_pool` | `MessageBufferPool`: reuses message objects |
| `reactornet.zlib_stream` | `ZlibOutputStream`: compresses into a `Buffer` |

## Buffers

```python
from reactornet.buffer import Buffer

buf = Buffer(1024)
buf.append(b"payload")
buf.prepend_int32(buf.readable_bytes())   # length header, big-endian

length = buf.read_int32()
body = buf.retrieve_as_bytes(length)      # b"payload"
```

`find_crlf` and `find_eol` return offsets into the readable bytes, or `None`
when there is no match. `read_fd(fd)` reads from a file descriptor straight
into the buffer. It takes up to 64 KiB more than the current writable space
and returns the number of bytes read.

## Endpoints and sockets

```python
from reactornet.inet_address import InetAddress

InetAddress(2000).to_ip_port()                          # "0.0.0.0:2000"
InetAddress(2000, True, True).to_ip_port()              # "[::1]:2000"
InetAddress.from_ip_port("127.0.0.1", 80).sockaddr()    # ("127.0.0.1", 80)
```

`reactornet.sockets.Socket` owns a `socket.socket` and closes it on `close()`
or at the end of a `with` block. It can bind, listen and accept. Accepting
returns a non-blocking socket together with its peer `InetAddress`. It also
sets `TCP_NODELAY`, `SO_REUSEADDR`, `SO_REUSEPORT` and `SO_KEEPALIVE`.
`tcp_info_string()` summarises the kernel's `TCP_INFO` where the platform
provides it.

## Channels and the poller

Channels and pollers talk to an owning *loop* object. A channel calls the
loop's `update_channel(channel)` and `remove_channel(channel)`. The poller and
the timer queue call `assert_in_loop_thread()`. The timer queue also calls
`run_in_loop(callback)`. A minimal single-threaded loop looks like this:

```python
import socket

from reactornet.buffer import Buffer
from reactornet.channel import Channel
from reactornet.poller import new_default_poller


class Loop:
    def __init__(self):
        self.poller = new_default_poller(self)

    def assert_in_loop_thread(self):
        pass

    def run_in_loop(self, callback):
        callback()

    def update_channel(self, channel):
        self.poller.update_channel(channel)

    def remove_channel(self, channel):
        self.poller.remove_channel(channel)


loop = Loop()
reader, writer = socket.socketpair()
received = Buffer()

channel = Channel(loop, reader.fileno())
channel.read_callback = lambda when: received.read_fd(reader.fileno())
channel.enable_reading()

writer.send(b"hello")
now, active = loop.poller.poll(1.0)
for ready in active:
    ready.handle_event(now)
print(received.retrieve_all_as_bytes())   # b"hello"

channel.disable_all()
channel.remove()
loop.poller.close()
```

`new_default_poller` returns a poll(2)-based poller when the
`MCOMMON_USE_POLL` environment variable is set. That poller also reports
hang-up and error events. Otherwise you get a poller built on the platform's
best selector.

## Timers

```python
import time

from reactornet.timer_queue import TimerQueue

queue = TimerQueue(loop)                  # the Loop from above
timer_id = queue.add_timer(lambda: print("tick"), time.time(), 1.0)
queue.next_expiration()                   # when the earliest timer is due
queue.handle_expired()                    # runs "tick" and reschedules it
queue.cancel(timer_id)
```

A positive interval makes a timer repeat. `handle_expired(now)` runs every
timer that is due at `now` and returns how many ran.

## Message framing

`reactornet.codec` writes each protobuf message as one frame:

```
int32 length | int32 name_len | type name + NUL | serialized message | int32 adler32
```

All integers are big-endian. The checksum covers everything between the length
field and the checksum itself.

```python
from google.protobuf.timestamp_pb2 import Timestamp

from reactornet import codec
from reactornet.buffer import Buffer

buf = Buffer()
buf.append(codec.encode(Timestamp(seconds=42)))
messages = codec.decode(buf)              # [Timestamp(seconds=42)]
```

`decode` takes every complete frame out of the buffer and leaves any
incomplete tail in place. A frame shorter than the minimum or longer than
64 MiB raises `CodecError`, and so does a frame that does not parse. The
error's `code` is an `ErrorCode`: `INVALID_LENGTH`, `CHECKSUM_ERROR`,
`INVALID_NAME_LEN`, `UNKNOWN_MESSAGE_TYPE` or `PARSE_ERROR`. Message types
are looked up in protobuf's default descriptor pool, so the generated module
for a type must be imported before its frames can be decoded.

## Pools and compression

```python
from reactornet.thread_pool import ThreadPool

with ThreadPool(4) as pool:
    pool.enqueue(lambda: print("work"))
```

After `stop()` the pool refuses new tasks with `RuntimeError`. Tasks still
in the queue are not run.

`MessageBufferPool(factory, initial_size)` hands out reusable messages. A
message is cleared with its `Clear()` method when it goes back to the pool.
`borrow()` lends a message for the length of a `with` block.

`ZlibOutputStream(buffer)` compresses what you `write` (or `write_buffer`)
and appends the result to the buffer. `finish()`, or leaving a `with` block,
flushes the stream and ends it.

## What this package does not do

The package has no event loop that runs by itself, no TCP server, no TCP
client and no connection objects. It provides no command-line programs
either. Driving the poller and the timer queue, and accepting and managing
connections, is left to the code that uses these building blocks, as in the
examples above.