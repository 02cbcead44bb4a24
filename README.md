# sing

Small building blocks for writing networking tools in Python: integer ranges,
ordered collections, byte-stream helpers, a replay filter, a service registry,
task groups, dialers and an SNTP client.

## Installation

```
pip install .
```

With the test tools:

```
pip install ".[test]"
```

## Modules

- `sing.text`: `substring_after`, `substring_after_last`, `substring_before`,
  `substring_before_last` and `substring_between`. When the separator is not
  found, the input comes back unchanged.
- `sing.upstream`: the `WithUpstream` protocol (an object with an `upstream()`
  method) and `cast(obj, kind)`, which returns `obj` or the first object in its
  upstream chain that is an instance of `kind`, or `None`. `must_cast` raises
  `TypeError` instead of returning `None`.
- `sing.ranges`: the frozen dataclass `Range(start, end)` for inclusive integer
  ranges, with `single`, `merge`, `revert` and `exclude`.
- `sing.linkedlist`: `LinkedList`, a doubly linked list whose `Element` handles
  stay valid while other elements are inserted, moved or removed.
  `pop_front` and `pop_back` raise `IndexError` on an empty list.
- `sing.linkedhashmap`: `LinkedHashMap`, a mutable mapping ordered by first
  insertion (updating a key keeps its place), with `put`, `remove`, `put_all`
  and `entries` returning `MapEntry` copies.
- `sing.rw`: helpers for binary streams. It reads exact byte counts, raising
  `EOFError` on short input. It writes single bytes and zero padding. It encodes
  unsigned 64-bit varints (`read_uvarint`, `write_uvarint`, `uvarint_len`) and
  varint-length-prefixed strings (`read_vstring`, `write_vstring`). It also has
  `ReadCounter`, `file_exists`, `copy_file`, `write_file`, `read_json`,
  `write_json`, and `close_read` / `close_write` for half-closing an object or
  something it wraps.
- `sing.replay`: `SimpleFilter(timeout)`, whose `check(salt)` returns `True` the
  first time a salt is seen within `timeout` seconds and `False` on a repeat.
- `sing.service`: `Registry`, a thread-safe map from service types to services,
  carried in read-only context mappings. The helpers are `context_with`,
  `context_with_registry`, `registry_from_context` and `from_context`.
- `sing.shell`: `exec_command(name, *args)` returns a `Shell`. Configure it with
  chained calls: `set_dir`, `set_env` (for `KEY=VALUE` entries) and `attach`.
  Run it with `run`, `start` and `wait`, `read` (stdout and stderr together) or
  `read_output` (stdout, stripped). A failure to start or a non-zero exit
  raises `ShellError`, which carries `returncode` and `output`.
- `sing.observable`: `Subscriber`, a bounded queue that drops items when full,
  and `Observer`, which forwards everything emitted into one subscriber to every
  listener added with `subscribe`. Closing either one twice raises `ValueError`.
- `sing.task`: `Group`, which runs async callables concurrently and raises the
  first failure once all have finished. It has an optional cleanup callback and
  a `fast_fail` mode that cancels the rest on the first error. `run` and
  `run_any` are shortcuts for the two modes.
- `sing.network`:
  - `network_name`, which reduces `tcp4`, `udp6` and similar to `tcp`, `udp` or `ip`;
  - the address checks `is_public_addr` and `is_virtual`;
  - `local_addrs` and `local_public_addrs`, which read the interface addresses
    through psutil;
  - helpers that walk chains of wrapped readers and writers: `unwrap_reader`,
    `unwrap_writer`, `is_unsafe_writer`, `is_safe_reader`,
    `is_safe_packet_reader`, `calculate_front_headroom`,
    `calculate_rear_headroom` and `calculate_mtu`;
  - `handshake_failure`;
  - `UnknownNetworkError` and `MultiError`.
- `sing.dialer`: the async `Dialer` interface and `DefaultDialer` (also
  available as `SYSTEM_DIALER`), which returns non-blocking sockets. It also
  provides `dial_serial`, `listen_serial` and `dial_parallel`, which races IPv4
  against IPv6 and starts the other family after a fallback delay (0.3 s by
  default).
- `sing.ntp.message`: the 48-byte NTP `Message` (`pack` / `unpack`),
  conversions for Q32.32 and Q16.16 fixed-point times, `parse_time`, and
  `Response.validate`, which raises `NTPValidationError`. Durations are
  integers in nanoseconds. Times are UTC `datetime` values.
- `sing.ntp.client`: the async `exchange(dialer, (host, port))`, which makes one
  SNTP query with a five-second timeout. `Service` keeps a clock offset
  refreshed on a background thread (default server `time.google.com:123`,
  every 30 minutes) and works as a context manager. `TimeService` and
  `time_func_from_context` give access to the corrected clock.

## Examples

### Ranges

```python
from sing.ranges import Range, merge, revert, exclude

merge([Range(0, 1), Range(1, 2)])
# [Range(start=0, end=2)]

revert(0, 10, [Range(2, 4), Range(6, 8)])
# [Range(start=0, end=1), Range(start=5, end=5), Range(start=9, end=10)]

exclude([Range(0, 100)], [Range(0, 10), Range(20, 30), Range(55, 55)])
# [Range(start=11, end=19), Range(start=31, end=54), Range(start=56, end=100)]
```

### Strings

```python
from sing.text import substring_between

substring_between("key=[value];", "[", "]")
# "value"
```

### Ordered map

```python
from sing.linkedhashmap import LinkedHashMap

m = LinkedHashMap()
m["b"] = 2
m["a"] = 1
m["b"] = 3
list(m.items())
# [("b", 3), ("a", 1)]
```

### Varints

```python
import io
from sing import rw

buffer = io.BytesIO()
rw.write_vstring(buffer, "hello")
buffer.seek(0)
rw.read_vstring(buffer)
# "hello"
```

### Replay filter

```python
from sing.replay import SimpleFilter

seen = SimpleFilter(60.0)
seen.check(b"salt")   # True
seen.check(b"salt")   # False
```

### Running a program

```python
from sing.shell import exec_command

exec_command("echo", "hello").read_output()
# "hello"
```

### Task groups

```python
import asyncio
from sing.task import Group

async def main():
    group = Group()
    group.append("first", first_job)
    group.append("second", second_job)
    group.fast_fail()
    await group.run()

asyncio.run(main())
```

### Dialing a resolved host

```python
import asyncio
from sing.dialer import SYSTEM_DIALER, dial_parallel

async def main():
    sock = await dial_parallel(
        SYSTEM_DIALER, "tcp", ("example.com", 80), ["192.0.2.1", "2001:db8::1"]
    )
    sock.close()
```

### Corrected time

```python
from sing.ntp.client import Service

with Service() as service:
    now = service.time_func()()
```

## What the package does not do

It implements no proxy protocol, whether SOCKS, HTTP CONNECT, UDP-over-TCP or
TLS wrapping. It runs no server and has no command-line program. The dialers and
the NTP client are the only parts that open network connections.

## Running the tests

```
pytest
```