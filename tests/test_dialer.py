import asyncio
import socket

import pytest

from sing.dialer import (
    DefaultDialer,
    Dialer,
    dial_parallel,
    dial_serial,
    listen_serial,
)
from sing.network import MultiError, UnknownNetworkError

V4 = "192.0.2.1"
V4_OTHER = "192.0.2.2"
V6 = "2001:db8::1"


class FakeConn:
    def __init__(self, destination):
        self.destination = destination
        self.closed = False

    def close(self):
        self.closed = True


class FakeDialer(Dialer):
    def __init__(self, failing=(), delays=None):
        self.failing = set(failing)
        self.delays = delays or {}
        self.attempts = []
        self.conns = []

    async def dial_context(self, network, destination):
        host = destination[0]
        self.attempts.append(host)
        await asyncio.sleep(self.delays.get(host, 0))
        if host in self.failing:
            raise ConnectionRefusedError(host)
        conn = FakeConn(destination)
        self.conns.append(conn)
        return conn

    async def listen_packet(self, destination):
        host = destination[0]
        self.attempts.append(host)
        if host in self.failing:
            raise OSError(host)
        return FakeConn(destination)


class ParallelFake(FakeDialer):
    def __init__(self):
        super().__init__()
        self.parallel_calls = []

    async def dial_parallel(self, network, destination, destination_addresses):
        self.parallel_calls.append(list(destination_addresses))
        return FakeConn(destination)


@pytest.mark.asyncio
async def test_dial_serial_returns_first_success():
    dialer = FakeDialer(failing={V4})
    conn = await dial_serial(dialer, "tcp", ("example.com", 443), [V4, V4_OTHER])
    assert conn.destination == (V4_OTHER, 443)
    assert dialer.attempts == [V4, V4_OTHER]


@pytest.mark.asyncio
async def test_dial_serial_single_failure_raises_it():
    dialer = FakeDialer(failing={V4})
    with pytest.raises(ConnectionRefusedError):
        await dial_serial(dialer, "tcp", ("example.com", 80), [V4])


@pytest.mark.asyncio
async def test_dial_serial_collects_all_failures():
    dialer = FakeDialer(failing={V4, V4_OTHER})
    with pytest.raises(MultiError) as info:
        await dial_serial(dialer, "tcp", ("example.com", 80), [V4, V4_OTHER])
    assert [str(e) for e in info.value.errors] == [V4, V4_OTHER]


@pytest.mark.asyncio
async def test_dial_serial_without_addresses():
    with pytest.raises(ValueError):
        await dial_serial(FakeDialer(), "tcp", ("example.com", 80), [])


@pytest.mark.asyncio
async def test_dial_serial_delegates_to_parallel_dialer():
    dialer = ParallelFake()
    conn = await dial_serial(dialer, "tcp", ("example.com", 80), [V4, V6])
    assert dialer.parallel_calls == [[V4, V6]]
    assert dialer.attempts == []
    assert conn.destination == ("example.com", 80)


@pytest.mark.asyncio
async def test_listen_serial_returns_address():
    dialer = FakeDialer(failing={V4})
    conn, address = await listen_serial(dialer, ("example.com", 53), [V4, V4_OTHER])
    assert address == V4_OTHER
    assert conn.destination == (V4_OTHER, 53)


@pytest.mark.asyncio
async def test_listen_serial_all_fail():
    dialer = FakeDialer(failing={V4, V4_OTHER})
    with pytest.raises(MultiError):
        await listen_serial(dialer, ("example.com", 53), [V4, V4_OTHER])


@pytest.mark.asyncio
async def test_dial_parallel_single_family_is_serial():
    dialer = FakeDialer(failing={V4})
    conn = await dial_parallel(dialer, "tcp", ("example.com", 80), [V4, V4_OTHER])
    assert conn.destination == (V4_OTHER, 80)
    assert dialer.attempts == [V4, V4_OTHER]


@pytest.mark.asyncio
async def test_dial_parallel_primary_wins_before_fallback():
    dialer = FakeDialer()
    conn = await dial_parallel(dialer, "tcp", ("example.com", 80), [V6, V4], False, 10)
    assert conn.destination == (V4, 80)
    assert dialer.attempts == [V4]


@pytest.mark.asyncio
async def test_dial_parallel_prefer_ipv6():
    dialer = FakeDialer()
    conn = await dial_parallel(dialer, "tcp", ("example.com", 80), [V4, V6], True, 10)
    assert conn.destination == (V6, 80)
    assert dialer.attempts == [V6]


@pytest.mark.asyncio
async def test_dial_parallel_primary_failure_starts_fallback_at_once():
    dialer = FakeDialer(failing={V4})
    conn = await asyncio.wait_for(
        dial_parallel(dialer, "tcp", ("example.com", 80), [V4, V6], False, 10), 2
    )
    assert conn.destination == (V6, 80)
    assert dialer.attempts == [V4, V6]


@pytest.mark.asyncio
async def test_dial_parallel_slow_primary_loses_to_fallback():
    dialer = FakeDialer(delays={V4: 5})
    conn = await asyncio.wait_for(
        dial_parallel(dialer, "tcp", ("example.com", 80), [V4, V6], False, 0.01), 2
    )
    assert conn.destination == (V6, 80)
    assert set(dialer.attempts) == {V4, V6}


@pytest.mark.asyncio
async def test_dial_parallel_both_fail_raises_primary_error():
    dialer = FakeDialer(failing={V4, V6})
    with pytest.raises(ConnectionRefusedError) as info:
        await dial_parallel(dialer, "tcp", ("example.com", 80), [V4, V6], False, 0.01)
    assert info.value.args == (V4,)


@pytest.mark.asyncio
async def test_default_dialer_tcp_connects():
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        sock = await DefaultDialer().dial_context("tcp4", ("127.0.0.1", port))
        try:
            assert sock.getpeername() == ("127.0.0.1", port)
            assert sock.type == socket.SOCK_STREAM
        finally:
            sock.close()
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_default_dialer_parallel_single_address():
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        sock = await DefaultDialer().dial_parallel("tcp", ("localhost", port), ["127.0.0.1"])
        try:
            assert sock.getpeername() == ("127.0.0.1", port)
        finally:
            sock.close()
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_default_dialer_udp_connects():
    sock = await DefaultDialer().dial_context("udp4", ("127.0.0.1", 5353))
    try:
        assert sock.getpeername() == ("127.0.0.1", 5353)
        assert sock.type == socket.SOCK_DGRAM
    finally:
        sock.close()


@pytest.mark.asyncio
async def test_default_dialer_listen_packet_binds():
    sock = await DefaultDialer().listen_packet(("example.com", 53))
    try:
        assert sock.getsockname()[1] > 0
        assert sock.type == socket.SOCK_DGRAM
    finally:
        sock.close()


@pytest.mark.asyncio
async def test_default_dialer_unknown_network():
    with pytest.raises(UnknownNetworkError):
        await DefaultDialer().dial_context("sctp", ("127.0.0.1", 80))