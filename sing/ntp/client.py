"""Querying an NTP server and keeping a corrected clock up to date."""

import asyncio
import inspect
import logging
import secrets
import socket
import threading
import time
from abc import ABC, abstractmethod
from contextlib import suppress
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from ..dialer import SYSTEM_DIALER, Dialer
from ..network import NETWORK_UDP
from ..service import from_context
from .message import (
    DEFAULT_NTP_VERSION,
    DEFAULT_TIMEOUT,
    LeapIndicator,
    Message,
    Mode,
    Response,
    parse_time,
    to_ntp_time,
)

TIME_LAYOUT = "%Y-%m-%d %H:%M:%S %z"
DEFAULT_SERVER = "time.google.com"
DEFAULT_PORT = 123
DEFAULT_INTERVAL = 30 * 60.0

_RECV_SIZE = 512

TimeFunc = Callable[[], datetime]


class TimeService(ABC):
    """Something that provides a corrected clock."""

    @abstractmethod
    def time_func(self) -> TimeFunc:
        """Return a callable giving the current corrected UTC time."""


def _header(leap: LeapIndicator, version: int, mode: Mode) -> int:
    return (int(leap) << 6) | (version << 3) | int(mode)


async def _send(conn: Any, data: bytes) -> None:
    if isinstance(conn, socket.socket):
        conn.setblocking(False)
        await asyncio.get_running_loop().sock_sendall(conn, data)
        return
    result = conn.send(data)
    if inspect.isawaitable(result):
        await result


async def _recv(conn: Any, size: int) -> bytes:
    if isinstance(conn, socket.socket):
        conn.setblocking(False)
        return await asyncio.get_running_loop().sock_recv(conn, size)
    result = conn.recv(size)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _close(conn: Any) -> None:
    result = conn.close()
    if inspect.isawaitable(result):
        await result


async def _query(conn: Any) -> Response:
    request = Message(
        li_vn_mode=_header(LeapIndicator.NOT_IN_SYNC, DEFAULT_NTP_VERSION, Mode.CLIENT),
        transmit_time=int.from_bytes(secrets.token_bytes(8), "big"),
    )
    xmit_time = datetime.now(timezone.utc)
    started = time.perf_counter_ns()
    await _send(conn, request.pack())
    data = await _recv(conn, _RECV_SIZE)
    elapsed = time.perf_counter_ns() - started
    response = Message.unpack(data)
    recv_time = to_ntp_time(xmit_time + timedelta(microseconds=elapsed / 1000))
    response.origin_time = to_ntp_time(xmit_time)
    return parse_time(response, recv_time)


async def exchange(dialer: Dialer, server_address: tuple) -> Response:
    """Send one client request to ``server_address`` and return the parsed reply.

    Raises ``asyncio.TimeoutError`` if no reply arrives within five seconds.
    """
    conn = await dialer.dial_context(NETWORK_UDP, server_address)
    try:
        return await asyncio.wait_for(_query(conn), DEFAULT_TIMEOUT)
    finally:
        await _close(conn)


class Service(TimeService):
    """Keeps a clock offset from an NTP server, refreshed on a background thread."""

    def __init__(
        self,
        server: Optional[tuple] = None,
        interval: Optional[float] = None,
        dialer: Optional[Dialer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not server or not server[0]:
            host, port = DEFAULT_SERVER, 0
        else:
            host, port = server
        self.server = (host, port or DEFAULT_PORT)
        self.interval = interval if interval and interval > 0 else DEFAULT_INTERVAL
        self._dialer = dialer if dialer is not None else SYSTEM_DIALER
        self._logger = logger if logger is not None else logging.getLogger("sing.ntp")
        self._clock_offset = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._update_task: Optional[asyncio.Task] = None
        self._closed = False

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
            self._thread.start()
        return self._loop

    def _formatted_now(self) -> str:
        return self.time_func()().astimezone().strftime(TIME_LAYOUT)

    def start(self) -> None:
        """Fetch the time once, then keep refreshing it every ``interval`` seconds."""
        if self._closed:
            raise RuntimeError("service closed")
        loop = self._ensure_loop()
        try:
            asyncio.run_coroutine_threadsafe(self._update(), loop).result()
        except Exception as err:
            raise RuntimeError(f"initialize time: {err}") from err
        self._logger.info("updated time: %s", self._formatted_now())
        asyncio.run_coroutine_threadsafe(self._spawn_updater(), loop).result()

    async def _spawn_updater(self) -> None:
        self._update_task = asyncio.get_running_loop().create_task(self._loop_update())

    async def _loop_update(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._update()
            except Exception as err:
                self._logger.warning("update time: %s", err)
            else:
                self._logger.debug("updated time: %s", self._formatted_now())

    async def _update(self) -> None:
        response = await exchange(self._dialer, self.server)
        self._clock_offset = response.clock_offset

    async def _shutdown(self) -> None:
        task = self._update_task
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    def close(self) -> None:
        """Stop refreshing; calling it again does nothing."""
        if self._closed:
            return
        self._closed = True
        loop = self._loop
        if loop is None:
            return
        asyncio.run_coroutine_threadsafe(self._shutdown(), loop).result()
        loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None:
            self._thread.join()
        loop.close()

    def time_func(self) -> TimeFunc:
        def now() -> datetime:
            return datetime.now(timezone.utc) + timedelta(microseconds=self._clock_offset / 1000)

        return now

    def __enter__(self) -> "Service":
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def time_func_from_context(ctx: Optional[Mapping]) -> Optional[TimeFunc]:
    """Return the time function of the :class:`TimeService` registered in ``ctx``, or ``None``."""
    service = from_context(ctx, TimeService)
    if service is None:
        return None
    return service.time_func()