"""Dialers, and dialing a list of resolved addresses serially or in parallel."""

import asyncio
import inspect
import ipaddress
import socket
from abc import ABC, abstractmethod
from typing import Any, Iterable, Protocol, Union, runtime_checkable

from .network import NETWORK_TCP, NETWORK_UDP, MultiError, UnknownNetworkError, network_name

DEFAULT_FALLBACK_DELAY = 0.3

Address = tuple  # (host, port)


class Dialer(ABC):
    """Opens connections and packet sockets towards ``(host, port)`` destinations."""

    @abstractmethod
    async def dial_context(self, network: str, destination: Address) -> Any:
        """Connect to ``destination`` over ``network`` and return the connection."""

    @abstractmethod
    async def listen_packet(self, destination: Address) -> Any:
        """Open a packet socket for talking to ``destination``."""


@runtime_checkable
class _ParallelDialer(Protocol):
    async def dial_parallel(self, network: str, destination: Address, destination_addresses: list) -> Any:
        ...


def _family(network: str) -> int:
    if network.endswith("4"):
        return socket.AF_INET
    if network.endswith("6"):
        return socket.AF_INET6
    return socket.AF_UNSPEC


def _bind_udp() -> socket.socket:
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_DGRAM)
    except OSError:
        pass
    else:
        try:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            sock.bind(("::", 0))
            return sock
        except OSError:
            sock.close()
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("0.0.0.0", 0))
    return sock


class DefaultDialer(Dialer):
    """Dials with the operating system's sockets; connections are non-blocking sockets."""

    async def dial_context(self, network: str, destination: Address) -> socket.socket:
        name = network_name(network)
        if name == NETWORK_TCP:
            sock_type = socket.SOCK_STREAM
        elif name == NETWORK_UDP:
            sock_type = socket.SOCK_DGRAM
        else:
            raise UnknownNetworkError(network)
        host, port = destination
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, port, family=_family(network), type=sock_type)
        errors = []
        for family, kind, proto, _, sockaddr in infos:
            sock = socket.socket(family, kind, proto)
            sock.setblocking(False)
            try:
                await loop.sock_connect(sock, sockaddr)
            except OSError as err:
                sock.close()
                errors.append(err)
                continue
            except BaseException:
                sock.close()
                raise
            return sock
        if not errors:
            raise OSError(f"no addresses found for {host}")
        raise MultiError.combine(errors)

    async def listen_packet(self, destination: Address) -> socket.socket:
        sock = _bind_udp()
        sock.setblocking(False)
        return sock

    async def dial_parallel(self, network: str, destination: Address, destination_addresses: list) -> Any:
        """Dial the addresses racing IPv4 against IPv6, preferring IPv4."""
        return await dial_parallel(self, network, destination, destination_addresses, False, 0)


SYSTEM_DIALER = DefaultDialer()

IPLike = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]


def _to_ip(address: IPLike) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return address
    return ipaddress.ip_address(address)


def _is_ipv4_like(address: Union[ipaddress.IPv4Address, ipaddress.IPv6Address]) -> bool:
    return address.version == 4 or address.ipv4_mapped is not None


async def _dial_each(dialer: Dialer, network: str, destination: Address, addresses: list) -> Any:
    if not addresses:
        raise ValueError("no destination addresses")
    port = destination[1]
    errors = []
    for address in addresses:
        try:
            return await dialer.dial_context(network, (str(address), port))
        except Exception as err:
            errors.append(err)
    raise MultiError.combine(errors)


async def dial_serial(dialer: Dialer, network: str, destination: Address, destination_addresses: Iterable[IPLike]) -> Any:
    """Try each address in order and return the first connection made.

    Dialers that can dial in parallel are asked to do so instead.
    """
    addresses = list(destination_addresses)
    if isinstance(dialer, _ParallelDialer):
        return await dialer.dial_parallel(network, destination, addresses)
    return await _dial_each(dialer, network, destination, addresses)


async def listen_serial(dialer: Dialer, destination: Address, destination_addresses: Iterable[IPLike]) -> tuple:
    """Open a packet socket for the first address that allows it; return it with that address."""
    addresses = list(destination_addresses)
    if not addresses:
        raise ValueError("no destination addresses")
    port = destination[1]
    errors = []
    for address in addresses:
        try:
            conn = await dialer.listen_packet((str(address), port))
        except Exception as err:
            errors.append(err)
            continue
        return conn, address
    raise MultiError.combine(errors)


def _close(conn: Any) -> None:
    close = getattr(conn, "close", None)
    if callable(close):
        result = close()
        if inspect.isawaitable(result):
            asyncio.ensure_future(result)


def _close_if_connected(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    if task.exception() is None:
        _close(task.result())


def _abandon(task: asyncio.Task, winner: Any) -> None:
    if not task.done():
        task.cancel()
        task.add_done_callback(_close_if_connected)
        return
    if task.cancelled() or task.exception() is not None:
        return
    if task.result() is not winner:
        _close(task.result())


async def dial_parallel(
    dialer: Dialer,
    network: str,
    destination: Address,
    destination_addresses: Iterable[IPLike],
    prefer_ipv6: bool = False,
    fallback_delay: float = 0,
) -> Any:
    """Race the preferred address family against the other, started after ``fallback_delay`` seconds.

    The fallback starts at once if the primary family fails first. When both
    fail, the primary family's error is raised.
    """
    if not fallback_delay:
        fallback_delay = DEFAULT_FALLBACK_DELAY
    addresses = [_to_ip(address) for address in destination_addresses]
    addresses4 = [a for a in addresses if _is_ipv4_like(a)]
    addresses6 = [a for a in addresses if not _is_ipv4_like(a)]
    if not addresses4 or not addresses6:
        return await _dial_each(dialer, network, destination, addresses)
    primaries, fallbacks = (addresses6, addresses4) if prefer_ipv6 else (addresses4, addresses6)

    def start(group: list) -> asyncio.Task:
        return asyncio.ensure_future(_dial_each(dialer, network, destination, group))

    primary = start(primaries)
    fallback = None
    failures: dict = {}
    winner = None
    pending = {primary}
    timeout = fallback_delay
    try:
        while True:
            done, pending = await asyncio.wait(pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
            if not done:
                fallback = start(fallbacks)
                pending.add(fallback)
                timeout = None
                continue
            for task in (primary, fallback):
                if task is None or task not in done:
                    continue
                error = task.exception()
                if error is None:
                    winner = task.result()
                    return winner
                failures[task] = error
            if len(failures) == 2:
                raise failures[primary]
            if fallback is None:
                fallback = start(fallbacks)
                pending.add(fallback)
                timeout = None
    finally:
        for task in (primary, fallback):
            if task is not None:
                _abandon(task, winner)