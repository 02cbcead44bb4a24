"""Network names, address classification and wrapper-chain inspection."""

import ipaddress
import socket
from typing import Any, Iterable, Iterator, Optional, Protocol, Union, runtime_checkable

import psutil

from .upstream import WithUpstream, cast

NETWORK_IP = "ip"
NETWORK_TCP = "tcp"
NETWORK_UDP = "udp"
NETWORK_ICMPV4 = "icmpv4"
NETWORK_ICMPV6 = "icmpv6"

DEFAULT_HEADROOM = 1024
# Largest buffer the package allocates for a single read or write.
BUFFER_SIZE = 32 * 1024

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_V4_PRIVATE = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)
_V6_PRIVATE = ipaddress.ip_network("fc00::/7")
_V4_LOOPBACK = ipaddress.ip_network("127.0.0.0/8")
_V4_MULTICAST = ipaddress.ip_network("224.0.0.0/4")
_V4_LINK_LOCAL = ipaddress.ip_network("169.254.0.0/16")


class UnknownNetworkError(ValueError):
    """The network name is neither a TCP nor a UDP one."""

    def __init__(self, network: str) -> None:
        super().__init__(f"unknown network: {network}")
        self.network = network


class MultiError(Exception):
    """Several errors reported together."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(" | ".join(str(error) for error in self.errors))

    @staticmethod
    def combine(errors: Iterable[BaseException]) -> BaseException:
        """Return the single error itself, or a :class:`MultiError` of several."""
        collected = list(errors)
        if len(collected) == 1:
            return collected[0]
        return MultiError(collected)


class _HandshakeWriteError(Exception):
    pass


@runtime_checkable
class PacketReader(Protocol):
    def read_packet(self, buffer: Any) -> Any:
        ...


@runtime_checkable
class PacketWriter(Protocol):
    def write_packet(self, buffer: Any, destination: Any) -> Any:
        ...


@runtime_checkable
class WithUpstreamReader(Protocol):
    def upstream_reader(self) -> Any:
        ...


@runtime_checkable
class WithUpstreamWriter(Protocol):
    def upstream_writer(self) -> Any:
        ...


@runtime_checkable
class ReaderWithUpstream(Protocol):
    def reader_replaceable(self) -> bool:
        ...


@runtime_checkable
class WriterWithUpstream(Protocol):
    def writer_replaceable(self) -> bool:
        ...


@runtime_checkable
class ThreadUnsafeWriter(Protocol):
    def write_is_thread_unsafe(self) -> None:
        ...


@runtime_checkable
class ThreadSafeReader(Protocol):
    def read_buffer_thread_safe(self) -> Any:
        ...


@runtime_checkable
class ThreadSafePacketReader(Protocol):
    def read_packet_thread_safe(self) -> Any:
        ...


@runtime_checkable
class FrontHeadroom(Protocol):
    def front_headroom(self) -> int:
        ...


@runtime_checkable
class RearHeadroom(Protocol):
    def rear_headroom(self) -> int:
        ...


@runtime_checkable
class LazyHeadroom(Protocol):
    def lazy_headroom(self) -> bool:
        ...


@runtime_checkable
class ReaderWithMTU(Protocol):
    def reader_mtu(self) -> int:
        ...


@runtime_checkable
class WriterWithMTU(Protocol):
    def writer_mtu(self) -> int:
        ...


@runtime_checkable
class HandshakeConn(Protocol):
    def handshake_failure(self, err: BaseException) -> Any:
        ...


@runtime_checkable
class EarlyConn(Protocol):
    def need_handshake(self) -> bool:
        ...


@runtime_checkable
class VectorisedWriter(Protocol):
    def write_vectorised(self, buffers: list) -> Any:
        ...


@runtime_checkable
class VectorisedPacketWriter(Protocol):
    def write_vectorised_packet(self, buffers: list, destination: Any) -> Any:
        ...


def network_name(network: str) -> str:
    """Reduce ``tcp4``, ``udp6``, ``ip4`` and the like to their base name."""
    for base in (NETWORK_TCP, NETWORK_UDP, NETWORK_IP):
        if network.startswith(base):
            return base
    return network


def _parse(addr: Union[str, IPAddress]) -> IPAddress:
    if isinstance(addr, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return addr
    return ipaddress.ip_address(addr)


def _unmap(addr: IPAddress) -> IPAddress:
    if addr.version == 6 and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def _high16(addr: IPAddress) -> int:
    return int(addr) >> 112


def _is_private(addr: IPAddress) -> bool:
    addr = _unmap(addr)
    if addr.version == 4:
        return any(addr in network for network in _V4_PRIVATE)
    return addr in _V6_PRIVATE


def _is_loopback(addr: IPAddress) -> bool:
    addr = _unmap(addr)
    if addr.version == 4:
        return addr in _V4_LOOPBACK
    return int(addr) == 1


def _is_multicast(addr: IPAddress) -> bool:
    addr = _unmap(addr)
    if addr.version == 4:
        return addr in _V4_MULTICAST
    return _high16(addr) >> 8 == 0xFF


def _is_link_local_unicast(addr: IPAddress) -> bool:
    addr = _unmap(addr)
    if addr.version == 4:
        return addr in _V4_LINK_LOCAL
    return _high16(addr) & 0xFFC0 == 0xFE80


def _is_interface_local_multicast(addr: IPAddress) -> bool:
    if addr.version != 6 or addr.ipv4_mapped is not None:
        return False
    return _high16(addr) & 0xFF0F == 0xFF01


def _is_unspecified(addr: IPAddress) -> bool:
    return int(addr) == 0


def is_public_addr(addr: Union[str, IPAddress]) -> bool:
    """Return whether ``addr`` is not private, loopback, multicast, link-local or unspecified."""
    ip = _parse(addr)
    return not (
        _is_private(ip)
        or _is_loopback(ip)
        or _is_multicast(ip)
        or _is_link_local_unicast(ip)
        or _is_interface_local_multicast(ip)
        or _is_unspecified(ip)
    )


def is_virtual(addr: Union[str, IPAddress]) -> bool:
    """Return whether ``addr`` is loopback or multicast."""
    ip = _parse(addr)
    return _is_loopback(ip) or _is_multicast(ip) or _is_interface_local_multicast(ip)


def local_addrs() -> list:
    """Return the IP addresses assigned to this machine's interfaces."""
    addresses = []
    for entries in psutil.net_if_addrs().values():
        for entry in entries:
            if entry.family in (socket.AF_INET, socket.AF_INET6):
                addresses.append(ipaddress.ip_address(entry.address))
    return addresses


def local_public_addrs() -> list:
    """Return the public IP addresses assigned to this machine's interfaces."""
    return [addr for addr in local_addrs() if is_public_addr(addr)]


def unwrap_reader(reader: Any) -> Any:
    """Follow replaceable readers down to the innermost one."""
    while isinstance(reader, ReaderWithUpstream) and reader.reader_replaceable():
        if isinstance(reader, WithUpstreamReader):
            reader = reader.upstream_reader()
        elif isinstance(reader, WithUpstream):
            reader = reader.upstream()
        else:
            raise TypeError("bad reader")
    return reader


def unwrap_writer(writer: Any) -> Any:
    """Follow replaceable writers down to the innermost one."""
    while isinstance(writer, WriterWithUpstream) and writer.writer_replaceable():
        if isinstance(writer, WithUpstreamWriter):
            writer = writer.upstream_writer()
        elif isinstance(writer, WithUpstream):
            writer = writer.upstream()
        else:
            raise TypeError("bad writer")
    return writer


def is_unsafe_writer(writer: Any) -> bool:
    """Return whether ``writer`` or anything it wraps is not safe to write concurrently."""
    return cast(writer, ThreadUnsafeWriter) is not None


def _find_safe(reader: Any, kind: type) -> Optional[Any]:
    seen: set = set()
    while reader is not None and id(reader) not in seen:
        if isinstance(reader, kind):
            return reader
        if not (isinstance(reader, ReaderWithUpstream) and reader.reader_replaceable()):
            return None
        seen.add(id(reader))
        if isinstance(reader, WithUpstream):
            reader = reader.upstream()
        elif isinstance(reader, WithUpstreamReader):
            reader = reader.upstream_reader()
        else:
            return None
    return None


def is_safe_reader(reader: Any) -> Optional[Any]:
    """Return the thread-safe buffer reader reachable through replaceable wrappers, or ``None``."""
    return _find_safe(reader, ThreadSafeReader)


def is_safe_packet_reader(reader: Any) -> Optional[Any]:
    """Return the thread-safe packet reader reachable through replaceable wrappers, or ``None``."""
    return _find_safe(reader, ThreadSafePacketReader)


def _chain(obj: Any, link: type, step: str) -> Iterator[Any]:
    seen: set = set()
    while obj is not None and id(obj) not in seen:
        yield obj
        seen.add(id(obj))
        if isinstance(obj, link):
            obj = getattr(obj, step)()
        elif isinstance(obj, WithUpstream):
            obj = obj.upstream()
        else:
            return


def _writer_chain(writer: Any) -> Iterator[Any]:
    return _chain(writer, WithUpstreamWriter, "upstream_writer")


def _reader_chain(reader: Any) -> Iterator[Any]:
    return _chain(reader, WithUpstreamReader, "upstream_reader")


def calculate_front_headroom(writer: Any) -> int:
    """Sum the front headroom every writer in the chain asks for."""
    headroom = 0
    for current in _writer_chain(writer):
        if isinstance(current, LazyHeadroom) and current.lazy_headroom():
            return DEFAULT_HEADROOM
        if isinstance(current, FrontHeadroom):
            headroom += current.front_headroom()
    return headroom


def calculate_rear_headroom(writer: Any) -> int:
    """Sum the rear headroom every writer in the chain asks for."""
    headroom = 0
    for current in _writer_chain(writer):
        if isinstance(current, LazyHeadroom) and current.lazy_headroom():
            return DEFAULT_HEADROOM
        if isinstance(current, RearHeadroom):
            headroom += current.rear_headroom()
    return headroom


def _reader_mtu(reader: Any) -> int:
    mtu = 0
    for current in _reader_chain(reader):
        if isinstance(current, LazyHeadroom) and current.lazy_headroom():
            return 0
        if isinstance(current, ReaderWithMTU):
            mtu = max(mtu, current.reader_mtu())
    return mtu


def _writer_mtu(writer: Any) -> int:
    mtu = 0
    for current in _writer_chain(writer):
        if isinstance(current, LazyHeadroom) and current.lazy_headroom():
            return 0
        if isinstance(current, WriterWithMTU):
            upstream_mtu = current.writer_mtu()
            if mtu == 0 or 0 < upstream_mtu < mtu:
                mtu = upstream_mtu
    return mtu


def calculate_mtu(reader: Any, writer: Any) -> int:
    """Return the MTU to use between ``reader`` and ``writer``; 0 means unlimited."""
    reader_mtu = _reader_mtu(reader)
    writer_mtu = _writer_mtu(writer)
    if reader_mtu > writer_mtu:
        return reader_mtu
    if writer_mtu > BUFFER_SIZE:
        return 0
    return writer_mtu


def handshake_failure(conn: Any, err: BaseException) -> BaseException:
    """Report ``err`` to the handshake connection in ``conn``'s chain, if any.

    Returns ``err``, or a :class:`MultiError` when reporting it failed too.
    """
    handshake_conn = cast(conn, HandshakeConn)
    if handshake_conn is None:
        return err
    try:
        handshake_conn.handshake_failure(err)
    except Exception as write_err:
        wrapped = _HandshakeWriteError(f"write handshake failure: {write_err}")
        wrapped.__cause__ = write_err
        return MultiError([err, wrapped])
    return err