"""The SNTP wire message, fixed-point timestamps and response validation.

Durations are integers counting nanoseconds; absolute times are
timezone-aware :class:`datetime.datetime` values in UTC.
"""

import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntEnum

DEFAULT_NTP_VERSION = 4
NANOS_PER_SECOND = 1_000_000_000
MAX_STRATUM = 16
DEFAULT_TIMEOUT = 5.0
MAX_POLL_INTERVAL = timedelta(seconds=1 << 17)
MAX_DISPERSION = 16 * NANOS_PER_SECOND

NTP_EPOCH = datetime(1900, 1, 1, tzinfo=timezone.utc)

MESSAGE_SIZE = 48

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1
_MESSAGE_FORMAT = struct.Struct(">BBbbIIIQQQQ")


class LeapIndicator(IntEnum):
    """Warning of a leap second in the last minute of the current month."""

    NO_WARNING = 0
    ADD_SECOND = 1
    DEL_SECOND = 2
    NOT_IN_SYNC = 3


class Mode(IntEnum):
    """NTP association modes."""

    RESERVED = 0
    SYMMETRIC_ACTIVE = 1
    SYMMETRIC_PASSIVE = 2
    CLIENT = 3
    SERVER = 4
    BROADCAST = 5
    CONTROL_MESSAGE = 6
    RESERVED_PRIVATE = 7


class NTPValidationError(ValueError):
    """An NTP response is unfit for time synchronisation."""


def _signed64(value: int) -> int:
    value &= _MASK64
    return value - (1 << 64) if value >= 1 << 63 else value


def _half(value: int) -> int:
    """Halve ``value``, truncating toward zero."""
    return -((-value) // 2) if value < 0 else value // 2


def ntp_time_duration(value: int) -> int:
    """Interpret a Q32.32 timestamp as elapsed nanoseconds, rounding to nearest."""
    seconds = (value >> 32) * NANOS_PER_SECOND
    frac = (value & _MASK32) * NANOS_PER_SECOND
    nanos = frac >> 32
    if frac & _MASK32 >= 0x80000000:
        nanos += 1
    return seconds + nanos


def ntp_time_to_time(value: int) -> datetime:
    """Interpret a Q32.32 timestamp as an absolute UTC time."""
    return NTP_EPOCH + timedelta(microseconds=ntp_time_duration(value) // 1000)


def _nanos_since_epoch(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - NTP_EPOCH
    return (delta.days * 86400 + delta.seconds) * NANOS_PER_SECOND + delta.microseconds * 1000


def to_ntp_time(moment: datetime) -> int:
    """Convert ``moment`` into a Q32.32 timestamp; naive times are taken as UTC."""
    nanos = _nanos_since_epoch(moment) & _MASK64
    seconds = nanos // NANOS_PER_SECOND
    remainder = (nanos - seconds * NANOS_PER_SECOND) << 32
    frac = remainder // NANOS_PER_SECOND
    if remainder % NANOS_PER_SECOND >= NANOS_PER_SECOND // 2:
        frac += 1
    return ((seconds << 32) | frac) & _MASK64


def ntp_short_duration(value: int) -> int:
    """Interpret a Q16.16 value as elapsed nanoseconds, rounding to nearest."""
    seconds = (value >> 16) * NANOS_PER_SECOND
    frac = (value & 0xFFFF) * NANOS_PER_SECOND
    nanos = frac >> 16
    if frac & 0xFFFF >= 0x8000:
        nanos += 1
    return seconds + nanos


def to_interval(value: int) -> int:
    """Return ``2 ** value`` seconds in nanoseconds, as a log2 poll or precision field encodes it."""
    if value > 0:
        return _signed64(NANOS_PER_SECOND << value)
    if value < 0:
        return NANOS_PER_SECOND >> -value
    return NANOS_PER_SECOND


def kiss_code(reference_id: int) -> str:
    """Decode a reference id as a four-letter kiss code, or ``""`` if not printable."""
    raw = (reference_id & _MASK32).to_bytes(4, "big")
    if all(32 <= ch <= 126 for ch in raw):
        return raw.decode("ascii")
    return ""


@dataclass
class Message:
    """An NTP packet; timestamps are raw Q32.32 and Q16.16 integers."""

    li_vn_mode: int = 0
    stratum: int = 0
    poll: int = 0
    precision: int = 0
    root_delay: int = 0
    root_dispersion: int = 0
    reference_id: int = 0
    reference_time: int = 0
    origin_time: int = 0
    receive_time: int = 0
    transmit_time: int = 0

    def pack(self) -> bytes:
        """Encode the message as its 48 wire bytes."""
        return _MESSAGE_FORMAT.pack(
            self.li_vn_mode,
            self.stratum,
            self.poll,
            self.precision,
            self.root_delay,
            self.root_dispersion,
            self.reference_id,
            self.reference_time,
            self.origin_time,
            self.receive_time,
            self.transmit_time,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Message":
        """Decode the first 48 bytes of ``data``; raise ``ValueError`` if too short."""
        if len(data) < MESSAGE_SIZE:
            raise ValueError(f"NTP message too short: {len(data)} bytes")
        return cls(*_MESSAGE_FORMAT.unpack_from(data))

    def version(self) -> int:
        """Return the protocol version field."""
        return (self.li_vn_mode >> 3) & 0x07

    def mode(self) -> Mode:
        """Return the mode field."""
        return Mode(self.li_vn_mode & 0x07)

    def leap(self) -> LeapIndicator:
        """Return the leap indicator field."""
        return LeapIndicator((self.li_vn_mode >> 6) & 0x03)


@dataclass
class Response:
    """Time data reported by a server together with values derived by the client.

    Durations are in nanoseconds. ``clock_offset`` is what to add to the local
    clock to obtain the server's time.
    """

    time: datetime = NTP_EPOCH
    clock_offset: int = 0
    rtt: int = 0
    precision: int = 0
    stratum: int = 0
    reference_id: int = 0
    reference_time: datetime = NTP_EPOCH
    root_delay: int = 0
    root_dispersion: int = 0
    root_distance: int = 0
    leap: LeapIndicator = LeapIndicator.NO_WARNING
    min_error: int = 0
    kiss_code: str = ""
    poll: int = 0

    def validate(self) -> None:
        """Raise :class:`NTPValidationError` if the response cannot be used."""
        if self.stratum == 0:
            raise NTPValidationError(f"kiss of death received: {self.kiss_code}")
        if self.stratum >= MAX_STRATUM:
            raise NTPValidationError("invalid stratum in response")
        if self.leap == LeapIndicator.NOT_IN_SYNC:
            raise NTPValidationError("invalid leap second")
        if self.time - self.reference_time > MAX_POLL_INTERVAL:
            raise NTPValidationError("server clock not fresh")
        if _half(self.root_delay) + self.root_dispersion > MAX_DISPERSION:
            raise NTPValidationError("invalid dispersion")
        if self.time < self.reference_time:
            raise NTPValidationError("invalid time reported")


def _rtt(org: int, rec: int, xmt: int, dst: int) -> int:
    a = ntp_time_duration(dst) - ntp_time_duration(org)
    b = ntp_time_duration(xmt) - ntp_time_duration(rec)
    return max(a - b, 0)


def _offset(org: int, rec: int, xmt: int, dst: int) -> int:
    a = ntp_time_duration(rec) - ntp_time_duration(org)
    b = ntp_time_duration(xmt) - ntp_time_duration(dst)
    return _half(a + b)


def _min_error(org: int, rec: int, xmt: int, dst: int) -> int:
    error0 = org - rec if org >= rec else 0
    error1 = xmt - dst if xmt >= dst else 0
    return ntp_time_duration(max(error0, error1))


def parse_time(message: Message, recv_time: int) -> Response:
    """Build a :class:`Response` from a server reply and the Q32.32 time it arrived."""
    org, rec, xmt = message.origin_time, message.receive_time, message.transmit_time
    response = Response(
        time=ntp_time_to_time(xmt),
        clock_offset=_offset(org, rec, xmt, recv_time),
        rtt=_rtt(org, rec, xmt, recv_time),
        precision=to_interval(message.precision),
        stratum=message.stratum,
        reference_id=message.reference_id,
        reference_time=ntp_time_to_time(message.reference_time),
        root_delay=ntp_short_duration(message.root_delay),
        root_dispersion=ntp_short_duration(message.root_dispersion),
        leap=message.leap(),
        min_error=_min_error(org, rec, xmt, recv_time),
        poll=to_interval(message.poll),
    )
    response.root_distance = _half(response.rtt + response.root_delay) + response.root_dispersion
    if response.stratum == 0:
        response.kiss_code = kiss_code(response.reference_id)
    return response