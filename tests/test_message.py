from datetime import datetime, timedelta, timezone

import pytest

from sing.ntp.message import (
    MESSAGE_SIZE,
    NANOS_PER_SECOND,
    NTP_EPOCH,
    LeapIndicator,
    Message,
    Mode,
    NTPValidationError,
    Response,
    kiss_code,
    ntp_short_duration,
    ntp_time_duration,
    ntp_time_to_time,
    parse_time,
    to_interval,
    to_ntp_time,
)

ONE_SECOND = 1 << 32
BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _header(leap, version, mode):
    return (leap << 6) | (version << 3) | mode


def test_pack_unpack_round_trip():
    message = Message(
        li_vn_mode=_header(LeapIndicator.ADD_SECOND, 4, Mode.SERVER),
        stratum=2,
        poll=6,
        precision=-20,
        root_delay=123,
        root_dispersion=456,
        reference_id=789,
        reference_time=to_ntp_time(BASE),
        origin_time=to_ntp_time(BASE) + 1,
        receive_time=to_ntp_time(BASE) + 2,
        transmit_time=to_ntp_time(BASE) + 3,
    )
    data = message.pack()
    assert len(data) == MESSAGE_SIZE
    assert Message.unpack(data) == message


def test_unpack_ignores_trailing_bytes():
    message = Message(stratum=3, transmit_time=42)
    assert Message.unpack(message.pack() + b"extra") == message


def test_unpack_rejects_short_data():
    with pytest.raises(ValueError):
        Message.unpack(bytes(MESSAGE_SIZE - 1))


def test_client_request_first_byte():
    message = Message(li_vn_mode=_header(LeapIndicator.NOT_IN_SYNC, 4, Mode.CLIENT))
    assert message.pack()[0] == 0xE3
    assert message.leap() == LeapIndicator.NOT_IN_SYNC
    assert message.version() == 4
    assert message.mode() == Mode.CLIENT


def test_ntp_time_duration_whole_and_half_seconds():
    assert ntp_time_duration(ONE_SECOND) == NANOS_PER_SECOND
    assert ntp_time_duration(ONE_SECOND >> 1) == NANOS_PER_SECOND // 2
    assert ntp_time_duration(0) == 0


def test_ntp_short_duration_one_second():
    assert ntp_short_duration(1 << 16) == NANOS_PER_SECOND
    assert ntp_short_duration(1 << 15) == NANOS_PER_SECOND // 2


def test_epoch_is_zero():
    assert to_ntp_time(NTP_EPOCH) == 0
    assert ntp_time_to_time(0) == NTP_EPOCH


def test_unix_epoch_offset():
    unix_epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert to_ntp_time(unix_epoch) >> 32 == 2208988800


@pytest.mark.parametrize(
    "moment",
    [
        BASE,
        datetime(2023, 6, 15, 12, 30, 45, 123456, tzinfo=timezone.utc),
        datetime(2000, 2, 29, 23, 59, 59, 999999, tzinfo=timezone.utc),
    ],
)
def test_time_round_trip(moment):
    assert ntp_time_to_time(to_ntp_time(moment)) == moment


def test_naive_time_is_taken_as_utc():
    naive = datetime(2023, 6, 15, 12, 30, 45)
    assert to_ntp_time(naive) == to_ntp_time(naive.replace(tzinfo=timezone.utc))


def test_to_interval_zero_is_one_second():
    assert to_interval(0) == NANOS_PER_SECOND


@pytest.mark.parametrize("exponent", range(0, 6))
def test_to_interval_doubles(exponent):
    assert to_interval(exponent + 1) == 2 * to_interval(exponent)


def test_to_interval_negative_halves():
    assert to_interval(-1) * 2 == to_interval(0)
    assert to_interval(-128) == 0


def test_kiss_code_printable():
    assert kiss_code(int.from_bytes(b"RATE", "big")) == "RATE"


def test_kiss_code_unprintable():
    assert kiss_code(0) == ""
    assert kiss_code(int.from_bytes(b"AB\x01C", "big")) == ""


def test_parse_time_symmetric_exchange():
    t = to_ntp_time(BASE)
    message = Message(
        li_vn_mode=_header(LeapIndicator.NO_WARNING, 4, Mode.SERVER),
        stratum=2,
        precision=-20,
        poll=6,
        reference_time=t,
        origin_time=t,
        receive_time=t + ONE_SECOND,
        transmit_time=t + ONE_SECOND,
    )
    response = parse_time(message, t + 2 * ONE_SECOND)
    assert response.clock_offset == 0
    assert response.rtt == 2 * NANOS_PER_SECOND
    assert response.min_error == 0
    assert response.root_distance == NANOS_PER_SECOND
    assert response.time == BASE + timedelta(seconds=1)
    assert response.reference_time == BASE
    assert response.precision == to_interval(-20)
    assert response.poll == to_interval(6)
    assert response.stratum == 2
    assert response.kiss_code == ""
    response.validate()
    assert response.leap == LeapIndicator.NO_WARNING


def test_parse_time_server_ahead():
    t = to_ntp_time(BASE)
    message = Message(
        stratum=1,
        reference_time=t,
        origin_time=t,
        receive_time=t + 10 * ONE_SECOND,
        transmit_time=t + 10 * ONE_SECOND,
    )
    response = parse_time(message, t)
    assert response.clock_offset == 10 * NANOS_PER_SECOND
    assert response.rtt == 0
    assert response.min_error == 10 * NANOS_PER_SECOND


def test_parse_time_causality_violation():
    t = to_ntp_time(BASE)
    message = Message(
        stratum=1,
        origin_time=t + 3 * ONE_SECOND,
        receive_time=t + ONE_SECOND,
        transmit_time=t + ONE_SECOND,
    )
    response = parse_time(message, t + 4 * ONE_SECOND)
    assert response.min_error == 2 * NANOS_PER_SECOND
    assert response.rtt >= 0


def test_parse_time_kiss_of_death():
    message = Message(stratum=0, reference_id=int.from_bytes(b"DENY", "big"))
    response = parse_time(message, to_ntp_time(BASE))
    assert response.kiss_code == "DENY"
    with pytest.raises(NTPValidationError, match="kiss of death received: DENY"):
        response.validate()


def _valid(**changes):
    values = dict(time=BASE, reference_time=BASE - timedelta(seconds=60), stratum=2)
    values.update(changes)
    return Response(**values)


def test_validate_accepts_good_response():
    response = _valid()
    assert response.validate() is None
    assert response.stratum == 2


@pytest.mark.parametrize(
    "changes, pattern",
    [
        ({"stratum": 16}, "invalid stratum"),
        ({"leap": LeapIndicator.NOT_IN_SYNC}, "invalid leap second"),
        ({"reference_time": BASE - timedelta(days=2)}, "not fresh"),
        ({"root_dispersion": 17 * NANOS_PER_SECOND}, "invalid dispersion"),
        ({"root_delay": 40 * NANOS_PER_SECOND}, "invalid dispersion"),
        ({"reference_time": BASE + timedelta(seconds=1)}, "invalid time reported"),
    ],
)
def test_validate_rejects(changes, pattern):
    with pytest.raises(NTPValidationError, match=pattern):
        _valid(**changes).validate()