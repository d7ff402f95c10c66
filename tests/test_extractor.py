"""Tests for the server log event extractor."""
import math
import pytest
from datetime import datetime
from valheim_watcher.parser import (
    EventExtractor,
    extract,
    DateTimeParseError,
    IntegerParseError,
    FloatParseError,
    ParseError,
)
from valheim_watcher.event_models import (
    I64_MAX,
    I64_MIN,
    CharacterActivated,
    CharacterDeactivated,
    PeerConnected,
    PeerDisconnected,
    PeerRejected,
    WorldPersisted,
)


@pytest.fixture
def extractor():
    return EventExtractor()


def test_line_without_envelope_is_ignored(extractor):
    """Lines without the date prefix carry no event and raise nothing."""
    assert extractor.extract("") is None
    assert extractor.extract("Mono path[0] = '/valheim/valheim_server_Data/Managed'") is None
    assert extractor.extract("(Filename: ./Runtime/Export/Debug/Debug.bindings.h Line: 35)") is None


def test_uninteresting_line_is_ignored(extractor):
    """Dated lines that match no recognised shape carry no event."""
    assert extractor.extract("03/11/2021 19:36:10: Starting to load scene:start") is None


def test_parse_connection(extractor):
    event = extractor.extract("03/11/2021 19:47:02: Got connection SteamID 76561199036446150")
    assert isinstance(event, PeerConnected)
    assert event.peer_id == 76561199036446150
    assert event.timestamp == datetime(2021, 3, 11, 19, 47, 2)


def test_parse_disconnection(extractor):
    event = extractor.extract("03/11/2021 20:01:44: Closing socket 76561199036446150")
    assert isinstance(event, PeerDisconnected)
    assert event.peer_id == 76561199036446150


def test_parse_wrong_password(extractor):
    event = extractor.extract("03/16/2021 13:45:19: Peer 76561197969472572 has wrong password")
    assert isinstance(event, PeerRejected)
    assert event.peer_id == 76561197969472572


def test_parse_world_save(extractor):
    event = extractor.extract("03/11/2021 19:50:00: World saved ( 12.345ms )")
    assert isinstance(event, WorldPersisted)
    assert event.duration_ms == pytest.approx(12.345)


def test_parse_world_save_integer_duration(extractor):
    event = extractor.extract("03/11/2021 19:50:00: World saved ( 12ms )")
    assert isinstance(event, WorldPersisted)
    assert event.duration_ms == 12.0


@pytest.mark.parametrize("timing, expected", [
    ("inf", math.inf),
    ("-Infinity", -math.inf),
    ("1e3", 1000.0),
])
def test_parse_world_save_special_durations(extractor, timing, expected):
    event = extractor.extract(f"03/11/2021 19:50:00: World saved ( {timing}ms )")
    assert event.duration_ms == expected


def test_parse_world_save_nan_duration(extractor):
    event = extractor.extract("03/11/2021 19:50:00: World saved ( NaNms )")
    assert math.isnan(event.duration_ms)


def test_parse_character_spawn(extractor):
    event = extractor.extract("03/11/2021 19:47:10: Got character ZDOID from Bjorn : 120:45")
    assert isinstance(event, CharacterActivated)
    assert event.character_name == "Bjorn"
    assert event.coordinates == (120, 45)


def test_parse_character_negative_coordinates(extractor):
    event = extractor.extract("03/11/2021 19:47:10: Got character ZDOID from Bjorn : -2056:-7")
    assert isinstance(event, CharacterActivated)
    assert event.coordinates == (-2056, -7)


def test_parse_character_death(extractor):
    """The (0, 0) location means the character was removed."""
    event = extractor.extract("03/11/2021 19:55:31: Got character ZDOID from Bjorn : 0:0")
    assert isinstance(event, CharacterDeactivated)
    assert event.character_name == "Bjorn"
    assert event.coordinates == (0, 0)


@pytest.mark.parametrize("x, y", [
    (0, 1), (1, 0), (0, -1), (-1, 0), (5, 5), (-3, 9),
    (0, I64_MAX), (I64_MIN, 0), (I64_MIN, I64_MAX), (I64_MAX, 0), (0, I64_MIN),
])
def test_only_origin_is_death(extractor, x, y):
    event = extractor.extract(f"03/11/2021 19:55:31: Got character ZDOID from Bjorn : {x}:{y}")
    assert isinstance(event, CharacterActivated)


def test_character_name_with_spaces(extractor):
    event = extractor.extract("03/11/2021 19:47:10: Got character ZDOID from Erik the Red : 7:8")
    assert event.character_name == "Erik the Red"


def test_character_location_takes_priority(extractor):
    """A character named like another shape still parses as a character."""
    event = extractor.extract(
        "03/11/2021 19:47:10: Got character ZDOID from Got connection SteamID 1 : 3:4"
    )
    assert isinstance(event, CharacterActivated)
    assert event.character_name == "Got connection SteamID 1"


def test_pattern_priority_order(extractor):
    assert extractor.pattern_names == [
        "character_location",
        "world_save",
        "peer_connected",
        "peer_disconnected",
        "wrong_password",
    ]


def test_trailing_newline_is_accepted(extractor):
    event = extractor.extract("03/11/2021 19:47:02: Got connection SteamID 42\n")
    assert isinstance(event, PeerConnected)
    assert event.peer_id == 42


def test_malformed_date_raises_datetime_error(extractor):
    with pytest.raises(DateTimeParseError) as exc_info:
        extractor.extract("99/99/9999 00:00:00: World saved ( 12ms )")
    assert exc_info.value.kind == "datetime"
    assert "99/99/9999" in exc_info.value.value


def test_malformed_time_raises_datetime_error(extractor):
    with pytest.raises(DateTimeParseError):
        extractor.extract("03/11/2021 25:61:00: Got connection SteamID 42")


def test_invalid_date_on_uninteresting_line_still_fails(extractor):
    """The timestamp is parsed before any sub-pattern is tried."""
    with pytest.raises(DateTimeParseError):
        extractor.extract("02/30/2021 10:00:00: Starting to load scene:start")


def test_malformed_coordinates_raise_integer_error(extractor):
    with pytest.raises(IntegerParseError):
        extractor.extract("03/11/2021 19:47:10: Got character ZDOID from Bjorn : abc:45")


def test_missing_coordinate_raises_integer_error(extractor):
    with pytest.raises(IntegerParseError):
        extractor.extract("03/11/2021 19:47:10: Got character ZDOID from Bjorn : 120")


def test_coordinate_out_of_range_raises_integer_error(extractor):
    with pytest.raises(IntegerParseError):
        extractor.extract(f"03/11/2021 19:47:10: Got character ZDOID from Bjorn : {2**63}:1")


def test_peer_id_out_of_range_raises_integer_error(extractor):
    with pytest.raises(IntegerParseError):
        extractor.extract(f"03/11/2021 19:47:02: Got connection SteamID {2**64}")


def test_largest_peer_id_is_accepted(extractor):
    event = extractor.extract(f"03/11/2021 19:47:02: Got connection SteamID {2**64 - 1}")
    assert event.peer_id == 2**64 - 1


def test_malformed_duration_raises_float_error(extractor):
    with pytest.raises(FloatParseError) as exc_info:
        extractor.extract("03/11/2021 19:50:00: World saved ( fast ms )")
    assert exc_info.value.kind == "float"


def test_parse_errors_share_base_class():
    assert issubclass(DateTimeParseError, ParseError)
    assert issubclass(IntegerParseError, ParseError)
    assert issubclass(FloatParseError, ParseError)


def test_extract_all_skips_failures(extractor):
    lines = [
        "03/11/2021 19:47:02: Got connection SteamID 1",
        "99/99/9999 00:00:00: World saved ( 12ms )",
        "garbage",
        "03/11/2021 19:47:10: Got character ZDOID from Bjorn : 120:45",
    ]
    results = list(extractor.extract_all(lines))
    assert [line_no for line_no, _ in results] == [1, 4]
    assert isinstance(results[0][1], PeerConnected)
    assert isinstance(results[1][1], CharacterActivated)


def test_module_level_extract():
    event = extract("03/11/2021 19:47:02: Got connection SteamID 7")
    assert isinstance(event, PeerConnected)
