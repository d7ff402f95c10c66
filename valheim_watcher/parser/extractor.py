"""Turns single server log lines into typed events."""
import re
import structlog
from datetime import datetime
from typing import Callable, Iterable, Iterator
from ..event_models import (
    DEATH_COORDINATES,
    I64_MAX,
    I64_MIN,
    U64_MAX,
    CharacterActivated,
    CharacterDeactivated,
    Event,
    PeerConnected,
    PeerDisconnected,
    PeerRejected,
    WorldPersisted,
)
from .errors import DateTimeParseError, FloatParseError, IntegerParseError, ParseError

log = structlog.get_logger()

LOG_LINE_PATTERN = r"(?P<day>\d{2}/\d{2}/\d{4})\s(?P<time>\d{2}:\d{2}:\d{2}):\s(?P<loginfo>.*)"
CHARACTER_LOCATION_PATTERN = r"Got\scharacter\sZDOID\sfrom\s(?P<charname>.*)\s:\s(?P<location>.*)$"
WORLD_SAVE_PATTERN = r"World\ssaved\s\(\s(?P<timing>.+)ms\s\)"
PEER_CONNECTED_PATTERN = r"Got\sconnection\sSteamID\s(?P<steamid>\d+)$"
PEER_DISCONNECTED_PATTERN = r"Closing\ssocket\s(?P<steamid>\d+)$"
WRONG_PASSWORD_PATTERN = r"Peer\s(?P<steamid>\d+)\shas\swrong\spassword$"

_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"\+?[0-9]+")
_FLOAT = re.compile(
    r"[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


class EventExtractor:
    """
    Stateless extractor for the recognised server log line shapes.

    Patterns are compiled once per instance. Sub-patterns are tried in a
    fixed priority order and the first match wins; the character location
    shape comes first because it is the most specific.
    """

    def __init__(self):
        self._envelope = re.compile(LOG_LINE_PATTERN)
        self._matchers: list[tuple[str, re.Pattern, Callable]] = [
            ("character_location", re.compile(CHARACTER_LOCATION_PATTERN), self._character_event),
            ("world_save", re.compile(WORLD_SAVE_PATTERN), self._world_save_event),
            ("peer_connected", re.compile(PEER_CONNECTED_PATTERN), self._peer_event(PeerConnected)),
            ("peer_disconnected", re.compile(PEER_DISCONNECTED_PATTERN), self._peer_event(PeerDisconnected)),
            ("wrong_password", re.compile(WRONG_PASSWORD_PATTERN), self._peer_event(PeerRejected)),
        ]

    @property
    def pattern_names(self) -> list[str]:
        """Sub-pattern names in priority order."""
        return [name for name, _, _ in self._matchers]

    def extract(self, line: str) -> Event | None:
        """
        Extract the event carried by a log line.

        Args:
            line: One line of server output, with or without trailing newline

        Returns:
            The typed event, or None when the line carries no recognised event

        Raises:
            DateTimeParseError: Line prefix has impossible calendar values
            IntegerParseError: A peer id or coordinate is not a valid integer
            FloatParseError: A save duration is not a valid number
        """
        line = line.rstrip("\r\n")
        envelope = self._envelope.search(line)
        if envelope is None:
            return None

        timestamp = self._parse_timestamp(line, envelope["day"], envelope["time"])
        info = envelope["loginfo"]

        for _name, pattern, build in self._matchers:
            match = pattern.search(info)
            if match is not None:
                return build(line, timestamp, match)

        return None

    def extract_all(self, lines: Iterable[str]) -> Iterator[tuple[int, Event]]:
        """
        Extract events from a sequence of lines, skipping malformed ones.

        Parse failures are logged and the line is skipped; the stream
        always runs to the end.

        Yields:
            (line_number, event) tuples, line numbers starting at 1
        """
        for line_no, line in enumerate(lines, start=1):
            try:
                event = self.extract(line)
            except ParseError as e:
                log.warning("line.parse_failed", line_no=line_no, error=str(e), error_kind=e.kind)
                continue
            if event is not None:
                yield line_no, event

    @staticmethod
    def _parse_timestamp(line: str, day: str, time_of_day: str) -> datetime:
        try:
            return datetime.strptime(f"{day} {time_of_day}", "%m/%d/%Y %H:%M:%S")
        except ValueError:
            raise DateTimeParseError(line, f"{day} {time_of_day}") from None

    @staticmethod
    def _parse_int(line: str, value: str, pattern: re.Pattern, low: int, high: int) -> int:
        if not pattern.fullmatch(value):
            raise IntegerParseError(line, value)
        number = int(value)
        if not low <= number <= high:
            raise IntegerParseError(line, value)
        return number

    def _character_event(self, line: str, timestamp: datetime, match: re.Match) -> Event:
        """Build an activation, or a deactivation for the (0, 0) sentinel."""
        parts = match["location"].split(":")
        if len(parts) != 2:
            raise IntegerParseError(line, match["location"])
        x = self._parse_int(line, parts[0], _SIGNED, I64_MIN, I64_MAX)
        y = self._parse_int(line, parts[1], _SIGNED, I64_MIN, I64_MAX)

        model = CharacterDeactivated if (x, y) == DEATH_COORDINATES else CharacterActivated
        return model(timestamp=timestamp, character_name=match["charname"], coordinates=(x, y))

    def _world_save_event(self, line: str, timestamp: datetime, match: re.Match) -> Event:
        timing = match["timing"]
        if not _FLOAT.fullmatch(timing):
            raise FloatParseError(line, timing)
        return WorldPersisted(timestamp=timestamp, duration_ms=float(timing))

    def _peer_event(self, model: type) -> Callable:
        def build(line: str, timestamp: datetime, match: re.Match) -> Event:
            peer_id = self._parse_int(line, match["steamid"], _UNSIGNED, 0, U64_MAX)
            return model(timestamp=timestamp, peer_id=peer_id)
        return build


_default_extractor = EventExtractor()


def extract(line: str) -> Event | None:
    """Extract an event from a line with a shared default extractor."""
    return _default_extractor.extract(line)
