"""Typed events extracted from server log lines, and the notifications
the correlator produces from them."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Literal, Union
import uuid, time

U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

PeerId = Annotated[int, Field(ge=0, le=U64_MAX, description="Steam ID of the remote peer")]
Coordinate = Annotated[int, Field(ge=I64_MIN, le=I64_MAX)]

# Location the server reports for a character that no longer exists
DEATH_COORDINATES = (0, 0)


class LogEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Date and time from the line prefix")


class PeerConnected(LogEvent):
    kind: Literal["peer_connected"] = "peer_connected"
    peer_id: PeerId


class PeerDisconnected(LogEvent):
    kind: Literal["peer_disconnected"] = "peer_disconnected"
    peer_id: PeerId


class PeerRejected(LogEvent):
    kind: Literal["peer_rejected"] = "peer_rejected"
    peer_id: PeerId


class WorldPersisted(LogEvent):
    kind: Literal["world_persisted"] = "world_persisted"
    duration_ms: float


class CharacterLocated(LogEvent):
    character_name: str
    coordinates: tuple[Coordinate, Coordinate]


class CharacterActivated(CharacterLocated):
    kind: Literal["character_activated"] = "character_activated"


class CharacterDeactivated(CharacterLocated):
    kind: Literal["character_deactivated"] = "character_deactivated"


Event = Annotated[
    Union[
        PeerConnected,
        PeerDisconnected,
        PeerRejected,
        WorldPersisted,
        CharacterActivated,
        CharacterDeactivated,
    ],
    Field(discriminator="kind"),
]

event_adapter = TypeAdapter(Event)


class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    ts: float = Field(default_factory=lambda: time.time())


class PeerPaired(Notice):
    """A pending peer was bound to a pending character."""
    kind: Literal["peer_paired"] = "peer_paired"
    peer_id: PeerId
    character_name: str


class PeerRejectedNotice(Notice):
    kind: Literal["peer_rejected"] = "peer_rejected"
    peer_id: PeerId


class PeerDeparted(Notice):
    kind: Literal["peer_disconnected"] = "peer_disconnected"
    peer_id: PeerId
    character_name: str


class WorldSaved(Notice):
    kind: Literal["world_saved"] = "world_saved"
    duration_ms: float
    timestamp: datetime


class CharacterDied(Notice):
    kind: Literal["character_died"] = "character_died"
    character_name: str
    # None when no connected peer is known to play this character
    peer_id: PeerId | None = None


class ServerStatus(Notice):
    kind: Literal["server_status"] = "server_status"
    status: Literal["started", "stopping"]


Notification = Annotated[
    Union[
        PeerPaired,
        PeerRejectedNotice,
        PeerDeparted,
        WorldSaved,
        CharacterDied,
        ServerStatus,
    ],
    Field(discriminator="kind"),
]

notification_adapter = TypeAdapter(Notification)
