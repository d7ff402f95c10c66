"""Correlates peer connections with character spawns."""
import threading
import structlog
from collections import deque
from pydantic import BaseModel, Field
from ..event_models import (
    CharacterActivated,
    CharacterDeactivated,
    CharacterDied,
    Event,
    Notification,
    PeerConnected,
    PeerDeparted,
    PeerDisconnected,
    PeerPaired,
    PeerRejected,
    PeerRejectedNotice,
    WorldPersisted,
    WorldSaved,
)

log = structlog.get_logger()


class IdentitySnapshot(BaseModel):
    """Point-in-time copy of the correlator state."""
    identities: dict[int, str] = Field(default_factory=dict)
    pending_peers: list[int] = Field(default_factory=list)
    pending_characters: list[str] = Field(default_factory=list)


class IdentityCorrelator:
    """
    Maintains the live peer_id -> character name table.

    Connection and spawn events are announced separately and in no fixed
    relative order. One-sided events wait in FIFO queues and the oldest
    pending peer is bound to the oldest pending character whenever both
    queues are non-empty. The log carries no session token, so concurrent
    logins that interleave can be mispaired.

    Every public method takes the state lock for its whole duration.
    `apply` only returns notifications; callers deliver them after the
    lock has been released.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending_peers: deque[int] = deque()
        self._pending_characters: deque[str] = deque()
        self._identities: dict[int, str] = {}

    def apply(self, event: Event) -> list[Notification]:
        """
        Apply one extracted event to the correlation state.

        Events must be applied in the order they were extracted. Anomalous
        input (duplicate disconnects, unknown peers, unmatched characters)
        is absorbed, never raised.

        Args:
            event: The next event from the log stream

        Returns:
            Notifications produced by this event, in emission order
        """
        with self._lock:
            notifications: list[Notification] = []

            if isinstance(event, PeerConnected):
                log.info("peer.connected", peer_id=event.peer_id)
                self._pending_peers.append(event.peer_id)
                self._reconcile(notifications)

            elif isinstance(event, PeerRejected):
                self._discard_pending_peer(event.peer_id)
                log.info("peer.rejected", peer_id=event.peer_id)
                notifications.append(PeerRejectedNotice(peer_id=event.peer_id))

            elif isinstance(event, PeerDisconnected):
                character = self._identities.pop(event.peer_id, None)
                if character is not None:
                    log.info("peer.disconnected", peer_id=event.peer_id, character_name=character)
                    notifications.append(PeerDeparted(peer_id=event.peer_id, character_name=character))
                else:
                    # The server logs some disconnects twice
                    log.debug("peer.disconnect_ignored", peer_id=event.peer_id)

            elif isinstance(event, WorldPersisted):
                log.info("world.saved", timestamp=event.timestamp.isoformat(), duration_ms=event.duration_ms)
                notifications.append(WorldSaved(duration_ms=event.duration_ms, timestamp=event.timestamp))

            elif isinstance(event, CharacterActivated):
                log.info(
                    "character.spawned",
                    character_name=event.character_name,
                    peer_id=self._lookup_peer(event.character_name),
                )
                if event.character_name not in self._identities.values():
                    self._pending_characters.append(event.character_name)
                    self._reconcile(notifications)

            elif isinstance(event, CharacterDeactivated):
                peer_id = self._lookup_peer(event.character_name)
                log.info("character.died", character_name=event.character_name, peer_id=peer_id)
                notifications.append(CharacterDied(character_name=event.character_name, peer_id=peer_id))

            return notifications

    def lookup_peer(self, character_name: str) -> int | None:
        """
        Find the peer currently bound to a character.

        Returns:
            The peer id, or None when no bound peer plays this character
        """
        with self._lock:
            return self._lookup_peer(character_name)

    def character_for(self, peer_id: int) -> str | None:
        """Get the character bound to a peer, if any."""
        with self._lock:
            return self._identities.get(peer_id)

    def snapshot(self) -> IdentitySnapshot:
        """Copy the identity table and both pending queues."""
        with self._lock:
            return IdentitySnapshot(
                identities=dict(self._identities),
                pending_peers=list(self._pending_peers),
                pending_characters=list(self._pending_characters),
            )

    def reset(self):
        """Forget all identities and pending entries."""
        with self._lock:
            self._pending_peers.clear()
            self._pending_characters.clear()
            self._identities.clear()
            log.info("identities.reset")

    def _reconcile(self, notifications: list[Notification]):
        """Pair pending peers with pending characters, oldest first."""
        while self._pending_peers and self._pending_characters:
            peer_id = self._pending_peers.popleft()
            character = self._pending_characters.popleft()
            self._identities[peer_id] = character
            log.info("identity.paired", peer_id=peer_id, character_name=character)
            notifications.append(PeerPaired(peer_id=peer_id, character_name=character))

    def _discard_pending_peer(self, peer_id: int):
        remaining = [p for p in self._pending_peers if p != peer_id]
        if len(remaining) != len(self._pending_peers):
            self._pending_peers = deque(remaining)

    def _lookup_peer(self, character_name: str) -> int | None:
        # Linear scan; the table holds at most a few dozen peers
        for peer_id, character in self._identities.items():
            if character == character_name:
                return peer_id
        return None
