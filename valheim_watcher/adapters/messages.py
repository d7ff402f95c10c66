"""Human readable text for notifications."""
from ..event_models import (
    CharacterDied,
    Notification,
    PeerDeparted,
    PeerPaired,
    PeerRejectedNotice,
    ServerStatus,
    WorldSaved,
)

STEAM_PROFILE_URL = "https://steamcommunity.com/profiles/{peer_id}"


def profile_url(peer_id: int) -> str:
    return STEAM_PROFILE_URL.format(peer_id=peer_id)


def render_message(notification: Notification) -> str:
    """
    Render a notification as a chat message.

    Args:
        notification: Any notification produced by the watcher

    Returns:
        Message text, possibly spanning several lines
    """
    if isinstance(notification, PeerPaired):
        return f"{notification.character_name} has connected.\n{profile_url(notification.peer_id)}"
    if isinstance(notification, PeerDeparted):
        return f"{notification.character_name} has disconnected.\n{profile_url(notification.peer_id)}"
    if isinstance(notification, PeerRejectedNotice):
        return f"A user gave the wrong password.\n{profile_url(notification.peer_id)}"
    if isinstance(notification, CharacterDied):
        return f"{notification.character_name} died an uneventful death. GGWP"
    if isinstance(notification, WorldSaved):
        return f"World saved at {notification.timestamp.isoformat(sep=' ')}, {notification.duration_ms}ms"
    if isinstance(notification, ServerStatus):
        if notification.status == "started":
            return "Valheim server started"
        return "Valheim server shutting down"
    raise TypeError(f"Unsupported notification: {type(notification).__name__}")
