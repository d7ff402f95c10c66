from fastapi import APIRouter, HTTPException, Query
from .schemas import (
    Identity,
    IdentityListResponse,
    PendingResponse,
    NotificationListResponse,
)
from ..pipeline import PipelineStats
from ..services.notification_bus import bus
from ..services.watcher import watcher

router = APIRouter(prefix="/v1")


@router.get("/identities", response_model=IdentityListResponse)
async def list_identities():
    snapshot = watcher.correlator.snapshot()
    identities = [
        Identity(peer_id=peer_id, character_name=name)
        for peer_id, name in sorted(snapshot.identities.items())
    ]
    return IdentityListResponse(total=len(identities), identities=identities)


@router.get("/identities/by-name/{character_name}", response_model=Identity)
async def get_identity_by_name(character_name: str):
    peer_id = watcher.correlator.lookup_peer(character_name)
    if peer_id is None:
        raise HTTPException(404, detail=f"No connected peer plays {character_name}")
    return Identity(peer_id=peer_id, character_name=character_name)


@router.get("/identities/{peer_id}", response_model=Identity)
async def get_identity(peer_id: int):
    name = watcher.correlator.character_for(peer_id)
    if name is None:
        raise HTTPException(404, detail=f"Peer {peer_id} is not bound to a character")
    return Identity(peer_id=peer_id, character_name=name)


@router.get("/pending", response_model=PendingResponse)
async def list_pending():
    snapshot = watcher.correlator.snapshot()
    return PendingResponse(peers=snapshot.pending_peers, characters=snapshot.pending_characters)


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(limit: int = Query(25, ge=1, le=1000)):
    notifications = [n for n in await bus.list_recent(limit=limit)]
    return NotificationListResponse(total=len(notifications), notifications=notifications)


@router.get("/pipeline", response_model=PipelineStats)
async def pipeline_status():
    return watcher.stats or PipelineStats()
