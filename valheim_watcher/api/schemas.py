from pydantic import BaseModel
from typing import List
from ..event_models import Notification

class Identity(BaseModel):
    peer_id: int
    character_name: str

class IdentityListResponse(BaseModel):
    total: int
    identities: List[Identity]

class PendingResponse(BaseModel):
    peers: List[int]
    characters: List[str]

class NotificationListResponse(BaseModel):
    total: int
    notifications: List[Notification]
