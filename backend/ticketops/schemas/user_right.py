from pydantic import BaseModel
from typing import List, Optional


class SiteRights(BaseModel):
    site_id: str
    rights: List[str] = []


class UserRightsUpdate(BaseModel):
    global_rights: List[str] = []
    site_rights: List[SiteRights] = []


class UserRightsResponse(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    role: Optional[str] = None
    global_rights: List[str] = []
    site_rights: List[SiteRights] = []
