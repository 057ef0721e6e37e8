from typing import List, Optional
from pydantic import BaseModel

class OSInfo(BaseModel):
    id: str
    id_like: List[str] = []
    name: Optional[str] = None
    version_id: Optional[str] = None

class DistroInfo(BaseModel):
    id: str
    family: str  # debian or arch
    package_manager: str  # apt or pacman
