from pydantic import BaseModel, ConfigDict
from typing import Optional

# Profiles are owned by the learning platform; this service only reads them.
class ProfileRead(BaseModel):
    id: str
    username: str
    display_name: Optional[str] = None
    level: int = 1
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
