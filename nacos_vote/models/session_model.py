from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional


class Session(BaseModel):
    """Signed-in voter, as kept under `user` in browser storage."""
    model_config = ConfigDict(populate_by_name=True)

    institutional_email: EmailStr = Field(..., alias="institutionalEmail")
    session_token: str = Field(..., alias="sessionToken")
    remaining_positions: List[str] = Field(default_factory=list, alias="remainingPositions")
    device_id: Optional[str] = Field(None, alias="deviceId")
    # epoch seconds; the wizard expires once the clock passes it
    expires_at: float = Field(..., alias="expiresAt")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
