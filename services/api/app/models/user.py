from __future__ import annotations

from pydantic import BaseModel, Field


class UserRegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    # e.g. FARMER, DISTRIBUTOR, RESTAURANT; stored as ROLE_<NAME>.
    role: str = Field(..., min_length=1, max_length=59)


class UserOut(BaseModel):
    id: int
    username: str
    role: str
    created_at: str
