from __future__ import annotations

from pydantic import BaseModel, Field


class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    origin: str = Field(..., min_length=1)
    initial_location: str = Field(..., min_length=1)


class EventLogRequest(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=64)
    description: str = ""
    location: str = Field(..., min_length=1)


class ProductHandoverRequest(BaseModel):
    new_owner_user_id: int
    handover_location: str = Field(..., min_length=1)
    handover_description: str = ""


class ProductHandoverResponse(BaseModel):
    message: str
    event_id: int
    owner_user_id: int


class QrCodeDataResponse(BaseModel):
    qr_code_data: str
