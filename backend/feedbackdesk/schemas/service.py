from __future__ import annotations
from pydantic import BaseModel, ConfigDict


class ServiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    description: str
    unit_price: int          # cents per 500 words
    turnaround_hours: int
    is_express: bool = False


class ServiceCreate(BaseModel):
    name: str
    description: str
    unit_price: int
    turnaround_hours: int
    is_express: bool = False
