from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class PositionCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=100)

class PositionUpdate(BaseModel):
    title: str = Field(..., min_length=2, max_length=100)

class PositionResponse(BaseModel):
    id: int
    title: str
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
