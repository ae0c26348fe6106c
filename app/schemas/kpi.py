from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class KpiCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    weight: int = Field(..., ge=1, le=100)

class KpiUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    weight: Optional[int] = Field(None, ge=1, le=100)

class KpiResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    category: Optional[str]
    weight: int
    is_removed: bool
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
