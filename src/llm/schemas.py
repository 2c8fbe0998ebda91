from __future__ import annotations
from typing import Optional, List
from pydantic import BaseModel, Field

class BreakdownItem(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    duration: int = Field(default=30)

class BreakdownResult(BaseModel):
    subtasks: List[BreakdownItem] = Field(default_factory=list)
