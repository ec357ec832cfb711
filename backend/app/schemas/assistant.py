from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime

from app.schemas.workflow import WorkflowTrigger

class ActionRecord(BaseModel):
    id: int
    action_type: str
    payload: Optional[Dict[str, Any]] = None
    confidence: float = 0.0
    executed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ExecuteActionRequest(BaseModel):
    action_type: str = Field(..., alias="actionType", min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True

class MemorySearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    top_k: int = Field(5, alias="topK", ge=1, le=50)

    class Config:
        populate_by_name = True

class WorkflowRequest(BaseModel):
    trigger: WorkflowTrigger
    data: Dict[str, Any] = Field(default_factory=dict)

class AgentRequest(BaseModel):
    message: str = Field(..., min_length=1)
    context: Optional[Dict[str, Any]] = None
