from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal

WorkflowTrigger = Literal["email_received", "manual_request", "scheduled", "calendar_event"]
WorkflowActionType = Literal["email_triage", "task_creation", "calendar_suggestion", "memory_storage", "response_draft"]
Priority = Literal["high", "medium", "low"]

AgentRole = Literal[
    "orchestrator",
    "email_analyzer",
    "task_manager",
    "calendar_coordinator",
    "user_interface",
    "memory_manager",
]

class WorkflowContext(BaseModel):
    user_id: str
    trigger: str
    data: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None

class WorkflowAction(BaseModel):
    type: WorkflowActionType
    payload: Dict[str, Any] = Field(default_factory=dict)
    confidence: float
    priority: Priority = "medium"
    requires_approval: bool = False

class WorkflowResult(BaseModel):
    actions: List[WorkflowAction] = Field(default_factory=list)
    confidence: float = 0.0
    execution_time: float = 0.0  # milliseconds
    errors: Optional[List[str]] = None

class AgentMessage(BaseModel):
    role: AgentRole
    content: str
    metadata: Optional[Dict[str, Any]] = None

class AgenticAction(BaseModel):
    agent: AgentRole
    action: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    confidence: float
    requires_approval: bool = False
