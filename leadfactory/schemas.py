from pydantic import BaseModel, EmailStr, Field
from typing import Any, Dict, List, Optional
from leadfactory.schema import ActivityType, Channel, CRMStage, IntakeData

class WorkspaceCreate(BaseModel):
    intake: IntakeData
    name: Optional[str] = None

class ContactIn(BaseModel):
    email: Optional[EmailStr] = None
    phone_e164: Optional[str] = Field(None, pattern=r"^\+[1-9]\d{7,14}$")

class ArtifactUpdate(BaseModel):
    content: Any

class SnapshotIn(BaseModel):
    note: str = ""

class CRMStageIn(BaseModel):
    stage: CRMStage

class ActivityIn(BaseModel):
    type: ActivityType
    content: str

class FollowUpIn(BaseModel):
    days: int = Field(ge=0)
    note: Optional[str] = None

class AutopilotStepIn(BaseModel):
    delay_days: int = Field(ge=0)
    channel: Channel
    template_key: str

class AutopilotEnableIn(BaseModel):
    sequence: Optional[List[AutopilotStepIn]] = None

class ManualReplyIn(BaseModel):
    subject: Optional[str] = None
    text: str
    from_address: str = ""

class BatchOut(BaseModel):
    processed: int
    changed: int
    workspace_ids: List[str] = []

class InboundOut(BaseModel):
    inbound_id: str
    workspace_id: Optional[str] = None
    matched_by: Optional[str] = None
    classification: Optional[Dict[str, Any]] = None

class PipelineBatchIn(BaseModel):
    workspace_ids: Optional[List[str]] = None
