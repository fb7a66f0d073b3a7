# file: leadfactory/schema.py
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

# Fixed pipeline order. Downstream invalidation is a truncation of this tuple.
STAGES = (
    "Collector",
    "Normalizer",
    "PainFinder",
    "OfferBuilder",
    "Copywriter",
    "PrototypeDesigner",
)

StageName = Literal["Collector", "Normalizer", "PainFinder", "OfferBuilder", "Copywriter", "PrototypeDesigner"]
StageStatus = Literal["waiting", "running", "done", "error"]
WorkspaceStatus = Literal["INTAKE_RECEIVED", "RUNNING", "NEEDS_INPUT", "NORMALIZED", "DONE", "FAILED"]
ArtifactType = Literal[
    "audit_system", "offer_system", "outreach_system", "crm_system",
    "seo_master", "site_spec", "sitemap_ascii", "other",
]

CRM_STAGES = ("NEW", "CONTACTED", "REPLIED", "MEETING_BOOKED", "PROPOSAL_SENT", "WON", "LOST")
CRMStage = Literal["NEW", "CONTACTED", "REPLIED", "MEETING_BOOKED", "PROPOSAL_SENT", "WON", "LOST"]
ActivityType = Literal["email", "dm", "call", "note", "meeting", "autopilot_event"]

AutopilotStatus = Literal["OFF", "ACTIVE", "PAUSED", "STOPPED"]
Channel = Literal["email", "whatsapp", "dm"]
SendStatus = Literal["DRAFT", "QUEUED", "SENT", "FAILED", "CANCELLED"]

ReplyIntent = Literal[
    "positive", "question", "objection", "not_now", "unsubscribe",
    "wrong_person", "bounce", "out_of_office", "unknown",
]
NextAction = Literal["stop_autopilot", "schedule_followup", "reply", "ignore"]
MatchedBy = Literal["message_id", "email", "subject_token", "body_token", "manual"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# --- Intake ---

class TextBlock(BaseModel):
    origin: str = "paste"
    text: str

class IntakeData(BaseModel):
    mode: Literal["card", "links", "mix"] = "mix"
    prospect_name: str = ""
    city: str = ""
    category: str = ""
    images: List[str] = []
    text_blocks: List[TextBlock] = []
    links: List[str] = []
    notes: str = ""

    def raw_text(self) -> str:
        return "\n\n".join(b.text for b in self.text_blocks)


# --- Pipeline ---

class VerificationCheck(BaseModel):
    check: str
    status: Literal["OK", "WARNING", "FAIL"] = "OK"

class AgentLog(BaseModel):
    plan: List[str] = []
    process: List[str] = []
    verification: List[VerificationCheck] = []

class StageRun(BaseModel):
    status: StageStatus = "waiting"
    output: Optional[Any] = None
    logs: Optional[AgentLog] = None
    timestamp: Optional[datetime] = None

def default_factory_state() -> Dict[str, StageRun]:
    return {name: StageRun() for name in STAGES}

class Artifact(BaseModel):
    id: str
    type: ArtifactType
    title: str
    content: Any = None  # JSON value, tagged by `type`
    agent: Optional[StageName] = None
    version: int = Field(1, ge=1)
    created_at: datetime
    updated_at: datetime

class WorkspaceValidation(BaseModel):
    has_contact: bool = False
    local_signals: bool = False
    cta_top_bottom: bool = False
    no_banned_words: bool = True

class WorkspaceVersion(BaseModel):
    id: str
    note: str
    created_at: datetime
    snapshot: Dict[str, Any]  # workspace dump without `versions`


# --- CRM ---

class CRMActivity(BaseModel):
    id: str
    type: ActivityType
    content: str
    created_at: datetime

class CRMFollowUp(BaseModel):
    id: str
    due_at: datetime
    note: Optional[str] = None
    done: bool = False

class CRMData(BaseModel):
    stage: CRMStage = "NEW"
    activities: List[CRMActivity] = []
    follow_ups: List[CRMFollowUp] = []
    last_contact_at: Optional[datetime] = None


# --- Autopilot ---

class AutopilotStep(BaseModel):
    id: str
    delay_days: int
    channel: Channel
    template_key: str
    sent_at: Optional[datetime] = None

class AutopilotData(BaseModel):
    status: AutopilotStatus = "OFF"
    steps: List[AutopilotStep] = []
    current_step_index: int = Field(0, ge=0)
    next_run_at: Optional[datetime] = None


# --- Outbox & messaging ---

class Recipient(BaseModel):
    email: Optional[str] = None
    phone_e164: Optional[str] = None
    handle: Optional[str] = None

class MessageMeta(BaseModel):
    template_key: Optional[str] = None
    step_id: Optional[str] = None
    thread_token: Optional[str] = None

class Tracking(BaseModel):
    opens: int = 0
    clicks: int = 0
    last_event_at: Optional[datetime] = None

class OutboxMessage(BaseModel):
    id: str
    prospect_id: str
    channel: Channel
    to: Recipient = Recipient()
    subject: Optional[str] = None
    body: str
    created_at: datetime
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    status: SendStatus = "DRAFT"  # DRAFT -> QUEUED -> SENT | FAILED | CANCELLED
    error: Optional[str] = None
    meta: MessageMeta = MessageMeta()
    tracking: Optional[Tracking] = None

class SendLog(BaseModel):
    id: str
    message_id: str
    prospect_id: str
    channel: Channel
    status: Literal["OK", "ERROR"]
    provider: Optional[str] = None
    provider_message_id: Optional[str] = None
    at: datetime
    detail: Any = None

class OptOut(BaseModel):
    email: bool = False
    whatsapp: bool = False
    dm: bool = False

class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone_e164: Optional[str] = None


# --- Inbound & replies ---

class InboundMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    prospect_id: Optional[str] = None
    channel: Literal["email"] = "email"
    from_address: str = ""
    to_address: str = ""
    subject: Optional[str] = None
    text: str = ""
    received_at: datetime
    raw: Optional[Dict[str, Any]] = None
    matched_by: Optional[MatchedBy] = None

class ProposedReply(BaseModel):
    subject: Optional[str] = None
    body: str

class ReplyClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    intent: ReplyIntent
    confidence: float = Field(ge=0.0, le=1.0)
    summary: str
    suggested_next_action: NextAction
    proposed_reply: Optional[ProposedReply] = None


# --- Workspace (aggregate root) ---

class Workspace(BaseModel):
    # Stage outputs are merged as top-level fields, so unknown keys are kept.
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    address: str = ""
    phone: Optional[str] = None
    website: Optional[str] = None
    intake: Optional[IntakeData] = None
    contact: Optional[ContactInfo] = None

    workspace_status: WorkspaceStatus = "INTAKE_RECEIVED"
    current_agent: str = ""
    warnings: List[str] = []
    errors: List[str] = []
    validation: WorkspaceValidation = WorkspaceValidation()
    factory_state: Dict[str, StageRun] = Field(default_factory=default_factory_state)
    artifacts: List[Artifact] = []
    versions: List[WorkspaceVersion] = []

    crm: Optional[CRMData] = None
    autopilot: Optional[AutopilotData] = None
    outbox: Optional[List[OutboxMessage]] = None
    send_logs: Optional[List[SendLog]] = None
    opt_out: Optional[OptOut] = None

    inbound: List[InboundMessage] = []
    reply_classifications: Dict[str, ReplyClassification] = {}

    created_at: datetime = Field(default_factory=utcnow)

    def stage(self, name: str) -> StageRun:
        return self.factory_state.get(name) or StageRun()

    def stage_output(self, name: str) -> Any:
        return self.stage(name).output


class PipelineEvent(BaseModel):
    ts: datetime
    type: str  # pipeline_start, agent_start, agent_end, agent_error, pipeline_done
    agent: str
    message: str
    payload: Dict[str, Any] = {}
    workspace: Optional[Workspace] = None
