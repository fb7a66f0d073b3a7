from __future__ import annotations
import re
from typing import Optional
from email_validator import EmailNotValidError, validate_email
from leadfactory.schema import CRMData, IntakeData, Workspace, new_id

_EMAIL = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.I)
_PHONE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(?\d{1,4}\)?[\s.-]?){2,5}\d{2,4}")

def extract_email(text: str) -> Optional[str]:
    for match in _EMAIL.finditer(text or ""):
        try:
            return validate_email(match.group(0), check_deliverability=False).normalized
        except EmailNotValidError:
            continue
    return None

def extract_phone(text: str) -> Optional[str]:
    for match in _PHONE.finditer(text or ""):
        digits = re.sub(r"\D", "", match.group(0))
        if 8 <= len(digits) <= 15:
            return match.group(0).strip()
    return None

def create_workspace(intake: IntakeData, *, name: Optional[str] = None) -> Workspace:
    """Create a fresh workspace from raw intake. The pipeline has not run yet."""
    display = (name or intake.prospect_name or "").strip()
    if not display:
        raise ValueError("A prospect name is required to create a workspace")
    raw = "\n".join([intake.raw_text(), intake.notes])
    return Workspace(
        id=new_id("ws"),
        name=display,
        phone=extract_phone(raw),
        website=intake.links[0] if intake.links else None,
        intake=intake,
        workspace_status="INTAKE_RECEIVED",
        crm=CRMData(),
    )
