# file: leadfactory/logging_utils.py
import logging
from rich.logging import RichHandler
from leadfactory.schema import PipelineEvent, Workspace, utcnow

def setup_logging(level=logging.INFO):
    """Configure rich logging"""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)]
    )

def log_event(agent: str, message: str, type: str = "agent_log", payload: dict = None,
              workspace: Workspace = None) -> PipelineEvent:
    """Create a pipeline event carrying the workspace value at this point"""
    return PipelineEvent(
        ts=utcnow(),
        type=type,
        agent=agent,
        message=message,
        payload=payload or {},
        workspace=workspace,
    )

logger = logging.getLogger("orchestrator")
