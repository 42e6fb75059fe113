"""Run orchestration: status state machine, session store and pipeline driver."""

from omnipedia.orchestrator.pipeline import PipelineRunner
from omnipedia.orchestrator.session import SessionSnapshot, SessionStore
from omnipedia.orchestrator.state import GenerationStatus

__all__ = ["GenerationStatus", "PipelineRunner", "SessionSnapshot", "SessionStore"]
