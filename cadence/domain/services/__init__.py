"""
Domain Services
Cadence components and the engine that composes them
"""
from cadence.domain.services.engine import (
    CadenceEngine,
    InvalidActionError,
    InvalidTransitionError,
    LeadNotFoundError,
)
from cadence.domain.services.phase_manager import PhaseManager
from cadence.domain.services.phone_manager import PhoneManager
from cadence.domain.services.queue_manager import QueueManager
from cadence.domain.services.result_handler import ResultHandler
from cadence.domain.services.scoring_engine import ScoringEngine

__all__ = [
    "CadenceEngine",
    "InvalidActionError",
    "InvalidTransitionError",
    "LeadNotFoundError",
    "PhaseManager",
    "PhoneManager",
    "QueueManager",
    "ResultHandler",
    "ScoringEngine",
]
