"""Domain models"""

from .phone import (
    PhoneStatus,
    Phone,
    PhoneStatusUpdate,
    PhoneSummary,
)

from .call_outcome import (
    CallOutcome,
    ResultType,
    OutcomeConfig,
)

from .cadence_template import (
    CadenceType,
    ActionType,
    CadenceStep,
    CadenceTemplate,
)

from .lead import (
    TemperatureBand,
    CadencePhase,
    CadenceStateName,
    TERMINAL_STATES,
    NotEnrolled,
    Active,
    Snoozed,
    Paused,
    CompletedNoContact,
    ExitedEngaged,
    ExitedDnc,
    ExitedDead,
    ExitedClosed,
    StaleEngaged,
    LongTermNurture,
    build_state,
    TaskType,
    TaskStatus,
    Task,
    Lead,
)

from .scoring import (
    ConfidenceLevel,
    NextAction,
    ScoreReason,
    ScoreBreakdown,
    ScoreFlags,
    ScoreResult,
    MotivationContribution,
)

from .queue import (
    NOT_WORKABLE_BUCKET,
    QueueTierConfig,
    QueueAssignment,
    QueueEntry,
    TierBreakdown,
    QueueCounts,
)

from .transition import (
    PhaseTransition,
    CallResult,
)

from .actions import (
    ActionKind,
    ActionPayload,
    AuditEntry,
    ActionOutcome,
    ActionResult,
    LeadStatus,
)

from .maintenance import (
    SweepStep,
    SweepStatus,
    SweepError,
    PageSummary,
    SweepSummary,
)

from .cadence_config import (
    CadenceConfig,
    load_cadence_config,
    get_cadence_config,
)

__all__ = [
    "PhoneStatus",
    "Phone",
    "PhoneStatusUpdate",
    "PhoneSummary",
    "CallOutcome",
    "ResultType",
    "OutcomeConfig",
    "CadenceType",
    "ActionType",
    "CadenceStep",
    "CadenceTemplate",
    "TemperatureBand",
    "CadencePhase",
    "CadenceStateName",
    "TERMINAL_STATES",
    "NotEnrolled",
    "Active",
    "Snoozed",
    "Paused",
    "CompletedNoContact",
    "ExitedEngaged",
    "ExitedDnc",
    "ExitedDead",
    "ExitedClosed",
    "StaleEngaged",
    "LongTermNurture",
    "build_state",
    "TaskType",
    "TaskStatus",
    "Task",
    "Lead",
    "ConfidenceLevel",
    "NextAction",
    "ScoreReason",
    "ScoreBreakdown",
    "ScoreFlags",
    "ScoreResult",
    "MotivationContribution",
    "NOT_WORKABLE_BUCKET",
    "QueueTierConfig",
    "QueueAssignment",
    "QueueEntry",
    "TierBreakdown",
    "QueueCounts",
    "PhaseTransition",
    "CallResult",
    "ActionKind",
    "ActionPayload",
    "AuditEntry",
    "ActionOutcome",
    "ActionResult",
    "LeadStatus",
    "SweepStep",
    "SweepStatus",
    "SweepError",
    "PageSummary",
    "SweepSummary",
    "CadenceConfig",
    "load_cadence_config",
    "get_cadence_config",
]
