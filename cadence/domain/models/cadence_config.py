"""
Cadence Configuration Model
Validated, immutable view of the reference tables in config/default.yaml
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cadence.core.config import ConfigManager, Settings, get_config_manager, get_settings
from cadence.domain.models.cadence_template import CadenceTemplate, CadenceType
from cadence.domain.models.call_outcome import CallOutcome, OutcomeConfig
from cadence.domain.models.lead import CadenceStateName, TemperatureBand
from cadence.domain.models.queue import QueueTierConfig

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class BusinessHours(_Frozen):
    timezone: str = "UTC"
    hour: int = Field(default=9, ge=0, le=23)


class PhaseLimits(_Frozen):
    max_enrollment_cycles: int = 6
    blitz_1_max_attempts: int = 3
    blitz_2_max_attempts: int = 2
    stale_engaged_days: int = 21
    nurture_check_days: int = 182
    default_callback_hours: int = 24


class StateSets(_Frozen):
    never_re_enroll: frozenset[CadenceStateName]
    re_enroll_candidates: frozenset[CadenceStateName]
    queue_visible: frozenset[CadenceStateName]


class ScoreMultiplier(_Frozen):
    min_score: int
    multiplier: float


class CyclePenalty(_Frozen):
    min_cycle: int = 4
    max_cycle: int = 5
    multiplier: float = 1.5


class ReEnrollmentRules(_Frozen):
    base_wait_days: Dict[TemperatureBand, int]
    score_multipliers: List[ScoreMultiplier]
    cycle_penalty: CyclePenalty = Field(default_factory=CyclePenalty)

    @field_validator("score_multipliers")
    @classmethod
    def _highest_first(cls, value: List[ScoreMultiplier]) -> List[ScoreMultiplier]:
        return sorted(value, key=lambda m: m.min_score, reverse=True)


class CallResultPattern(_Frozen):
    contains: List[str]
    outcome: CallOutcome


class PhoneRules(_Frozen):
    rotation_no_answer_threshold: int = 2
    mobile_types: frozenset[str] = frozenset({"MOBILE", "CELL", "WIRELESS"})
    type_priority: Dict[str, int] = Field(default_factory=dict)
    default_type_priority: int = 5
    status_priority: Dict[str, int] = Field(default_factory=dict)
    default_status_priority: int = 99


class QueueRules(_Frozen):
    tiers: Dict[int, QueueTierConfig]


class SynergyBonus(_Frozen):
    motivations: List[str]
    bonus: int


class TaskPoints(_Frozen):
    overdue: int = 15
    due_today: int = 10
    due_tomorrow: int = 5
    callback_bonus: int = 5
    follow_up_bonus: int = 3
    cap: int = 20


class RecencyBand(_Frozen):
    max_days: Optional[float] = None
    points: int


class FatigueBand(_Frozen):
    max_streak: Optional[int] = None
    points: int


class EngagementPoints(_Frozen):
    callback: int = 30
    callback_window_days: int = 7
    engaged: int = 20
    score_cap: int = 30


class RescueRules(_Frozen):
    max_points: int = 20
    half_life_days: float = 30
    min_days: float = 14


class StatusCategory(_Frozen):
    points: int = 0
    multiplier: float = 1.0
    not_workable: bool = False


class ChannelPoints(_Frozen):
    callable_phone: int = 5
    mobile_phone: int = 5
    multiple_phones: int = 2
    email: int = 3


class ConfidenceWeights(_Frozen):
    motivations: int = 25
    tags: int = 15
    mobile_phone: int = 25
    valid_phone: int = 10
    skiptrace: int = 15
    contacted: int = 10
    owner_name: int = 10
    high_threshold: int = 75
    medium_threshold: int = 50


class ScoringRules(_Frozen):
    temperature_points: Dict[TemperatureBand, int]
    motivation_tier_points: Dict[str, int]
    default_motivation_tier: str = "LOW"
    motivation_tiers: Dict[str, str] = Field(default_factory=dict)
    diminishing_returns: List[float]
    low_urgency_tier: str = "LOW"
    low_urgency_cap: int = 9
    synergies: List[SynergyBonus] = Field(default_factory=list)
    task: TaskPoints = Field(default_factory=TaskPoints)
    recency_bands: List[RecencyBand] = Field(default_factory=list)
    fatigue_bands: List[FatigueBand] = Field(default_factory=list)
    engagement: EngagementPoints = Field(default_factory=EngagementPoints)
    rescue: RescueRules = Field(default_factory=RescueRules)
    status_categories: Dict[str, StatusCategory] = Field(default_factory=dict)
    status_names: Dict[str, str] = Field(default_factory=dict)
    dnc_keywords: List[str] = Field(default_factory=list)
    channel: ChannelPoints = Field(default_factory=ChannelPoints)
    confidence: ConfidenceWeights = Field(default_factory=ConfidenceWeights)
    call_now_threshold: int = 50
    band_thresholds: Dict[TemperatureBand, int] = Field(default_factory=dict)
    top_reasons: int = 3

    @field_validator("motivation_tiers", "status_names", mode="before")
    @classmethod
    def _lowercase_keys(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {str(k).strip().lower(): v for k, v in (value or {}).items()}

    @field_validator("diminishing_returns")
    @classmethod
    def _strictly_decreasing(cls, value: List[float]) -> List[float]:
        if not value:
            raise ValueError("diminishing_returns must not be empty")
        for previous, current in zip(value, value[1:]):
            if current >= previous:
                raise ValueError("diminishing_returns must be strictly decreasing")
        return value


class CadenceConfig(_Frozen):
    """
    All reference data the engine needs.

    Built once from YAML and passed into every component. Step numbers are
    assigned from template order, and every CallOutcome must be configured.
    """
    business: BusinessHours = Field(default_factory=BusinessHours)
    phases: PhaseLimits = Field(default_factory=PhaseLimits)
    states: StateSets
    templates: Dict[CadenceType, CadenceTemplate]
    re_enrollment: ReEnrollmentRules
    outcomes: Dict[CallOutcome, OutcomeConfig]
    call_result_synonyms: Dict[str, CallOutcome]
    call_result_patterns: List[CallResultPattern] = Field(default_factory=list)
    phones: PhoneRules = Field(default_factory=PhoneRules)
    snooze_options: Dict[str, float] = Field(default_factory=dict)
    queue: QueueRules
    scoring: ScoringRules

    @field_validator("templates", mode="before")
    @classmethod
    def _build_templates(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        templates = {}
        for cadence_type, definition in (value or {}).items():
            if isinstance(definition, CadenceTemplate):
                templates[cadence_type] = definition
                continue
            steps = [
                {
                    "step_number": index,
                    "day_offset": step.get("day", 0),
                    "action_type": step.get("action", "CALL"),
                    "description": step.get("description", ""),
                }
                for index, step in enumerate(definition.get("steps", []), start=1)
            ]
            templates[cadence_type] = {
                "cadence_type": cadence_type,
                "temperature_band": definition.get("temperature_band"),
                "steps": steps,
            }
        return templates

    @field_validator("call_result_synonyms", mode="before")
    @classmethod
    def _normalize_labels(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {str(k).strip().lower(): v for k, v in (value or {}).items()}

    @model_validator(mode="after")
    def _check_completeness(self) -> "CadenceConfig":
        missing = [outcome.value for outcome in CallOutcome if outcome not in self.outcomes]
        if missing:
            raise ValueError(f"Outcome table is missing: {', '.join(missing)}")
        if CadenceType.WARM not in self.templates:
            raise ValueError("WARM template is required as the fallback cadence")
        if set(self.queue.tiers) != set(range(1, 10)):
            raise ValueError("Queue tiers must be numbered 1 through 9")
        return self


def load_cadence_config(
    config_manager: Optional[ConfigManager] = None,
    settings: Optional[Settings] = None,
) -> CadenceConfig:
    """
    Validate the `cadence` section of the YAML config.

    Business timezone/hour from settings override the YAML values when set.
    """
    config_manager = config_manager or get_config_manager()
    raw = dict(config_manager.get("cadence", {}) or {})
    if not raw:
        raise ValueError("Missing 'cadence' configuration section")

    if settings is not None:
        business = dict(raw.get("business", {}))
        if settings.business_timezone:
            business["timezone"] = settings.business_timezone
        if settings.business_hour is not None:
            business["hour"] = settings.business_hour
        raw["business"] = business

    config = CadenceConfig.model_validate(raw)
    logger.info(
        f"Loaded cadence config: {len(config.templates)} templates, "
        f"{len(config.outcomes)} outcomes, timezone {config.business.timezone}"
    )
    return config


_cadence_config: Optional[CadenceConfig] = None


def get_cadence_config() -> CadenceConfig:
    """Get or create the process-wide cadence config"""
    global _cadence_config
    if _cadence_config is None:
        _cadence_config = load_cadence_config(settings=get_settings())
    return _cadence_config
