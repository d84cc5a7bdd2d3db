"""Onboarding flow: ordered steps that fill an :class:`OnboardingState`.

Each step owns a slice of the state. Advancing a step validates its input and
merges only that slice into a copy of the state; a rejected input leaves the
machine exactly where it was. The flow ends on ``completion``, which is only
reachable once the required fields are set and freezes the state from then on.
"""
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..models.prayer import PRAYER_ORDER, normalize_prayer_name


class OnboardingValidationError(ValueError):
    """Step input was rejected; the machine state is unchanged."""

    def __init__(self, step: "OnboardingStep", message: str):
        super().__init__(message)
        self.step = step
        self.message = message


class OnboardingCompletedError(OnboardingValidationError):
    """The flow already reached completion and can no longer change."""


class Theme(str, Enum):
    SERENE = "serene"
    DEGEN = "degen"
    BEGINNER = "beginner"
    CUSTOM = "custom"


class OnboardingStep(str, Enum):
    WELCOME = "welcome"
    MOTIVATION = "motivation"
    PRAYER_STORY = "prayer_story"
    THEME = "theme"
    QIBLA = "qibla"
    PRAYER_BASELINE = "prayer_baseline"
    REMINDERS = "reminders"
    INTENTION = "intention"
    GOAL_SETTING = "goal_setting"
    AI_INTRO = "ai_intro"
    GAMIFICATION_INTRO = "gamification_intro"
    MULVI_INTRO = "mulvi_intro"
    COMPLETION = "completion"


STEP_ORDER: List[OnboardingStep] = list(OnboardingStep)

# Steps whose fields have no safe default
REQUIRED_STEPS = {OnboardingStep.MOTIVATION, OnboardingStep.THEME}

REMINDER_TIMINGS = ("before", "after", "end")
REMINDER_STYLES = ("soft", "mulvi", "none")


class QiblaSettings(BaseModel):
    location_permission: bool = False
    calculation_method: str = "ISNA"
    hijri_offset: int = Field(default=0, ge=-2, le=2)
    auto_location: bool = True

    model_config = ConfigDict(extra="forbid")


class ReminderSettings(BaseModel):
    timing: str = "before"
    style: str = "soft"

    model_config = ConfigDict(extra="forbid")


def _default_baseline() -> Dict[str, bool]:
    return {name: False for name in PRAYER_ORDER}


class OnboardingState(BaseModel):
    motivations: List[str] = Field(default_factory=list)
    prayer_story: Optional[str] = None
    theme: Optional[Theme] = None
    qibla_settings: QiblaSettings = Field(default_factory=QiblaSettings)
    prayer_baseline: Dict[str, bool] = Field(default_factory=_default_baseline)
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings)
    intentions: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    mulvi_enabled: bool = True
    completed: bool = False

    model_config = ConfigDict(frozen=True)

    def missing_required(self) -> List[str]:
        missing = []
        if not self.motivations:
            missing.append("motivations")
        if self.theme is None:
            missing.append("theme")
        return missing

    def to_profile_seed(self) -> Dict[str, Any]:
        """Fields copied into the persisted profile on completion."""
        return self.model_dump(mode="json")


# Step input parsers. Each returns the update dict for the fields the step owns.


def _string_set(step: "OnboardingStep", payload: Any, *, required: bool) -> List[str]:
    if payload is None:
        payload = []
    if isinstance(payload, str):
        payload = [payload]
    if not isinstance(payload, (list, tuple, set)):
        raise OnboardingValidationError(step, "expected a list of strings")
    out: List[str] = []
    for item in payload:
        if not isinstance(item, str):
            raise OnboardingValidationError(step, "expected a list of strings")
        item = item.strip()
        if item and item not in out:
            out.append(item)
    if required and not out:
        raise OnboardingValidationError(step, "select at least one option")
    return out


def _parse_nothing(step, payload, state):
    return {}


def _parse_motivation(step, payload, state):
    return {"motivations": _string_set(step, payload, required=True)}


def _parse_prayer_story(step, payload, state):
    if payload is not None and not isinstance(payload, str):
        raise OnboardingValidationError(step, "prayer story must be text")
    story = (payload or "").strip()
    return {"prayer_story": story or None}


def _parse_theme(step, payload, state):
    try:
        return {"theme": Theme(str(payload).strip().lower())}
    except ValueError:
        allowed = ", ".join(t.value for t in Theme)
        raise OnboardingValidationError(step, f"theme must be one of: {allowed}") from None


def _parse_qibla(step, payload, state):
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise OnboardingValidationError(step, "qibla settings must be an object")
    try:
        merged = {**state.qibla_settings.model_dump(), **payload}
        return {"qibla_settings": QiblaSettings(**merged)}
    except ValidationError as e:
        raise OnboardingValidationError(step, f"invalid qibla settings: {e.errors()[0]['msg']}")


def _parse_baseline(step, payload, state):
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise OnboardingValidationError(step, "prayer baseline must be an object")
    baseline = _default_baseline()
    for key, value in payload.items():
        name = normalize_prayer_name(str(key))
        if name is None:
            raise OnboardingValidationError(step, f"unknown prayer: {key!r}")
        if not isinstance(value, bool):
            raise OnboardingValidationError(step, f"{name} must be true or false")
        baseline[name] = value
    return {"prayer_baseline": baseline}


def _parse_reminders(step, payload, state):
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise OnboardingValidationError(step, "reminder settings must be an object")
    try:
        settings = ReminderSettings(**{**state.reminder_settings.model_dump(), **payload})
    except ValidationError as e:
        raise OnboardingValidationError(step, f"invalid reminder settings: {e.errors()[0]['msg']}")
    if settings.timing not in REMINDER_TIMINGS:
        raise OnboardingValidationError(step, f"timing must be one of: {', '.join(REMINDER_TIMINGS)}")
    if settings.style not in REMINDER_STYLES:
        raise OnboardingValidationError(step, f"style must be one of: {', '.join(REMINDER_STYLES)}")
    return {"reminder_settings": settings}


def _parse_intention(step, payload, state):
    return {"intentions": _string_set(step, payload, required=False)}


def _parse_goals(step, payload, state):
    return {"goals": _string_set(step, payload, required=False)}


def _parse_mulvi_intro(step, payload, state):
    if payload is None:
        return {"mulvi_enabled": True}
    if isinstance(payload, dict):
        payload = payload.get("enabled", True)
    if not isinstance(payload, bool):
        raise OnboardingValidationError(step, "enabled must be true or false")
    return {"mulvi_enabled": payload}


StepParser = Callable[[OnboardingStep, Any, OnboardingState], Dict[str, Any]]

STEP_PARSERS: Dict[OnboardingStep, StepParser] = {
    OnboardingStep.WELCOME: _parse_nothing,
    OnboardingStep.MOTIVATION: _parse_motivation,
    OnboardingStep.PRAYER_STORY: _parse_prayer_story,
    OnboardingStep.THEME: _parse_theme,
    OnboardingStep.QIBLA: _parse_qibla,
    OnboardingStep.PRAYER_BASELINE: _parse_baseline,
    OnboardingStep.REMINDERS: _parse_reminders,
    OnboardingStep.INTENTION: _parse_intention,
    OnboardingStep.GOAL_SETTING: _parse_goals,
    OnboardingStep.AI_INTRO: _parse_nothing,
    OnboardingStep.GAMIFICATION_INTRO: _parse_nothing,
    OnboardingStep.MULVI_INTRO: _parse_mulvi_intro,
}


class OnboardingMachine:
    """Single-writer onboarding flow for one user session."""

    def __init__(self, state: Optional[OnboardingState] = None, step: OnboardingStep = OnboardingStep.WELCOME):
        self.state = state or OnboardingState()
        step = OnboardingStep(step)
        if self.state.completed:
            step = OnboardingStep.COMPLETION
        elif step is OnboardingStep.COMPLETION:
            # Completion is only entered through advance()
            step = STEP_ORDER[-2]
        self.step = step

    @property
    def completed(self) -> bool:
        return self.state.completed

    @property
    def progress(self) -> int:
        return round(STEP_ORDER.index(self.step) / (len(STEP_ORDER) - 1) * 100)

    def _guard(self) -> None:
        if self.completed:
            raise OnboardingCompletedError(self.step, "onboarding already completed")

    def _next_step(self) -> OnboardingStep:
        return STEP_ORDER[STEP_ORDER.index(self.step) + 1]

    def _enter(self, update: Dict[str, Any]) -> OnboardingStep:
        state = self.state.model_copy(update=update)
        nxt = self._next_step()
        if nxt is OnboardingStep.COMPLETION:
            missing = state.missing_required()
            if missing:
                raise OnboardingValidationError(
                    self.step, f"cannot complete onboarding, missing: {', '.join(missing)}"
                )
            state = state.model_copy(update={"completed": True})
        # Commit only after every check passed
        self.state = state
        self.step = nxt
        return nxt

    def advance(self, payload: Any = None) -> OnboardingStep:
        self._guard()
        update = STEP_PARSERS[self.step](self.step, payload, self.state)
        return self._enter(update)

    def skip(self) -> OnboardingStep:
        self._guard()
        if self.step in REQUIRED_STEPS:
            raise OnboardingValidationError(self.step, f"the {self.step.value} step cannot be skipped")
        return self._enter({})

    def back(self) -> OnboardingStep:
        self._guard()
        idx = STEP_ORDER.index(self.step)
        if idx > 0:
            self.step = STEP_ORDER[idx - 1]
        return self.step

    def to_record(self) -> Dict[str, Any]:
        return {"step": self.step.value, "state": self.state.model_dump(mode="json")}

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> "OnboardingMachine":
        record = dict(record or {})
        state = OnboardingState.model_validate(record.get("state") or {})
        step = OnboardingStep(record.get("step") or OnboardingStep.WELCOME.value)
        return cls(state=state, step=step)
