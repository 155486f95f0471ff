"""Intake wizard and cognitive check-in flows.

The wizard keeps its answers in an explicit ``IntakeWizard`` object instead
of module state, and the store it saves into is passed in by the caller.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from estimation import estimate_mg
from schemas import IntakeRequest, LogRecord
from storage import LogStore, get_time_of_day

logger = logging.getLogger(__name__)

FIRST_STEP = 1
CONFIRM_STEP = 4

CHECK_IN_REASON = "Cognitive check-in only"

# "None" is reserved for check-in-only records
INTAKE_SOURCES = ("Vape", "Cigarettes", "Snus")


@dataclass
class IntakeWizard:
    """
    Four-step intake form.

    1. source, quantity and strength
    2. at least one health effect
    3. a reason (free text when the reason is "Other")
    4. confirmation
    """

    step: int = FIRST_STEP
    source: Optional[str] = None
    quantity: Optional[float] = None
    strength: float = 0
    health_effects: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    other_reason: Optional[str] = None

    @classmethod
    def from_request(cls, request: IntakeRequest) -> "IntakeWizard":
        return cls(
            source=request.source,
            quantity=request.quantity,
            strength=request.strength or 0,
            health_effects=list(request.health_effects),
            reason=request.reason,
            other_reason=request.other_reason,
        )

    @property
    def estimated_mg(self) -> float:
        return estimate_mg(self.source, self.quantity, self.strength)

    def toggle_health_effect(self, effect: str, checked: bool) -> None:
        if checked and effect not in self.health_effects:
            self.health_effects.append(effect)
        elif not checked:
            self.health_effects = [e for e in self.health_effects if e != effect]

    def is_step_valid(self, step: Optional[int] = None) -> bool:
        step = self.step if step is None else step
        if step == 1:
            return (
                self.source in INTAKE_SOURCES
                and self.quantity is not None
                and self.quantity > 0
                and self.strength > 0
            )
        if step == 2:
            return len(self.health_effects) > 0
        if step == 3:
            return self.reason is not None and (self.reason != "Other" or bool(self.other_reason))
        return step == CONFIRM_STEP

    def first_invalid_step(self) -> Optional[int]:
        for step in range(FIRST_STEP, CONFIRM_STEP):
            if not self.is_step_valid(step):
                return step
        return None

    def next_step(self) -> bool:
        """Advance one step if the current one is valid. Returns whether it moved."""
        if not self.is_step_valid() or self.step >= CONFIRM_STEP:
            return False
        self.step += 1
        return True

    def prev_step(self) -> bool:
        if self.step <= FIRST_STEP:
            return False
        self.step -= 1
        return True

    def build_log_data(self, now: Optional[datetime] = None) -> dict:
        """Record fields for a confirmed intake; id and timestamp come from the store."""
        now = now or datetime.now().astimezone()
        return {
            "date": now.date().isoformat(),
            "timeOfDay": get_time_of_day(now),
            "source": self.source,
            "unitType": "puffs" if self.source == "Vape" else "pieces",
            "amount": self.quantity,
            "estimatedMg": self.estimated_mg,
            "reason": self.other_reason if self.reason == "Other" else self.reason,
            "healthEffects": list(self.health_effects),
            "focusLevel": None,
            "anxietyLevel": None,
            "clearThinking": None,
            "notes": None,
        }


def record_intake(store: LogStore, wizard: IntakeWizard, now: Optional[datetime] = None) -> LogRecord:
    """Persist a wizard whose steps are all valid."""
    invalid = wizard.first_invalid_step()
    if invalid is not None:
        raise ValueError(f"Wizard step {invalid} is incomplete")
    wizard.step = CONFIRM_STEP
    return store.append(wizard.build_log_data(now))


def submit_check_in(
    store: LogStore,
    focus_level: int,
    anxiety_level: int,
    clear_thinking: Optional[bool] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[LogRecord, bool]:
    """
    Attach a focus/anxiety check-in to today's most recent log.

    If nothing was logged today a check-in-only record is created instead.
    Returns the stored record and whether it was newly created.
    """
    now = now or datetime.now().astimezone()
    fields = {
        "focusLevel": focus_level,
        "anxietyLevel": anxiety_level,
        "clearThinking": clear_thinking,
        "notes": notes,
    }

    recent = store.most_recent_today(now.date().isoformat())
    if recent:
        logger.info(f"Check-in amends log {recent.id}")
        return store.amend(recent.id, fields), False

    record = store.append({
        "date": now.date().isoformat(),
        "timeOfDay": get_time_of_day(now),
        "source": "None",
        "unitType": "other",
        "amount": 0,
        "estimatedMg": 0,
        "reason": CHECK_IN_REASON,
        "healthEffects": [],
        **fields,
    })
    return record, True
