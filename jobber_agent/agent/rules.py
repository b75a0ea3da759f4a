"""
Business rules applied to every event, regardless of which user triggered it.

Each rule carries named conditions; a rule matches when ANY of its conditions
holds. Matches are returned highest priority first, ties in table order.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from jobber_agent.agent.features import INSPECTION_JOB_TYPES, WEEKEND_DAYS
from jobber_agent.logging_config import get_logger
from jobber_agent.models import Decision

logger = get_logger(__name__)

Features = Dict[str, Any]


@dataclass(frozen=True)
class Condition:
    name: str
    predicate: Callable[[Features], bool]

    def is_satisfied(self, features: Features) -> bool:
        return bool(self.predicate(features))


def flag_is_true(feature: str) -> Condition:
    return Condition(f"{feature} is true", lambda f: f.get(feature) is True)


def at_least(feature: str, threshold: float) -> Condition:
    return Condition(f"{feature} >= {threshold}", lambda f: (f.get(feature) or 0) >= threshold)


def one_of(feature: str, values) -> Condition:
    allowed = tuple(values)
    return Condition(f"{feature} in {list(allowed)}", lambda f: f.get(feature) in allowed)


def unassigned_with_available_tech() -> Condition:
    return Condition(
        "unassigned and a technician is available",
        lambda f: not f.get("is_assigned") and len(f.get("available_techs") or []) > 0,
    )


@dataclass(frozen=True)
class Rule:
    name: str
    priority: int
    conditions: Tuple[Condition, ...]
    actions: Tuple[str, ...]
    reasoning: Callable[[Features], str]
    # Config attribute that can switch the rule off at startup
    feature_flag: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def matches(self, features: Features) -> bool:
        return any(condition.is_satisfied(features) for condition in self.conditions)

    def satisfied_conditions(self, features: Features) -> List[str]:
        return [c.name for c in self.conditions if c.is_satisfied(features)]

    def decide(self, features: Features) -> Decision:
        return Decision(
            rule=self.name,
            priority=self.priority,
            actions=self.actions,
            reasoning=self.reasoning(features),
            parameters=dict(self.parameters),
        )


VIP_LIFETIME_VALUE = 50000
DAILY_CAPACITY_THRESHOLD = 0.85
WEEKLY_CAPACITY_THRESHOLD = 0.90
VIP_RESPONSE_TIME_HOURS = 2
WEEKEND_RATE_MULTIPLIER = 1.5

RULES: Tuple[Rule, ...] = (
    Rule(
        name="emergency_response",
        priority=100,
        conditions=(flag_is_true("has_emergency_keywords"),),
        actions=("notify_on_call", "assign_nearest_tech", "send_emergency_alert"),
        reasoning=lambda f: f'Emergency detected in job "{f.get("job_title")}". Immediate response required.',
        feature_flag="FEATURE_EMERGENCY",
    ),
    Rule(
        name="vip_client_handler",
        priority=90,
        conditions=(at_least("client_lifetime_value", VIP_LIFETIME_VALUE),),
        actions=("assign_best_tech", "notify_manager", "enable_priority_tracking"),
        reasoning=lambda f: (
            f"VIP client {f.get('client_name')} (LTV: ${f.get('client_lifetime_value'):,.0f}). "
            "Premium service activated."
        ),
        feature_flag="FEATURE_VIP",
        parameters={"response_time_hours": VIP_RESPONSE_TIME_HOURS},
    ),
    Rule(
        name="weekend_premium",
        priority=80,
        conditions=(one_of("day_of_week", WEEKEND_DAYS),),
        actions=("apply_weekend_rate", "confirm_availability"),
        reasoning=lambda f: "Weekend job detected. Premium rates will apply.",
        feature_flag="FEATURE_WEEKEND",
        parameters={"multiplier": WEEKEND_RATE_MULTIPLIER},
    ),
    Rule(
        name="new_client_onboarding",
        priority=70,
        conditions=(flag_is_true("is_new_client"),),
        actions=("send_welcome_message", "assign_account_manager", "schedule_follow_up"),
        reasoning=lambda f: f"New client {f.get('client_name')} detected. Initiating onboarding sequence.",
        feature_flag="FEATURE_ONBOARDING",
    ),
    Rule(
        name="capacity_management",
        priority=60,
        conditions=(
            at_least("current_capacity", DAILY_CAPACITY_THRESHOLD),
            at_least("weekly_capacity", WEEKLY_CAPACITY_THRESHOLD),
        ),
        actions=("warn_capacity", "suggest_rescheduling", "notify_scheduler"),
        reasoning=lambda f: f"Capacity at {f.get('current_capacity', 0) * 100:.0f}%. Management intervention needed.",
        feature_flag="FEATURE_CAPACITY",
    ),
    Rule(
        name="auto_assignment",
        priority=50,
        conditions=(unassigned_with_available_tech(),),
        actions=("auto_assign_tech", "notify_assignment"),
        reasoning=lambda f: "Unassigned job detected. Auto-assigning to available technician.",
        feature_flag="FEATURE_AUTO_ASSIGNMENT",
    ),
    Rule(
        name="quality_control",
        priority=40,
        conditions=(one_of("job_type", INSPECTION_JOB_TYPES),),
        actions=("schedule_inspection", "create_checklist"),
        reasoning=lambda f: f"Quality control required for {f.get('job_title')}. Scheduling inspection.",
        feature_flag="FEATURE_QUALITY",
    ),
)


class RuleEngine:
    """Evaluates a fixed rule table against a FeatureSet."""

    def __init__(self, rules=RULES):
        self.rules = tuple(rules)

    @classmethod
    def from_config(cls, config) -> "RuleEngine":
        """Build the engine with rules switched off by feature flags removed."""
        enabled = []
        for rule in RULES:
            if rule.feature_flag and not getattr(config, rule.feature_flag, True):
                logger.info("Rule disabled by feature flag", rule=rule.name, flag=rule.feature_flag)
                continue
            enabled.append(rule)
        return cls(enabled)

    def evaluate(self, features: Features) -> List[Decision]:
        """Return a Decision for every matching rule, highest priority first."""
        decisions = [rule.decide(features) for rule in self.rules if rule.matches(features)]
        # sorted() is stable: equal priorities keep table order
        return sorted(decisions, key=lambda d: d.priority, reverse=True)

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]
