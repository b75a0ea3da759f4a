"""
Action dispatch.

Actions are independent, fire-and-forget side effects identified by name.
A failing (or unknown) action is recorded and skipped; it never stops the
remaining actions or decisions. Nothing is rolled back.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from jobber_agent.agent.enrichment import topic_prefix
from jobber_agent.errors import UnknownActionError
from jobber_agent.logging_config import get_logger
from jobber_agent.models import ActionResult, Decision, Event

logger = get_logger(__name__)

# Used when a decision carries no rule parameters
DEFAULT_WEEKEND_MULTIPLIER = 1.5
DEFAULT_RESPONSE_TIME_HOURS = 4
FOLLOW_UP_DAYS = 7
INSPECTION_LEAD_DAYS = 2

CHECKLISTS = {
    "bathroom": ["Check for leaks at fixtures", "Verify grout and caulking", "Test ventilation fan"],
    "kitchen": ["Verify appliance hookups", "Check cabinet alignment", "Test plumbing under sink"],
}


@dataclass
class ActionContext:
    """Everything an action may need about the event it is acting on."""
    event: Event
    features: Dict[str, Any]
    jobber: Any = None
    notifier: Any = None
    decision: Optional[Decision] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def job_id(self) -> Optional[str]:
        return self.event.item_id if topic_prefix(self.event) == "JOB" else None

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.decision.parameters if self.decision else {}

    @property
    def available_techs(self) -> List[Dict[str, Any]]:
        return self.features.get("available_techs") or []


ACTIONS: Dict[str, Callable[[ActionContext], Dict[str, Any]]] = {}


def action(name: str):
    """Register an action implementation under `name`."""
    def decorator(func):
        ACTIONS[name] = func
        return func
    return decorator


def _notify(ctx: ActionContext, title: str, text: str, severity: str = "info") -> bool:
    if ctx.notifier is None:
        logger.info("No notifier configured", title=title)
        return False
    return ctx.notifier.send(
        title=title,
        text=text,
        severity=severity,
        context={
            "topic": ctx.event.topic_name,
            "item": ctx.event.item_id,
            "user": ctx.event.user_name,
        },
    )


def _assign(ctx: ActionContext, tech: Dict[str, Any]) -> Dict[str, Any]:
    """Assign the job to `tech` in Jobber when the event refers to a job."""
    if ctx.job_id and ctx.jobber is not None:
        ctx.jobber.assign_job(ctx.job_id, tech["id"])
    return {"assigned": True, "tech_id": tech["id"]}


# -------------------------
# Emergency response
# -------------------------
@action("notify_on_call")
def notify_on_call(ctx: ActionContext):
    logger.info("Notifying on-call personnel", item_id=ctx.event.item_id)
    notified = _notify(ctx, "On-call response needed", ctx.decision.reasoning if ctx.decision else "", "warning")
    return {"notified": notified, "method": "slack"}


@action("assign_nearest_tech")
def assign_nearest_tech(ctx: ActionContext):
    techs = ctx.available_techs
    if not techs:
        return {"assigned": False, "reason": "No available technicians"}
    city = ctx.features.get("city", "").lower()
    nearest = next((t for t in techs if city and str(t.get("city", "")).lower() == city), techs[0])
    logger.info("Assigning nearest technician", tech_id=nearest.get("id"), city=city)
    return _assign(ctx, nearest)


@action("send_emergency_alert")
def send_emergency_alert(ctx: ActionContext):
    logger.info("Sending emergency alert", item_id=ctx.event.item_id)
    alerted = _notify(
        ctx,
        "EMERGENCY",
        f'Emergency job "{ctx.features.get("job_title")}" reported by {ctx.event.user_name}',
        "critical",
    )
    return {"alerted": alerted, "channels": ["slack"]}


# -------------------------
# VIP clients
# -------------------------
@action("assign_best_tech")
def assign_best_tech(ctx: ActionContext):
    techs = ctx.available_techs
    if not techs:
        return {"assigned": False, "reason": "No available technicians"}
    best = max(techs, key=lambda t: t.get("rating") or 0)
    logger.info("Assigning best technician for VIP client", tech_id=best.get("id"))
    return _assign(ctx, best)


@action("notify_manager")
def notify_manager(ctx: ActionContext):
    rule = ctx.decision.rule if ctx.decision else None
    logger.info("Notifying manager", rule=rule)
    notified = _notify(ctx, f"Manager attention: {rule}", ctx.decision.reasoning if ctx.decision else "")
    return {"notified": notified, "rule": rule}


@action("enable_priority_tracking")
def enable_priority_tracking(ctx: ActionContext):
    hours = ctx.parameters.get("response_time_hours", DEFAULT_RESPONSE_TIME_HOURS)
    respond_by = datetime.utcnow() + timedelta(hours=hours)
    return {
        "enabled": True,
        "tracking_id": f"track-{ctx.event.item_id}",
        "respond_by": respond_by.isoformat(),
    }


# -------------------------
# Weekend premium
# -------------------------
@action("apply_weekend_rate")
def apply_weekend_rate(ctx: ActionContext):
    job_value = ctx.features.get("job_value") or 0
    multiplier = ctx.parameters.get("multiplier", DEFAULT_WEEKEND_MULTIPLIER)
    return {
        "applied": True,
        "multiplier": multiplier,
        "adjusted_total": round(job_value * multiplier, 2),
    }


@action("confirm_availability")
def confirm_availability(ctx: ActionContext):
    available = len(ctx.available_techs)
    return {"confirmed": available > 0, "available_techs": available}


# -------------------------
# New clients
# -------------------------
@action("send_welcome_message")
def send_welcome_message(ctx: ActionContext):
    client_name = ctx.features.get("client_name")
    sent = _notify(ctx, "New client", f"Send welcome package to {client_name}")
    return {"sent": sent, "client": client_name}


@action("assign_account_manager")
def assign_account_manager(ctx: ActionContext):
    manager = ctx.extra.get("account_manager")
    return {"assigned": manager is not None, "manager_id": manager}


@action("schedule_follow_up")
def schedule_follow_up(ctx: ActionContext):
    follow_up = datetime.utcnow() + timedelta(days=FOLLOW_UP_DAYS)
    return {"scheduled": True, "date": follow_up.isoformat()}


# -------------------------
# Capacity
# -------------------------
@action("warn_capacity")
def warn_capacity(ctx: ActionContext):
    capacity = ctx.features.get("current_capacity", 0)
    warned = _notify(ctx, "Capacity warning", f"Daily capacity at {capacity * 100:.0f}%", "warning")
    return {"warned": warned, "current_capacity": capacity}


@action("suggest_rescheduling")
def suggest_rescheduling(ctx: ActionContext):
    # Alternatives are the next three working days
    day = datetime.utcnow().date()
    alternatives = []
    while len(alternatives) < 3:
        day += timedelta(days=1)
        if day.weekday() < 5:
            alternatives.append(day.isoformat())
    return {"suggested": True, "alternatives": alternatives}


@action("notify_scheduler")
def notify_scheduler(ctx: ActionContext):
    notified = _notify(ctx, "Scheduling review", ctx.decision.reasoning if ctx.decision else "")
    return {"notified": notified}


# -------------------------
# Assignment
# -------------------------
@action("auto_assign_tech")
def auto_assign_tech(ctx: ActionContext):
    techs = ctx.available_techs
    if not techs or not ctx.job_id:
        return {"assigned": False, "reason": "No available technicians"}
    logger.info("Auto-assigning job", job_id=ctx.job_id, tech_id=techs[0].get("id"))
    return _assign(ctx, techs[0])


@action("notify_assignment")
def notify_assignment(ctx: ActionContext):
    notified = _notify(ctx, "Job assigned", f"Job {ctx.event.item_id} was auto-assigned")
    return {"notified": notified}


# -------------------------
# Quality control
# -------------------------
@action("schedule_inspection")
def schedule_inspection(ctx: ActionContext):
    inspection = datetime.utcnow() + timedelta(days=INSPECTION_LEAD_DAYS)
    return {"scheduled": True, "inspection_date": inspection.isoformat()}


@action("create_checklist")
def create_checklist(ctx: ActionContext):
    job_type = ctx.features.get("job_type") or ""
    return {
        "created": True,
        "checklist_id": f"check-{ctx.event.item_id}",
        "items": CHECKLISTS.get(job_type, []),
    }


class ActionDispatcher:
    """Runs the actions of each decision, recording a result per action."""

    def __init__(self, actions=None, jobber=None, notifier=None):
        self.actions = ACTIONS if actions is None else actions
        self.jobber = jobber
        self.notifier = notifier

    def execute_action(self, name: str, ctx: ActionContext) -> Dict[str, Any]:
        func = self.actions.get(name)
        if func is None:
            raise UnknownActionError(name)
        return func(ctx)

    def execute_decisions(self, decisions: List[Decision], event: Event,
                          features: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> List[ActionResult]:
        results = []

        for decision in decisions:
            logger.info(
                "Executing decision",
                rule=decision.rule,
                actions=list(decision.actions),
            )
            ctx = ActionContext(
                event=event,
                features=features,
                jobber=self.jobber,
                notifier=self.notifier,
                decision=decision,
                extra=extra or {},
            )
            for name in decision.actions:
                try:
                    result = self.execute_action(name, ctx)
                    results.append(ActionResult(action=name, success=True, result=result))
                except Exception as e:
                    logger.error("Action failed", action=name, rule=decision.rule, error=str(e), exc_info=True)
                    results.append(ActionResult(action=name, success=False, error=str(e)))

        return results
