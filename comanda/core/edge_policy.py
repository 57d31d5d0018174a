"""Tabla única de qué hacer ante cada caso borde.

Los flows y el dispatcher consultan ``policy_for`` en vez de decidir en cada
call site si algo se descarta en silencio o se le responde al usuario.
"""

from __future__ import annotations

from enum import Enum


class EdgeAction(str, Enum):
    REJECT = "reject"
    SILENT_DROP = "silent_drop"
    REPROMPT = "reprompt"
    REFUSE = "refuse"
    WARN = "warn"
    FAIL_EVENT = "fail_event"


class EdgeCase(str, Enum):
    BAD_SIGNATURE = "bad_signature"
    RATE_LIMITED = "rate_limited"
    DUPLICATE_DELIVERY = "duplicate_delivery"
    UNEXTRACTABLE_EVENT = "unextractable_event"
    VALIDATION_FAILED = "validation_failed"
    EXTRACTION_FAILED = "extraction_failed"
    FEATURE_NOT_IN_PLAN = "feature_not_in_plan"
    QUOTA_EXCEEDED = "quota_exceeded"
    SUBSCRIPTION_INACTIVE = "subscription_inactive"
    SIDE_EFFECT_FAILED = "side_effect_failed"
    INVARIANT_VIOLATION = "invariant_violation"
    UNEXPECTED_ERROR = "unexpected_error"


EDGE_POLICY: dict[EdgeCase, EdgeAction] = {
    EdgeCase.BAD_SIGNATURE: EdgeAction.REJECT,
    EdgeCase.RATE_LIMITED: EdgeAction.SILENT_DROP,
    EdgeCase.DUPLICATE_DELIVERY: EdgeAction.SILENT_DROP,
    EdgeCase.UNEXTRACTABLE_EVENT: EdgeAction.SILENT_DROP,
    EdgeCase.VALIDATION_FAILED: EdgeAction.REPROMPT,
    EdgeCase.EXTRACTION_FAILED: EdgeAction.REPROMPT,
    EdgeCase.FEATURE_NOT_IN_PLAN: EdgeAction.REFUSE,
    EdgeCase.QUOTA_EXCEEDED: EdgeAction.REFUSE,
    EdgeCase.SUBSCRIPTION_INACTIVE: EdgeAction.REFUSE,
    EdgeCase.SIDE_EFFECT_FAILED: EdgeAction.WARN,
    EdgeCase.INVARIANT_VIOLATION: EdgeAction.FAIL_EVENT,
    EdgeCase.UNEXPECTED_ERROR: EdgeAction.FAIL_EVENT,
}

assert set(EDGE_POLICY) == set(EdgeCase), "every edge case needs an action"


def policy_for(case: EdgeCase) -> EdgeAction:
    return EDGE_POLICY[case]


def is_silent(case: EdgeCase) -> bool:
    return policy_for(case) in {EdgeAction.SILENT_DROP, EdgeAction.REJECT}
