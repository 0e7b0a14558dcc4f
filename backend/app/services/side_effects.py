"""Outcome type for best-effort calls (email, calendar, audit).

A failed side effect is logged and reported back as a value; it never turns into the
primary operation's error.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeliveryOutcome(str, Enum):
    sent = "sent"
    failed = "failed"
    skipped = "skipped"


@dataclass(frozen=True)
class SideEffectResult:
    channel: str
    outcome: DeliveryOutcome
    target: str | None = None
    detail: str | None = None
    value: object | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == DeliveryOutcome.sent


def attempt(
    channel: str,
    target: str | None,
    action: Callable[[], T],
    *,
    expected: tuple[type[Exception], ...],
) -> SideEffectResult:
    """Run ``action`` and convert the listed failure types into a failed result."""
    try:
        value = action()
    except expected as exc:
        logger.warning("%s side effect failed for %s: %s", channel, target or "-", exc, exc_info=True)
        return SideEffectResult(channel=channel, outcome=DeliveryOutcome.failed, target=target, detail=str(exc))
    return SideEffectResult(channel=channel, outcome=DeliveryOutcome.sent, target=target, value=value)


def skipped(channel: str, target: str | None, detail: str) -> SideEffectResult:
    logger.debug("%s side effect skipped for %s: %s", channel, target or "-", detail)
    return SideEffectResult(channel=channel, outcome=DeliveryOutcome.skipped, target=target, detail=detail)
