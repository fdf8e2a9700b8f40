"""Payroll period state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"
    SUPERSEDED = "superseded"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        from_status = getattr(from_status, "value", from_status)
        to_status = getattr(to_status, "value", to_status)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollPeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → calculated
    - calculated → calculated (recalculate)
    - calculated → approved
    - approved → paid
    - calculated/approved/paid → superseded (correction)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.CALCULATED],
        PeriodStatus.CALCULATED: [
            PeriodStatus.CALCULATED,
            PeriodStatus.APPROVED,
            PeriodStatus.SUPERSEDED,
        ],
        PeriodStatus.APPROVED: [PeriodStatus.PAID, PeriodStatus.SUPERSEDED],
        PeriodStatus.PAID: [PeriodStatus.SUPERSEDED],
        PeriodStatus.SUPERSEDED: [],  # Terminal state
    }

    # Statuses where (re)calculation is allowed
    CALCULATION_ALLOWED = {
        PeriodStatus.DRAFT,
        PeriodStatus.CALCULATED,
    }

    # Statuses whose calculations count towards YTD figures
    YTD_COUNTED = {
        PeriodStatus.CALCULATED,
        PeriodStatus.APPROVED,
        PeriodStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if calculation is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
