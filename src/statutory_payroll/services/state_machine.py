"""Bonus and gratuity record state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from statutory_payroll.errors import InvalidTransitionError


class BonusStatus(str, Enum):
    """Bonus record status values."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    SUPERSEDED = "SUPERSEDED"


class GratuityStatus(str, Enum):
    """Gratuity record status values."""

    ACCRUING = "ACCRUING"
    ELIGIBLE = "ELIGIBLE"
    PAID = "PAID"
    SUPERSEDED = "SUPERSEDED"


class RecordStateMachine:
    """Forward-only state machine shared by both record kinds.

    Subclasses declare the transition table and the status sets; the
    classmethods below read them.
    """

    # {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: ClassVar[dict[str, list[str]]] = {}

    INITIAL: ClassVar[str]
    PAYABLE: ClassVar[str]  # only status from which PAID may be reached
    PAID: ClassVar[str]
    SUPERSEDED: ClassVar[str]

    # Statuses where recomputation may rewrite amounts in place
    CALCULATION_ALLOWED: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def all_statuses(cls) -> frozenset[str]:
        return frozenset(cls.VALID_TRANSITIONS)

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if recomputation is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED


class BonusStateMachine(RecordStateMachine):
    """State machine for bonus records.

    Allowed transitions:
    - PENDING → APPROVED
    - APPROVED → PAID
    - PENDING → SUPERSEDED
    - APPROVED → SUPERSEDED
    """

    VALID_TRANSITIONS = {
        BonusStatus.PENDING: [BonusStatus.APPROVED, BonusStatus.SUPERSEDED],
        BonusStatus.APPROVED: [BonusStatus.PAID, BonusStatus.SUPERSEDED],
        BonusStatus.PAID: [],  # Terminal state
        BonusStatus.SUPERSEDED: [],  # Terminal state
    }

    INITIAL = BonusStatus.PENDING
    PAYABLE = BonusStatus.APPROVED
    PAID = BonusStatus.PAID
    SUPERSEDED = BonusStatus.SUPERSEDED

    CALCULATION_ALLOWED = frozenset({BonusStatus.PENDING})


class GratuityStateMachine(RecordStateMachine):
    """State machine for gratuity records.

    Allowed transitions:
    - ACCRUING → ELIGIBLE (only once years of service reach the threshold)
    - ELIGIBLE → PAID
    - ACCRUING → SUPERSEDED
    - ELIGIBLE → SUPERSEDED
    """

    VALID_TRANSITIONS = {
        GratuityStatus.ACCRUING: [GratuityStatus.ELIGIBLE, GratuityStatus.SUPERSEDED],
        GratuityStatus.ELIGIBLE: [GratuityStatus.PAID, GratuityStatus.SUPERSEDED],
        GratuityStatus.PAID: [],  # Terminal state
        GratuityStatus.SUPERSEDED: [],  # Terminal state
    }

    INITIAL = GratuityStatus.ACCRUING
    PAYABLE = GratuityStatus.ELIGIBLE
    PAID = GratuityStatus.PAID
    SUPERSEDED = GratuityStatus.SUPERSEDED

    CALCULATION_ALLOWED = frozenset({GratuityStatus.ACCRUING, GratuityStatus.ELIGIBLE})

    @classmethod
    def status_for_eligibility(cls, current_status: str | None, is_eligible: bool) -> str:
        """Status after a recomputation.

        Eligibility only ever promotes ACCRUING to ELIGIBLE. Losing
        eligibility on an ELIGIBLE record would be a backward move, so the
        record has to be superseded instead.
        """
        if current_status is None:
            return GratuityStatus.ELIGIBLE if is_eligible else GratuityStatus.ACCRUING
        if is_eligible and cls.can_transition(current_status, GratuityStatus.ELIGIBLE):
            return GratuityStatus.ELIGIBLE
        if not is_eligible and current_status == GratuityStatus.ELIGIBLE:
            raise InvalidTransitionError(
                current_status,
                GratuityStatus.ACCRUING,
                "recomputed service is below the eligibility threshold; supersede to correct",
            )
        return current_status
