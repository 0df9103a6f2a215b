"""
Repayment Allocation Module

Applies a received amount to a loan's scheduled repayments oldest-first
(waterfall). The functions here operate on in-memory records only; the
service persists whatever they change.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List

from .exceptions import (
    AlreadyRepaidError, AmountExceedsOutstandingError, InvalidRepaymentError,
    ScheduleIntegrityError
)
from .models import (
    Loan, ScheduledRepayment, PaymentStatus,
    derive_installment_status, derive_loan_status
)


@dataclass(frozen=True)
class Allocation:
    """Portion of a repayment applied to one scheduled repayment"""
    scheduled_repayment_id: str
    applied_amount: int
    outstanding_before: int
    outstanding_after: int
    status_before: PaymentStatus
    status_after: PaymentStatus


def validate_repayment(loan: Loan, amount: int) -> None:
    """
    Reject a repayment before anything is touched

    Raises:
        AlreadyRepaidError: loan is already settled, whatever the amount
        InvalidRepaymentError: amount is not positive
        AmountExceedsOutstandingError: amount is larger than the loan balance
    """
    if loan.status == PaymentStatus.REPAID:
        raise AlreadyRepaidError(loan.id)
    if amount <= 0:
        raise InvalidRepaymentError(f"Repayment amount must be positive, got {amount}")
    if amount > loan.outstanding_amount:
        raise AmountExceedsOutstandingError(loan.id, amount, loan.outstanding_amount)


def allocate_repayment(
    installments: List[ScheduledRepayment],
    amount: int,
    now: datetime
) -> List[Allocation]:
    """
    Apply ``amount`` to installments in ascending due-date order

    Fully repaid installments are skipped. Each touched installment has its
    outstanding amount reduced and its status re-derived.

    Args:
        installments: The loan's scheduled repayments (any order)
        amount: Amount to distribute, in minor units
        now: Timestamp recorded as updated_at on touched installments

    Returns:
        One Allocation per installment that received money

    Raises:
        ScheduleIntegrityError: If the unpaid installments cannot absorb the
            whole amount. Raised before any installment is modified.
    """
    ordered = sorted(installments, key=lambda item: item.due_date)
    unpaid = [item for item in ordered if item.status != PaymentStatus.REPAID]

    capacity = sum(item.outstanding_amount for item in unpaid)
    if amount > capacity:
        raise ScheduleIntegrityError(
            f"Installments can absorb {capacity} but {amount} was offered"
        )

    allocations = []
    remaining = amount
    for installment in unpaid:
        if remaining <= 0:
            break

        applied = min(remaining, installment.outstanding_amount)
        before = installment.outstanding_amount
        status_before = installment.status

        installment.outstanding_amount -= applied
        installment.status = derive_installment_status(
            installment.outstanding_amount, installment.amount
        )
        installment.updated_at = now
        remaining -= applied

        allocations.append(Allocation(
            scheduled_repayment_id=installment.id,
            applied_amount=applied,
            outstanding_before=before,
            outstanding_after=installment.outstanding_amount,
            status_before=status_before,
            status_after=installment.status
        ))

    return allocations


def apply_repayment(loan: Loan, amount: int, now: datetime) -> List[Allocation]:
    """
    Validate and apply a repayment to a loan and its installments in memory

    On any error the loan and its installments are left untouched.
    """
    validate_repayment(loan, amount)

    installment_total = sum(item.outstanding_amount for item in loan.scheduled_repayments)
    if installment_total != loan.outstanding_amount:
        raise ScheduleIntegrityError(
            f"Loan {loan.id} outstanding {loan.outstanding_amount} does not match "
            f"installment total {installment_total}"
        )

    allocations = allocate_repayment(loan.scheduled_repayments, amount, now)

    loan.outstanding_amount -= amount
    loan.status = derive_loan_status(loan.outstanding_amount)
    loan.updated_at = now
    return allocations


def check_loan_invariants(loan: Loan) -> None:
    """
    Verify the cross-entity invariants of a loan

    Raises:
        ScheduleIntegrityError: If the schedule total, the outstanding total
            or any status disagrees with the amounts
    """
    if sum(item.amount for item in loan.scheduled_repayments) != loan.amount:
        raise ScheduleIntegrityError(f"Schedule of loan {loan.id} does not sum to {loan.amount}")
    if sum(item.outstanding_amount for item in loan.scheduled_repayments) != loan.outstanding_amount:
        raise ScheduleIntegrityError(f"Outstanding amounts of loan {loan.id} disagree")
    if loan.status != derive_loan_status(loan.outstanding_amount):
        raise ScheduleIntegrityError(f"Loan {loan.id} status {loan.status.value} is stale")
    for item in loan.scheduled_repayments:
        if item.status != derive_installment_status(item.outstanding_amount, item.amount):
            raise ScheduleIntegrityError(
                f"Scheduled repayment {item.id} status {item.status.value} is stale"
            )
