"""
Amortization Schedule Module

Splits a loan principal into equal monthly installments. Integer division
leaves a remainder, which is carried entirely by the final installment so the
schedule always sums to the principal.
"""

from datetime import datetime, date
from typing import Callable, List
import calendar
import uuid

from .exceptions import InvalidLoanRequestError
from .models import ScheduledRepayment, PaymentStatus


def add_months(start_date: date, months: int) -> date:
    """
    Add calendar months to a date, clamping to the last day of short months

    Jan 31 plus one month is Feb 28 (Feb 29 in leap years), not an overflow
    into March, so every month of a schedule gets exactly one due date.
    """
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def split_amount(amount: int, terms: int) -> List[int]:
    """
    Split an amount into ``terms`` installment amounts

    Every installment gets ``amount // terms``; the last one also absorbs
    ``amount % terms``. The amount must be at least ``terms`` so that no
    installment is zero.

    >>> split_amount(5000, 3)
    [1666, 1666, 1668]
    """
    if amount <= 0:
        raise InvalidLoanRequestError(f"Loan amount must be positive, got {amount}")
    if terms < 1:
        raise InvalidLoanRequestError(f"Loan terms must be at least 1, got {terms}")
    if amount < terms:
        raise InvalidLoanRequestError(
            f"Loan amount {amount} cannot cover {terms} installments of at least 1"
        )

    base, remainder = divmod(amount, terms)
    amounts = [base] * terms
    amounts[-1] += remainder
    return amounts


def due_dates(processed_at: date, terms: int) -> List[date]:
    """Due date of installment i is processed_at plus i+1 months"""
    return [add_months(processed_at, index + 1) for index in range(terms)]


def generate_schedule(
    loan_id: str,
    amount: int,
    terms: int,
    currency_code: str,
    processed_at: date,
    now: datetime,
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4())
) -> List[ScheduledRepayment]:
    """
    Generate the scheduled repayments for a new loan

    Args:
        loan_id: Loan the installments belong to
        amount: Principal in minor units
        terms: Number of monthly installments
        currency_code: Loan currency, inherited by every installment
        processed_at: Loan start date
        now: Timestamp used for created_at/updated_at
        id_factory: Generates installment ids

    Returns:
        Installments ordered by due date, all DUE with nothing paid
    """
    return [
        ScheduledRepayment(
            id=id_factory(),
            created_at=now,
            updated_at=now,
            loan_id=loan_id,
            amount=installment_amount,
            outstanding_amount=installment_amount,
            currency_code=currency_code,
            due_date=due_date,
            status=PaymentStatus.DUE
        )
        for installment_amount, due_date in zip(
            split_amount(amount, terms), due_dates(processed_at, terms)
        )
    ]
