"""
Loan Data Model

Plain records for loans, their scheduled repayments (installments) and the
receipts of repayments actually received. Statuses are never set freely;
they are derived from outstanding amounts by the helpers below.
"""

from datetime import datetime, date
from dataclasses import dataclass, field
from typing import Dict, List, Any
from enum import Enum

from .storage import StorageRecord


class PaymentStatus(Enum):
    """Repayment status shared by loans and scheduled repayments"""
    DUE = "due"            # Nothing paid yet
    PARTIAL = "partial"    # Installments only: partly paid
    REPAID = "repaid"      # Fully settled


def derive_installment_status(outstanding_amount: int, amount: int) -> PaymentStatus:
    """
    Derive a scheduled repayment's status from its outstanding amount

    Args:
        outstanding_amount: Unpaid part of the installment
        amount: Scheduled installment amount

    Returns:
        REPAID when nothing is outstanding, DUE when nothing has been paid,
        PARTIAL otherwise

    Raises:
        ValueError: If outstanding_amount is outside [0, amount]
    """
    if outstanding_amount < 0 or outstanding_amount > amount:
        raise ValueError(
            f"Outstanding amount {outstanding_amount} outside range 0..{amount}"
        )
    if outstanding_amount == 0:
        return PaymentStatus.REPAID
    if outstanding_amount == amount:
        return PaymentStatus.DUE
    return PaymentStatus.PARTIAL


def derive_loan_status(outstanding_amount: int) -> PaymentStatus:
    """Derive a loan's status: REPAID at zero outstanding, DUE otherwise"""
    if outstanding_amount < 0:
        raise ValueError(f"Loan outstanding amount cannot be negative: {outstanding_amount}")
    return PaymentStatus.REPAID if outstanding_amount == 0 else PaymentStatus.DUE


@dataclass
class ScheduledRepayment(StorageRecord):
    """One installment due within a loan's term"""
    loan_id: str
    amount: int
    outstanding_amount: int
    currency_code: str
    due_date: date
    status: PaymentStatus = PaymentStatus.DUE

    @property
    def is_repaid(self) -> bool:
        return self.status == PaymentStatus.REPAID

    @property
    def paid_amount(self) -> int:
        return self.amount - self.outstanding_amount

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['due_date'] = self.due_date.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduledRepayment':
        data = dict(data)
        data['due_date'] = date.fromisoformat(data['due_date'])
        data['status'] = PaymentStatus(data['status'])
        return super().from_dict(data)


@dataclass
class Loan(StorageRecord):
    """Installment loan with its repayment schedule"""
    customer_id: str
    amount: int
    terms: int
    currency_code: str
    processed_at: date
    outstanding_amount: int
    status: PaymentStatus = PaymentStatus.DUE
    scheduled_repayments: List[ScheduledRepayment] = field(default_factory=list)

    @property
    def is_repaid(self) -> bool:
        return self.status == PaymentStatus.REPAID

    @property
    def repaid_amount(self) -> int:
        return self.amount - self.outstanding_amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage; installments are stored separately"""
        result = super().to_dict()
        result.pop('scheduled_repayments')
        result['processed_at'] = self.processed_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = dict(data)
        data['processed_at'] = date.fromisoformat(data['processed_at'])
        data['status'] = PaymentStatus(data['status'])
        return super().from_dict(data)


@dataclass(frozen=True)
class ReceivedRepayment:
    """
    Immutable receipt of money received against a loan

    Receipts are append-only, so unlike the other records this one carries
    no updated_at and cannot be modified after creation.
    """
    id: str
    created_at: datetime
    loan_id: str
    amount: int
    currency_code: str
    received_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'loan_id': self.loan_id,
            'amount': self.amount,
            'currency_code': self.currency_code,
            'received_at': self.received_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReceivedRepayment':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            loan_id=data['loan_id'],
            amount=data['amount'],
            currency_code=data['currency_code'],
            received_at=datetime.fromisoformat(data['received_at']),
        )
