"""
Loan Repository Module

Explicit load/save functions mapping loans, scheduled repayments and received
repayments onto a StorageInterface. Multi-record writes run inside
``storage.atomic()`` so they commit together or not at all.
"""

from typing import List, Optional

from .storage import StorageInterface
from .models import Loan, ScheduledRepayment, ReceivedRepayment


class LoanRepository:
    """Persistence for loans and their repayment records"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

        self.loans_table = "loans"
        self.scheduled_table = "scheduled_repayments"
        self.received_table = "received_repayments"

    def create_loan_with_installments(self, loan: Loan) -> None:
        """Insert a new loan and its whole schedule as one batch"""
        with self.storage.atomic():
            if self.storage.exists(self.loans_table, loan.id):
                raise ValueError(f"Loan {loan.id} already exists")
            self.storage.save(self.loans_table, loan.id, loan.to_dict())
            self.storage.save_many(
                self.scheduled_table,
                [(item.id, item.to_dict()) for item in loan.scheduled_repayments]
            )

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Load a loan with its scheduled repayments ordered by due date"""
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            return None
        loan = Loan.from_dict(data)
        loan.scheduled_repayments = self.get_scheduled_repayments(loan_id)
        return loan

    def get_scheduled_repayments(self, loan_id: str) -> List[ScheduledRepayment]:
        """Scheduled repayments of a loan in ascending due-date order"""
        found = self.storage.find(self.scheduled_table, {"loan_id": loan_id})
        installments = [ScheduledRepayment.from_dict(data) for data in found]
        installments.sort(key=lambda item: item.due_date)
        return installments

    def get_customer_loans(self, customer_id: str) -> List[Loan]:
        """All loans of a customer, oldest first"""
        found = self.storage.find(self.loans_table, {"customer_id": customer_id})
        loans = []
        for data in found:
            loan = Loan.from_dict(data)
            loan.scheduled_repayments = self.get_scheduled_repayments(loan.id)
            loans.append(loan)
        loans.sort(key=lambda item: (item.processed_at, item.created_at))
        return loans

    def update_loan(self, loan: Loan) -> None:
        """Persist a loan's mutable fields"""
        if not self.storage.exists(self.loans_table, loan.id):
            raise ValueError(f"Loan {loan.id} not found")
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

    def update_installments(self, installments: List[ScheduledRepayment]) -> None:
        """Persist changed scheduled repayments"""
        with self.storage.atomic():
            for item in installments:
                if not self.storage.exists(self.scheduled_table, item.id):
                    raise ValueError(f"Scheduled repayment {item.id} not found")
                self.storage.save(self.scheduled_table, item.id, item.to_dict())

    def create_receipt(self, receipt: ReceivedRepayment) -> None:
        """Append a received repayment; receipts are never overwritten"""
        if self.storage.exists(self.received_table, receipt.id):
            raise ValueError(f"Received repayment {receipt.id} already recorded")
        self.storage.save(self.received_table, receipt.id, receipt.to_dict())

    def get_receipts(self, loan_id: str) -> List[ReceivedRepayment]:
        """Received repayments of a loan ordered by received_at"""
        found = self.storage.find(self.received_table, {"loan_id": loan_id})
        receipts = [ReceivedRepayment.from_dict(data) for data in found]
        receipts.sort(key=lambda item: item.received_at)
        return receipts
