"""
Loan Service Module

Issues installment loans and records repayments against them. Each operation
runs as one storage transaction; repayments additionally hold a per-loan lock
so allocation against the same loan is serialized.
"""

from datetime import datetime, timezone, date, time
from typing import Callable, Iterable, List, Optional, Union
import uuid

from .allocation import apply_repayment
from .config import LoanServicingConfig, get_config
from .currency import validate_currency_code, format_minor_units
from .exceptions import (
    AlreadyRepaidError, CurrencyMismatchError, LoanNotFoundError, LoanServicingError
)
from .locks import LoanLockRegistry
from .logging_config import get_logger, log_action, setup_logging
from .models import Loan, ReceivedRepayment, ScheduledRepayment, PaymentStatus
from .repository import LoanRepository
from .schedule import generate_schedule, split_amount
from .storage import StorageInterface, create_storage


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_datetime(value: Union[date, datetime]) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class LoanService:
    """
    Loan issuance and repayment

    Args:
        storage: Storage backend holding loans and repayment records
        clock: Returns the current time; used when callers omit dates
        supported_currencies: Currency codes accepted for new loans
        default_currency: Currency used when create_loan gets no code
        locks: Per-loan lock registry, shared between services that use
            the same storage
    """

    def __init__(
        self,
        storage: StorageInterface,
        clock: Clock = utc_now,
        supported_currencies: Optional[Iterable[str]] = None,
        locks: Optional[LoanLockRegistry] = None,
        default_currency: str = "TRY"
    ):
        self.storage = storage
        self.repository = LoanRepository(storage)
        self.clock = clock
        self.supported_currencies = (
            list(supported_currencies) if supported_currencies is not None else None
        )
        self.locks = locks or LoanLockRegistry()
        self.default_currency = default_currency
        self.logger = get_logger("loan_servicing.service")

    @classmethod
    def from_config(cls, config: Optional[LoanServicingConfig] = None) -> 'LoanService':
        """Build a service whose storage, currencies and logging follow configuration"""
        config = config or get_config()
        setup_logging(config.log_level, log_format=config.log_format)
        return cls(
            create_storage(config),
            supported_currencies=config.supported_currencies,
            default_currency=config.default_currency
        )

    def _now(self) -> datetime:
        # Clock values without a timezone are taken as UTC
        return _as_datetime(self.clock())

    def create_loan(
        self,
        customer_id: str,
        amount: int,
        currency_code: Optional[str],
        terms: int,
        processed_at: Optional[Union[date, datetime]] = None
    ) -> Loan:
        """
        Issue a loan with an equal-installment monthly schedule

        Args:
            customer_id: Borrower identifier (opaque)
            amount: Principal in minor currency units, must be positive
            currency_code: Loan currency; None uses the default currency
            terms: Number of monthly installments, at least 1
            processed_at: Loan start date (defaults to today)

        Returns:
            The persisted Loan with its scheduled repayments

        Raises:
            InvalidLoanRequestError: Non-positive amount or terms
            UnsupportedCurrencyError: Unknown or disabled currency
        """
        if currency_code is None:
            currency_code = self.default_currency
        currency_code = validate_currency_code(currency_code, self.supported_currencies)
        split_amount(amount, terms)  # validates amount and terms

        now = self._now()
        start = _as_date(processed_at) if processed_at is not None else now.date()
        loan_id = str(uuid.uuid4())

        loan = Loan(
            id=loan_id,
            created_at=now,
            updated_at=now,
            customer_id=customer_id,
            amount=amount,
            terms=terms,
            currency_code=currency_code,
            processed_at=start,
            outstanding_amount=amount,
            status=PaymentStatus.DUE,
            scheduled_repayments=generate_schedule(
                loan_id, amount, terms, currency_code, start, now
            )
        )

        self.repository.create_loan_with_installments(loan)

        log_action(
            self.logger, "info", f"Loan created: {format_minor_units(amount, currency_code)}",
            action="create_loan", loan_id=loan.id, resource=f"customer:{customer_id}",
            extra={
                "amount": amount,
                "currency_code": currency_code,
                "terms": terms,
                "processed_at": start.isoformat(),
                "installments": [item.amount for item in loan.scheduled_repayments]
            }
        )

        return loan

    def repay_loan(
        self,
        loan: Union[Loan, str],
        received_amount: int,
        currency_code: str,
        received_at: Optional[Union[date, datetime]] = None
    ) -> Loan:
        """
        Record a repayment and allocate it oldest-installment-first

        The loan is reloaded under its lock, so a stale Loan object is fine:
        only its id is used. The receipt records the amount as given, the
        currency code upper-cased, and received_at as an aware datetime (a
        plain date becomes midnight UTC, a naive datetime is taken as UTC).

        Args:
            loan: Loan being repaid, or its id
            received_amount: Amount received in minor units
            currency_code: Currency the money arrived in; must match the loan
            received_at: When the money arrived (defaults to now)

        Returns:
            The updated Loan with its scheduled repayments

        Raises:
            LoanNotFoundError: Unknown loan
            InvalidRepaymentError: Non-positive amount
            CurrencyMismatchError: Currency differs from the loan's
            AlreadyRepaidError: Loan is already repaid (checked first)
            AmountExceedsOutstandingError: Amount is above the outstanding balance
        """
        loan_id = loan.id if isinstance(loan, Loan) else loan
        received_at = _as_datetime(received_at) if received_at is not None else self._now()

        with self.locks.hold(loan_id), self.storage.atomic():
            # Reload inside the transaction; the stored balance is authoritative
            loan = self.get_loan(loan_id)

            try:
                if loan.status == PaymentStatus.REPAID:
                    raise AlreadyRepaidError(loan.id)
                if currency_code.upper() != loan.currency_code:
                    raise CurrencyMismatchError(
                        f"Loan {loan.id} is in {loan.currency_code}, "
                        f"repayment offered in {currency_code}"
                    )

                now = self._now()
                allocations = apply_repayment(loan, received_amount, now)
            except (LoanServicingError, ValueError) as e:
                log_action(
                    self.logger, "warning", f"Repayment rejected: {e}",
                    action="repay_loan", loan_id=loan.id,
                    extra={
                        "amount": received_amount,
                        "currency_code": currency_code,
                        "outstanding_amount": loan.outstanding_amount,
                        "status": loan.status.value,
                        "reason": type(e).__name__
                    }
                )
                raise

            touched = {allocation.scheduled_repayment_id for allocation in allocations}
            receipt = ReceivedRepayment(
                id=str(uuid.uuid4()),
                created_at=now,
                loan_id=loan.id,
                amount=received_amount,
                currency_code=currency_code.upper(),
                received_at=received_at
            )

            self.repository.update_installments(
                [item for item in loan.scheduled_repayments if item.id in touched]
            )
            self.repository.update_loan(loan)
            self.repository.create_receipt(receipt)

        for allocation in allocations:
            self.logger.debug(
                "Allocated %d to scheduled repayment %s (%s -> %s)",
                allocation.applied_amount, allocation.scheduled_repayment_id,
                allocation.status_before.value, allocation.status_after.value
            )

        log_action(
            self.logger, "info",
            f"Repayment received: {format_minor_units(received_amount, loan.currency_code)}",
            action="repay_loan", loan_id=loan.id, resource=f"received_repayment:{receipt.id}",
            extra={
                "amount": received_amount,
                "received_at": received_at.isoformat(),
                "outstanding_amount": loan.outstanding_amount,
                "status": loan.status.value,
                "installments_touched": len(allocations)
            }
        )

        return loan

    def get_loan(self, loan_id: str) -> Loan:
        """Get a loan with its scheduled repayments"""
        loan = self.repository.get_loan(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return loan

    def get_customer_loans(self, customer_id: str) -> List[Loan]:
        """Get all loans issued to a customer"""
        return self.repository.get_customer_loans(customer_id)

    def get_received_repayments(self, loan_id: str) -> List[ReceivedRepayment]:
        """Get repayment receipts of a loan, earliest first"""
        self.get_loan(loan_id)
        return self.repository.get_receipts(loan_id)

    def get_next_due_installment(self, loan_id: str) -> Optional[ScheduledRepayment]:
        """Earliest scheduled repayment that is not yet repaid, if any"""
        loan = self.get_loan(loan_id)
        for item in loan.scheduled_repayments:
            if item.status != PaymentStatus.REPAID:
                return item
        return None
