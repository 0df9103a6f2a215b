"""Exception hierarchy for loan servicing."""


class LoanServicingError(Exception):
    """Base exception for all loan servicing errors."""


class LoanNotFoundError(LoanServicingError):
    """Raised when a referenced loan does not exist."""


class InvalidLoanRequestError(LoanServicingError, ValueError):
    """Raised when a loan is requested with a non-positive amount or term count."""


class InvalidRepaymentError(LoanServicingError, ValueError):
    """Raised when a repayment amount is not positive."""


class UnsupportedCurrencyError(LoanServicingError, ValueError):
    """Raised when a currency code is not one the system handles."""


class CurrencyMismatchError(LoanServicingError, ValueError):
    """Raised when a repayment is offered in a currency other than the loan's."""


class RepaymentRejectedError(LoanServicingError):
    """Raised when a repayment is refused before anything is written."""

    def __init__(self, message: str, loan_id: str):
        super().__init__(message)
        self.loan_id = loan_id


class AlreadyRepaidError(RepaymentRejectedError):
    """Raised when a repayment targets a loan that is already settled."""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan {loan_id} is already repaid", loan_id)


class AmountExceedsOutstandingError(RepaymentRejectedError):
    """Raised when a repayment is larger than the loan's outstanding balance."""

    def __init__(self, loan_id: str, amount: int, outstanding_amount: int):
        super().__init__(
            f"Repayment of {amount} exceeds outstanding amount {outstanding_amount} "
            f"on loan {loan_id}",
            loan_id
        )
        self.amount = amount
        self.outstanding_amount = outstanding_amount


class ScheduleIntegrityError(LoanServicingError):
    """Raised when a loan's installments no longer agree with its balance."""
