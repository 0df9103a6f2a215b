"""
Loan Servicing

Installment loan tracking: amortization schedules, repayment receipts and
oldest-first allocation of each repayment across scheduled installments.
All amounts are integer minor currency units.
"""

__version__ = "1.0.0"
