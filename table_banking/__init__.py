"""
Table Banking Loan Engine

Loan lifecycle and repayment engine for savings groups: member loan
requests, role-checked approval, flat-interest repayment schedules,
installment payments with late penalties, and a hash-chained audit trail.
All money uses Decimal.
"""

__version__ = "1.0.0"
