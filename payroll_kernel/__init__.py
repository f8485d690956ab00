"""
Payroll Kernel - wage payment governance

A transactional payroll core with:
- Deterministic wage and provident fund calculation
- Payment lifecycle state machine (draft, approval, payment, cancellation)
- Work record locking coupled to at most one active payment
- Immutable line item snapshots and an append-only payment history
"""

__version__ = "0.1.0"
