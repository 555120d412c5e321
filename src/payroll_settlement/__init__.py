"""Payroll settlement engine.

Generates monthly compensation records, drives them through
draft/approved/paid/cancelled and posts an idempotent ledger expense when a
record is paid.
"""

__version__ = "0.1.0"
