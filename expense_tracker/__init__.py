"""
Expense Tracker - Source Package

A personal expense tracker with a local, transactional Expense Store.

DESIGN PRINCIPLES:
1. Amounts are exact (integer cents in storage)
2. Fail visibly: storage faults reach the caller
3. No silent corrections
4. Every write is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
