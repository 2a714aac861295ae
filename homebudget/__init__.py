"""
Home Budget - Source Package

A household budgeting assistant: monthly income and expenses, one-time
payments, savings, a cash ledger, loans and grocery bills, with derived
totals for a dashboard.

DESIGN PRINCIPLES:
1. Totals are pure functions of the snapshot
2. Edits return a new snapshot; nothing is mutated in place
3. AI suggests → the editing layer decides what lands in the budget
4. Every load, save and edit is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Home Budget Team"
