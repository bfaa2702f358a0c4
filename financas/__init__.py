"""
Financas - Source Package

A personal ledger that tracks deposits, debts and expenses for
a person and settles debt payments against their balance.

DESIGN PRINCIPLES:
1. Validate before touching any state
2. Money only moves inside a transaction
3. A balance never goes negative
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Financas Team"
