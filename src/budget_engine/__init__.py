"""
Budget Engine Package

Quote aggregation and pricing engine for advertising production budgets.
Normalizes stored budget payloads, picks the winning quote of every category
and totals campaigns under individual, summed or package presentation.
"""

__version__ = "1.0.0"
