"""Shared engine instance for the API routes."""
from budget_engine.engine import BudgetEngine

engine = BudgetEngine()
