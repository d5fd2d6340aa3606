"""Engine subpackage - normalization, selection and aggregation."""
from .budget_engine import BudgetEngine, Result
from .models import Budget, Campaign, Category, Offer, Option, LineItem
from .normalizer import PayloadNormalizer, normalize
from .selection import SelectionResolver, Selection
from .aggregator import Aggregator, BudgetTotals

__all__ = [
    'BudgetEngine', 'Result',
    'Budget', 'Campaign', 'Category', 'Offer', 'Option', 'LineItem',
    'PayloadNormalizer', 'normalize',
    'SelectionResolver', 'Selection',
    'Aggregator', 'BudgetTotals',
]
