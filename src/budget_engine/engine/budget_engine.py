"""
Budget Engine - Normalize → select → aggregate, with traceability.

Wraps the three engine stages behind one entry point and records:
- An execution trace for every stage
- Warnings for defaulted fields and suspicious winners
- A plain dict output for export and HTTP collaborators
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config.settings import get_settings, Settings
from ..services.honorarium_service import HonorariumTable
from .aggregator import Aggregator, BudgetTotals
from .models import Budget, TraceStep
from .normalizer import NormalizedBudget, PayloadNormalizer
from .selection import Selection, SelectionResolver

logger = logging.getLogger(__name__)


@dataclass
class Result:
    """Complete result of a budget computation."""
    budget: Budget
    shape: str
    selections: dict[str, Selection]
    totals: BudgetTotals
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the result-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a result-level warning, once."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable result trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Canonical tree, totals and warnings as plain data."""
        return {
            "shape": self.shape,
            "budget": self.budget.to_dict(),
            "totals": self.totals.to_dict(),
            "warnings": list(self.warnings),
        }


class BudgetEngine:
    """
    Stateless facade over the normalizer, selection resolver and aggregator.

    Pipeline:
    1. Normalize the stored payload into the canonical tree
    2. Resolve the winning offer of every flat category
    3. Aggregate category, campaign and budget totals
    """

    def __init__(self, settings: Optional[Settings] = None,
                 honorarium_table: Optional[HonorariumTable] = None):
        """Initialize engine with settings and the client honorarium table."""
        self.settings = settings or get_settings()
        if honorarium_table is None:
            honorarium_table = HonorariumTable.from_csv(self.settings.honorarium_table)
        self.honorarium_table = honorarium_table

        self.normalizer = PayloadNormalizer(self.settings, self.honorarium_table)
        self.resolver = SelectionResolver()
        self.aggregator = Aggregator(self.resolver)

    def normalize(self, payload) -> NormalizedBudget:
        """Canonical tree and normalization warnings for a payload."""
        return self.normalizer.normalize(payload)

    def compute(self, payload) -> Result:
        """
        Compute budget totals with full traceability.

        Args:
            payload: Stored budget payload in any supported shape, or a Budget

        Returns:
            Result dataclass with tree, winners, totals, trace and warnings
        """
        normalized = self.normalize(payload)
        budget = normalized.budget

        selections = self.resolver.resolve_budget(budget)
        totals = self.aggregator.compute(budget, selections)

        result = Result(
            budget=budget,
            shape=normalized.shape,
            selections=selections,
            totals=totals,
        )

        result.add_trace("Normalize", f"Read {normalized.shape} payload",
                         f"{len(budget.campaigns)} campaign(s)")
        for warning in normalized.warnings:
            result.add_warning(str(warning))

        for campaign, category in budget.iter_categories():
            selection = selections.get(category.id)
            if selection is None:
                continue
            winner = selection.offer.supplier or selection.offer.id
            if selection.option is not None:
                winner = f"{winner} / {selection.option.label or selection.option.id}"
            result.add_trace("Selection", f"{campaign.name} › {category.name} ({selection.reason})",
                             f"{winner} @ {selection.net_value}")
            for warning in selection.warnings:
                result.add_warning(warning)

        for campaign_totals in totals.per_campaign:
            result.add_trace("Campaign", f"{campaign_totals.name} subtotal",
                             str(campaign_totals.subtotal))

        result.add_trace("Combination", f"Mode {totals.combination_mode}",
                         str(totals.combined_subtotal))
        if totals.package_discount_amount is not None:
            result.add_trace("Package Discount", f"{totals.package_discount_percent}% off",
                             str(totals.package_discount_amount))
        result.add_trace("Honorarium",
                         f"{totals.honorarium_percent}% ({budget.honorarium_source})",
                         str(totals.honorarium_amount))
        result.add_trace("Grand Total", "Budget total", str(totals.grand_total))

        logger.debug("Computed budget total %s with %d warning(s)",
                     totals.grand_total, len(result.warnings))
        return result

    def calculate_totals(self, payload) -> dict:
        """
        Calculate totals only, as plain data.

        Returns:
            BudgetTotals.to_dict() for the payload
        """
        return self.compute(payload).totals.to_dict()
