"""
Aggregator - Category → Campaign → Budget totals under a combination mode.

Combination modes:
- individual: honorarium applied to each campaign; grand total is the sum
  of campaign totals
- sum: campaigns consolidated first, honorarium applied once
- package: consolidated subtotal reduced by the package discount, then the
  honorarium is applied to the discounted figure
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .models import Budget, Campaign, Category, ITEMIZED, INDIVIDUAL, PACKAGE
from .money import HUNDRED, ZERO, percent_of
from .selection import Selection, SelectionResolver


@dataclass
class CategoryTotals:
    """Subtotal of one category and whether it counts towards its campaign."""
    category_id: str
    name: str
    pricing_mode: str
    subtotal: Decimal
    visible: bool
    counted: bool
    winner_offer_id: Optional[str] = None
    winner_option_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "categoryId": self.category_id,
            "name": self.name,
            "pricingMode": self.pricing_mode,
            "subtotal": self.subtotal,
            "visible": self.visible,
            "counted": self.counted,
            "winnerOfferId": self.winner_offer_id,
            "winnerOptionId": self.winner_option_id,
        }


@dataclass
class CampaignTotals:
    """Per-campaign figures; honorarium is only set in individual mode."""
    campaign_id: str
    name: str
    subtotal: Decimal
    honorarium: Decimal
    total: Decimal
    categories: list[CategoryTotals] = field(default_factory=list)

    @property
    def counted_categories(self) -> list[CategoryTotals]:
        return [c for c in self.categories if c.counted]

    def to_dict(self) -> dict:
        return {
            "campaignId": self.campaign_id,
            "name": self.name,
            "subtotal": self.subtotal,
            "honorarium": self.honorarium,
            "total": self.total,
            "categories": [c.to_dict() for c in self.categories],
        }


@dataclass
class BudgetTotals:
    """All figures the rendering collaborators display, not just the total."""
    combination_mode: str
    per_campaign: list[CampaignTotals]
    combined_subtotal: Decimal
    discounted_subtotal: Decimal
    package_discount_percent: Decimal
    package_discount_amount: Optional[Decimal]
    honorarium_percent: Decimal
    honorarium_amount: Decimal
    grand_total: Decimal

    @property
    def categories_used(self) -> int:
        return sum(len(c.counted_categories) for c in self.per_campaign)

    def campaign(self, campaign_id: str) -> Optional[CampaignTotals]:
        return next((c for c in self.per_campaign if c.campaign_id == campaign_id), None)

    def to_dict(self) -> dict:
        return {
            "combinationMode": self.combination_mode,
            "perCampaign": [c.to_dict() for c in self.per_campaign],
            "combinedSubtotal": self.combined_subtotal,
            "discountedSubtotal": self.discounted_subtotal,
            "packageDiscountPercent": self.package_discount_percent,
            "packageDiscountAmount": self.package_discount_amount,
            "honorariumPercent": self.honorarium_percent,
            "honorariumAmount": self.honorarium_amount,
            "grandTotal": self.grand_total,
            "categoriesUsed": self.categories_used,
        }


class Aggregator:
    """Computes budget totals from a canonical tree and its winners."""

    def __init__(self, resolver: Optional[SelectionResolver] = None):
        self.resolver = resolver or SelectionResolver()

    def category_totals(self, category: Category,
                        selection: Optional[Selection]) -> CategoryTotals:
        if category.pricing_mode == ITEMIZED:
            subtotal = sum((item.net_value for item in category.items), ZERO)
        else:
            subtotal = selection.net_value if selection else ZERO

        return CategoryTotals(
            category_id=category.id,
            name=category.name,
            pricing_mode=category.pricing_mode,
            subtotal=subtotal,
            visible=category.visible,
            counted=category.visible and not category.is_empty,
            winner_offer_id=selection.offer_id if selection else None,
            winner_option_id=selection.option_id if selection else None,
        )

    def campaign_totals(self, campaign: Campaign, selections: dict[str, Selection],
                        honorarium_percent: Decimal) -> CampaignTotals:
        """Campaign subtotal plus its own honorarium at `honorarium_percent`."""
        categories = [
            self.category_totals(category, selections.get(category.id))
            for category in campaign.categories
        ]
        subtotal = sum((c.subtotal for c in categories if c.visible), ZERO)
        honorarium = percent_of(subtotal, honorarium_percent)
        return CampaignTotals(
            campaign_id=campaign.id,
            name=campaign.name,
            subtotal=subtotal,
            honorarium=honorarium,
            total=subtotal + honorarium,
            categories=categories,
        )

    def compute(self, budget: Budget,
                selections: Optional[dict[str, Selection]] = None) -> BudgetTotals:
        """
        Compute every total of a budget.

        Args:
            budget: Canonical budget tree
            selections: Winners keyed by category id; resolved here if omitted

        Returns:
            BudgetTotals with per-campaign and consolidated figures
        """
        if selections is None:
            selections = self.resolver.resolve_budget(budget)

        mode = budget.combination_mode
        honorarium_percent = budget.honorarium_percent
        per_campaign_percent = honorarium_percent if mode == INDIVIDUAL else ZERO

        per_campaign = [
            self.campaign_totals(campaign, selections, per_campaign_percent)
            for campaign in budget.campaigns
        ]
        combined = sum((c.subtotal for c in per_campaign), ZERO)

        discount_amount = None
        discounted = combined
        if mode == PACKAGE:
            discounted = combined * (HUNDRED - budget.package_discount_percent) / HUNDRED
            discount_amount = combined - discounted

        if mode == INDIVIDUAL:
            honorarium = sum((c.honorarium for c in per_campaign), ZERO)
            grand_total = sum((c.total for c in per_campaign), ZERO)
        else:
            # SUM and PACKAGE place the honorarium on the consolidated figure
            honorarium = percent_of(discounted, honorarium_percent)
            grand_total = discounted + honorarium

        return BudgetTotals(
            combination_mode=mode,
            per_campaign=per_campaign,
            combined_subtotal=combined,
            discounted_subtotal=discounted,
            package_discount_percent=budget.package_discount_percent if mode == PACKAGE else ZERO,
            package_discount_amount=discount_amount,
            honorarium_percent=honorarium_percent,
            honorarium_amount=honorarium,
            grand_total=grand_total,
        )
