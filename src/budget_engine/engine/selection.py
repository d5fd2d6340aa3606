"""
Selection Resolver - Picks the winning offer (and option) per flat category.

Resolution order:
1. A human-selected offer wins; inside it, a human-selected option, else its
   cheapest option.
2. Otherwise every plain offer and every nested option compete as flat
   candidates and the lowest net value wins.
3. Ties go to the candidate that appears first.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .models import Budget, Category, Offer, Option, FLAT

MANUAL = "manual"
CHEAPEST = "cheapest"


@dataclass
class Selection:
    """The winning offer of a category and the net value it prices at."""
    category_id: str
    offer: Offer
    option: Optional[Option]
    net_value: Decimal
    reason: str  # "manual" or "cheapest"
    warnings: list[str] = field(default_factory=list)

    @property
    def offer_id(self) -> str:
        return self.offer.id

    @property
    def option_id(self) -> Optional[str]:
        return self.option.id if self.option else None


def iter_candidates(category: Category):
    """Yield (offer, option, net_value) for every priceable alternative, in order."""
    for offer in category.offers:
        if offer.priced_by_options:
            for option in offer.options:
                yield offer, option, option.net_value
        else:
            yield offer, None, offer.own_net_value


def _cheapest(candidates):
    """First candidate with the lowest net value; None when empty."""
    best = None
    for candidate in candidates:
        # strict < keeps the earliest candidate on ties
        if best is None or candidate[2] < best[2]:
            best = candidate
    return best


class SelectionResolver:
    """Resolves winners for flat categories. Never raises."""

    def resolve(self, category: Category) -> Optional[Selection]:
        """Return the winner of a flat category, or None if it has no offers."""
        if category.pricing_mode != FLAT or not category.offers:
            return None

        manual = next((offer for offer in category.offers if offer.selected), None)
        if manual is not None:
            selection = self._resolve_manual(category, manual)
        else:
            offer, option, value = _cheapest(iter_candidates(category))
            selection = Selection(
                category_id=category.id,
                offer=offer,
                option=option,
                net_value=value,
                reason=CHEAPEST,
            )

        if selection.offer.coerced:
            selection.warnings.append(
                f"Winning offer {selection.offer.id} in category '{category.name}' "
                "has amounts that could not be read and were priced as 0"
            )
        return selection

    def _resolve_manual(self, category: Category, offer: Offer) -> Selection:
        if not offer.priced_by_options:
            return Selection(
                category_id=category.id,
                offer=offer,
                option=None,
                net_value=offer.own_net_value,
                reason=MANUAL,
            )

        option = next((o for o in offer.options if o.selected), None)
        if option is None:
            _, option, _ = _cheapest((offer, o, o.net_value) for o in offer.options)
        return Selection(
            category_id=category.id,
            offer=offer,
            option=option,
            net_value=option.net_value,
            reason=MANUAL,
        )

    def resolve_budget(self, budget: Budget) -> dict[str, Selection]:
        """Winners for every flat category of the budget, keyed by category id."""
        selections = {}
        for _, category in budget.iter_categories():
            selection = self.resolve(category)
            if selection is not None:
                selections[category.id] = selection
        return selections
