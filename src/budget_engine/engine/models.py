"""
Data models for the budget engine.

Uses dataclasses for the canonical Budget → Campaign → Category → Offer tree.
All monetary values use Decimal.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .money import ZERO, net

FLAT = "flat"
ITEMIZED = "itemized"
PRICING_MODES = (FLAT, ITEMIZED)

INDIVIDUAL = "individual"
SUM = "sum"
PACKAGE = "package"
COMBINATION_MODES = (INDIVIDUAL, SUM, PACKAGE)

OFFER_KINDS = ("film", "audio", "generic")


@dataclass
class TraceStep:
    """A single step in the computation trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class NormalizationWarning:
    """A field that was defaulted or repaired while reading a payload."""
    path: str
    field: str
    raw: Optional[str]
    message: str

    def __str__(self) -> str:
        location = f"{self.path}.{self.field}" if self.field else self.path
        return f"{location}: {self.message}"


@dataclass
class Option:
    """A priced sub-alternative nested inside an Offer."""
    id: str
    gross_value: Decimal = ZERO
    discount: Decimal = ZERO
    label: Optional[str] = None
    selected: bool = False

    @property
    def net_value(self) -> Decimal:
        return net(self.gross_value, self.discount)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "grossValue": self.gross_value,
            "discount": self.discount,
            "selected": self.selected,
        }


@dataclass
class Offer:
    """A supplier quote competing inside a flat Category."""
    id: str
    supplier: str = ""
    description: Optional[str] = None
    gross_value: Decimal = ZERO
    discount: Decimal = ZERO
    has_options: bool = False
    options: list[Option] = field(default_factory=list)
    selected: bool = False
    kind: str = "generic"
    coerced: bool = field(default=False, compare=False)  # an amount failed to parse and was read as 0

    @property
    def priced_by_options(self) -> bool:
        return self.has_options and len(self.options) > 0

    @property
    def own_net_value(self) -> Decimal:
        return net(self.gross_value, self.discount)

    @property
    def net_value(self) -> Decimal:
        """Own net value, or the cheapest option when priced by options."""
        if self.priced_by_options:
            return min(option.net_value for option in self.options)
        return self.own_net_value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier": self.supplier,
            "description": self.description,
            "kind": self.kind,
            "grossValue": self.gross_value,
            "discount": self.discount,
            "selected": self.selected,
            "hasOptions": self.has_options,
            "options": [option.to_dict() for option in self.options],
        }


@dataclass
class LineItem:
    """A unit-priced line inside an itemized Category."""
    id: str
    description: str = ""
    quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    discount: Decimal = ZERO
    kind: str = "generic"

    @property
    def gross_value(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def net_value(self) -> Decimal:
        return net(self.gross_value, self.discount)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "kind": self.kind,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "discount": self.discount,
        }


@dataclass
class Category:
    """A named cost bucket priced as cheapest offer (flat) or sum of items."""
    id: str
    name: str
    pricing_mode: str = FLAT
    visible: bool = True
    offers: list[Offer] = field(default_factory=list)
    items: list[LineItem] = field(default_factory=list)
    note: Optional[str] = None
    locked: bool = False

    @property
    def is_empty(self) -> bool:
        if self.pricing_mode == ITEMIZED:
            return len(self.items) == 0
        return len(self.offers) == 0

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "visible": self.visible,
            "pricingMode": self.pricing_mode,
            "note": self.note,
        }
        if self.pricing_mode == ITEMIZED:
            data["items"] = [item.to_dict() for item in self.items]
        else:
            data["offers"] = [offer.to_dict() for offer in self.offers]
        return data


@dataclass
class Campaign:
    """An ordered group of categories, one deliverable track of a budget."""
    id: str
    name: str
    categories: list[Category] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "categories": [category.to_dict() for category in self.categories],
        }


@dataclass
class Budget:
    """Canonical budget tree produced by the normalizer."""
    campaigns: list[Campaign] = field(default_factory=list)
    combination_mode: str = INDIVIDUAL
    package_discount_percent: Decimal = ZERO
    honorarium_percent: Decimal = ZERO
    honorarium_source: str = "default"  # "payload", "client" or "default"
    client: Optional[str] = None
    product: Optional[str] = None

    def iter_categories(self):
        """Yield (campaign, category) pairs in document order."""
        for campaign in self.campaigns:
            for category in campaign.categories:
                yield campaign, category

    def to_dict(self) -> dict:
        """Canonical payload; normalizing it again yields an equal tree."""
        return {
            "client": self.client,
            "product": self.product,
            "combinationMode": self.combination_mode,
            "packageDiscountPercent": self.package_discount_percent,
            "honorariumPercent": self.honorarium_percent,
            "honorariumSource": self.honorarium_source,
            "campaigns": [campaign.to_dict() for campaign in self.campaigns],
        }
