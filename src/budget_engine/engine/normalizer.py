"""
Payload Normalizer - Maps stored budget payloads onto the canonical tree.

Budget versions were persisted by several generations of the editor, so the
same budget can arrive as:

1. Canonical: campaigns[].categories[]
2. Flat legacy: top-level categories[] with no campaigns
3. Quote-list legacy: quotes_film[] / quotes_audio[] per campaign (or at the
   top level for single-film budgets)
4. Anything else: one empty campaign

Shape detection happens once, in `PayloadNormalizer.normalize`; everything
downstream only sees the canonical `Budget`. Reading never raises: missing
or malformed fields are defaulted and reported as `NormalizationWarning`s.
"""
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ..config.settings import Settings, get_settings
from .models import (
    Budget,
    Campaign,
    Category,
    LineItem,
    NormalizationWarning,
    Offer,
    Option,
    COMBINATION_MODES,
    FLAT,
    ITEMIZED,
    OFFER_KINDS,
)
from .money import ZERO, clamp_percent, parse_amount, parse_percent

logger = logging.getLogger(__name__)

# Stored payloads mix English, Portuguese, camelCase and snake_case keys
CAMPAIGNS_KEYS = ('campaigns', 'campanhas')
CATEGORIES_KEYS = ('categories', 'categorias')
OFFERS_KEYS = ('offers', 'fornecedores', 'quotes')
ITEMS_KEYS = ('items', 'itens')
OPTIONS_KEYS = ('options', 'opcoes')
FILM_QUOTES_KEYS = ('quotes_film', 'quotesFilm', 'filmQuotes', 'film_quotes')
AUDIO_QUOTES_KEYS = ('quotes_audio', 'quotesAudio', 'audioQuotes', 'audio_quotes')
INCLUDE_AUDIO_KEYS = ('includeAudio', 'include_audio', 'inclui_audio', 'incluiAudio')

NAME_KEYS = ('name', 'nome')
SUPPLIER_KEYS = ('supplier', 'produtora', 'fornecedor', 'name', 'nome')
DESCRIPTION_KEYS = ('description', 'escopo', 'descritivo', 'descricao')
OPTION_LABEL_KEYS = ('label', 'nome', 'name', 'escopo', 'descricao', 'description')
GROSS_KEYS = ('grossValue', 'gross_value', 'valor', 'price', 'value')
DISCOUNT_KEYS = ('discount', 'desconto')
QUANTITY_KEYS = ('quantity', 'quantidade', 'qtd')
UNIT_PRICE_KEYS = ('unitPrice', 'unit_price', 'valorUnitario', 'valor_unitario')
SELECTED_KEYS = ('selected', 'selecionado', 'escolhido')
HAS_OPTIONS_KEYS = ('hasOptions', 'has_options', 'tem_opcoes', 'temOpcoes')
VISIBLE_KEYS = ('visible', 'visivel')
PRICING_MODE_KEYS = ('pricingMode', 'pricing_mode', 'modoPreco', 'modo_preco')
NOTE_KEYS = ('note', 'observacao', 'obs')
KIND_KEYS = ('kind', 'tipo')

COMBINATION_MODE_KEYS = ('combinationMode', 'combination_mode', 'combinarModo', 'combinar_modo')
PACKAGE_DISCOUNT_KEYS = ('packageDiscountPercent', 'package_discount_percent',
                         'descontoPacote', 'desconto_pacote')
HONORARIUM_KEYS = ('honorariumPercent', 'honorarium_percent', 'honorarioPerc', 'honorario_perc')
HONORARIUM_SOURCE_KEYS = ('honorariumSource', 'honorarium_source')
CLIENT_KEYS = ('client', 'cliente')
PRODUCT_KEYS = ('product', 'produto')

PRICING_MODE_ALIASES = {
    'flat': FLAT,
    'fechado': FLAT,
    'itemized': ITEMIZED,
    'itens': ITEMIZED,
    'items': ITEMIZED,
}

COMBINATION_MODE_ALIASES = {
    'individual': 'individual',
    'separado': 'individual',
    'sum': 'sum',
    'somar': 'sum',
    'package': 'package',
    'pacote': 'package',
}

KIND_ALIASES = {
    'film': 'film',
    'filme': 'film',
    'audio': 'audio',
    'áudio': 'audio',
    'generic': 'generic',
}

TRUE_STRINGS = {'true', '1', 'yes', 'y', 'sim', 's', 'on'}
FALSE_STRINGS = {'false', '0', 'no', 'n', 'nao', 'não', 'off', ''}

HONORARIUM_SOURCES = ('payload', 'client', 'default')


def _pick(raw: Mapping, keys):
    """Return the first non-None value among `keys`."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _has_any(raw: Mapping, keys) -> bool:
    return any(raw.get(key) is not None for key in keys)


def _as_list(raw: Mapping, keys):
    value = _pick(raw, keys)
    return value if isinstance(value, list) else None


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class NormalizedBudget:
    """Canonical budget plus everything that was repaired to build it."""
    budget: Budget
    shape: str
    warnings: list[NormalizationWarning] = field(default_factory=list)


class PayloadReader:
    """
    Field-level reading for one payload.

    Collects warnings and tracks identifiers so that campaign and category
    ids are unique across the budget, and offer/item/option ids are unique
    inside their parent.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.warnings: list[NormalizationWarning] = []
        self.campaign_ids: set[str] = set()
        self.category_ids: set[str] = set()

    def warn(self, path: str, field_name: str, raw, message: str):
        warning = NormalizationWarning(
            path=path,
            field=field_name,
            raw=None if raw is None else str(raw),
            message=message,
        )
        logger.warning("%s", warning)
        self.warnings.append(warning)

    # ------------------------------------------------------------------
    # Scalars
    # ------------------------------------------------------------------

    def amount(self, raw: Mapping, keys, path: str) -> tuple[Decimal, bool]:
        """Read a non-negative amount; returns (value, parsed_cleanly)."""
        value = _pick(raw, keys)
        amount, ok = parse_amount(value)
        if not ok:
            self.warn(path, keys[0], value, "unparsable amount, using 0")
            return ZERO, False
        if amount < ZERO:
            self.warn(path, keys[0], value, "negative amount, using 0")
            return ZERO, True
        return amount, True

    def percent(self, raw: Mapping, keys, path: str) -> Optional[Decimal]:
        """Read a percentage clamped to [0, 100]; None when absent."""
        value = _pick(raw, keys)
        percent, ok = parse_percent(value)
        if not ok:
            self.warn(path, keys[0], value, "unparsable percentage, using 0")
            return ZERO
        if percent is None:
            return None
        clamped = clamp_percent(percent)
        if clamped != percent:
            self.warn(path, keys[0], value, f"percentage outside [0, 100], using {clamped}")
        return clamped

    def flag(self, raw: Mapping, keys, path: str, default: bool) -> bool:
        value = _pick(raw, keys)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        text = str(value).strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        self.warn(path, keys[0], value, f"unrecognized flag, using {default}")
        return default

    @staticmethod
    def text(raw: Mapping, keys, default=None) -> Optional[str]:
        value = _pick(raw, keys)
        if value is None:
            return default
        text = str(value).strip()
        return text if text else default

    def kind(self, raw: Mapping, default: str) -> str:
        value = self.text(raw, KIND_KEYS)
        if value is None:
            return default
        kind = KIND_ALIASES.get(value.lower())
        if kind is None:
            # Types such as "imagem" or "cc" have no pricing meaning here
            return default if default in OFFER_KINDS else 'generic'
        return kind

    def identity(self, raw: Mapping, path: str, seen: set) -> str:
        """Keep the payload id when present and unused, else mint one."""
        value = raw.get('id')
        if value is None or str(value).strip() == '':
            new_id = _new_id()
        else:
            new_id = str(value).strip()
            if new_id in seen:
                self.warn(path, 'id', value, "duplicate id, generated a new one")
                new_id = _new_id()
        seen.add(new_id)
        return new_id

    def entries(self, values: Optional[list], path: str) -> list[tuple[int, Mapping]]:
        """Mapping entries of a list, skipping anything else with a warning."""
        result = []
        for index, value in enumerate(values or []):
            if isinstance(value, Mapping):
                result.append((index, value))
            else:
                self.warn(f"{path}[{index}]", '', value, "entry is not an object, skipped")
        return result

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def option(self, raw: Mapping, path: str, seen: set) -> tuple[Option, bool]:
        gross, gross_ok = self.amount(raw, GROSS_KEYS, path)
        discount, discount_ok = self.amount(raw, DISCOUNT_KEYS, path)
        option = Option(
            id=self.identity(raw, path, seen),
            gross_value=gross,
            discount=discount,
            label=self.text(raw, OPTION_LABEL_KEYS),
            selected=self.flag(raw, SELECTED_KEYS, path, False),
        )
        return option, not (gross_ok and discount_ok)

    def offer(self, raw: Mapping, path: str, seen: set, kind: str = 'generic') -> Offer:
        gross, gross_ok = self.amount(raw, GROSS_KEYS, path)
        discount, discount_ok = self.amount(raw, DISCOUNT_KEYS, path)
        coerced = not (gross_ok and discount_ok)

        options = []
        option_ids: set[str] = set()
        options_path = f"{path}.options"
        for index, entry in self.entries(_as_list(raw, OPTIONS_KEYS), options_path):
            option, option_coerced = self.option(entry, f"{options_path}[{index}]", option_ids)
            options.append(option)
            coerced = coerced or option_coerced

        has_options = self.flag(raw, HAS_OPTIONS_KEYS, path, bool(options))
        if has_options and not options:
            self.warn(path, HAS_OPTIONS_KEYS[0], True,
                      "offer marked with options but has none, priced by its own value")

        return Offer(
            id=self.identity(raw, path, seen),
            supplier=self.text(raw, SUPPLIER_KEYS, ''),
            description=self.text(raw, DESCRIPTION_KEYS),
            gross_value=gross,
            discount=discount,
            has_options=has_options,
            options=options,
            selected=self.flag(raw, SELECTED_KEYS, path, False),
            kind=self.kind(raw, kind),
            coerced=coerced,
        )

    def line_item(self, raw: Mapping, path: str, seen: set) -> LineItem:
        quantity, _ = self.amount(raw, QUANTITY_KEYS, path)
        unit_price, _ = self.amount(raw, UNIT_PRICE_KEYS, path)
        discount, _ = self.amount(raw, DISCOUNT_KEYS, path)
        return LineItem(
            id=self.identity(raw, path, seen),
            description=self.text(raw, DESCRIPTION_KEYS + NAME_KEYS, ''),
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            kind=self.kind(raw, 'generic'),
        )

    def pricing_mode(self, raw: Mapping, path: str, has_offers: bool, has_items: bool) -> str:
        value = self.text(raw, PRICING_MODE_KEYS)
        if value is not None:
            mode = PRICING_MODE_ALIASES.get(value.lower())
            if mode is not None:
                return mode
            self.warn(path, PRICING_MODE_KEYS[0], value, "unknown pricing mode")
        if has_items and not has_offers:
            return ITEMIZED
        return FLAT

    def category(self, raw: Mapping, path: str, default_name: str) -> Category:
        offers_raw = _as_list(raw, OFFERS_KEYS)
        items_raw = _as_list(raw, ITEMS_KEYS)
        mode = self.pricing_mode(raw, path, bool(offers_raw), bool(items_raw))

        offers: list[Offer] = []
        items: list[LineItem] = []
        if mode == ITEMIZED:
            if offers_raw:
                self.warn(path, OFFERS_KEYS[0], len(offers_raw),
                          "offers ignored in an itemized category")
            item_ids: set[str] = set()
            for index, entry in self.entries(items_raw, f"{path}.items"):
                items.append(self.line_item(entry, f"{path}.items[{index}]", item_ids))
        else:
            if items_raw:
                self.warn(path, ITEMS_KEYS[0], len(items_raw),
                          "line items ignored in a flat category")
            offer_ids: set[str] = set()
            for index, entry in self.entries(offers_raw, f"{path}.offers"):
                offers.append(self.offer(entry, f"{path}.offers[{index}]", offer_ids))

        name = self.text(raw, NAME_KEYS, default_name)
        return Category(
            id=self.identity(raw, path, self.category_ids),
            name=name,
            pricing_mode=mode,
            visible=self.flag(raw, VISIBLE_KEYS, path, True),
            offers=offers,
            items=items,
            note=self.text(raw, NOTE_KEYS),
            locked=name in self.settings.base_categories,
        )

    def quote_category(self, quotes: list, path: str, name: str, kind: str) -> Category:
        """Synthetic flat category built from a legacy quote list."""
        offers: list[Offer] = []
        offer_ids: set[str] = set()
        for index, entry in self.entries(quotes, path):
            offers.append(self.offer(entry, f"{path}[{index}]", offer_ids, kind=kind))
        category_id = _new_id()
        self.category_ids.add(category_id)
        return Category(
            id=category_id,
            name=name,
            pricing_mode=FLAT,
            offers=offers,
            locked=name in self.settings.base_categories,
        )

    def seeded_categories(self) -> list[Category]:
        categories = []
        for name in self.settings.base_categories:
            category_id = _new_id()
            self.category_ids.add(category_id)
            categories.append(Category(id=category_id, name=name, locked=True))
        return categories

    def campaign(self, raw: Mapping, path: str, default_name: str,
                 categories: list[Category]) -> Campaign:
        return Campaign(
            id=self.identity(raw, path, self.campaign_ids),
            name=self.text(raw, NAME_KEYS, default_name),
            categories=categories,
        )


# ----------------------------------------------------------------------
# Payload shapes
# ----------------------------------------------------------------------

def _is_quote_list_campaign(raw) -> bool:
    return (
        isinstance(raw, Mapping)
        and _as_list(raw, CATEGORIES_KEYS) is None
        and (_has_any(raw, FILM_QUOTES_KEYS) or _has_any(raw, AUDIO_QUOTES_KEYS))
    )


def _quote_list_campaign(raw: Mapping, identity: Mapping, path: str, reader: PayloadReader,
                         default_name: str, audio_default: bool = False) -> Campaign:
    """Film category from quotes_film, plus Audio when the campaign asks for it."""
    settings = reader.settings
    film_quotes = _as_list(raw, FILM_QUOTES_KEYS) or []
    audio_quotes = _as_list(raw, AUDIO_QUOTES_KEYS) or []

    categories = [
        reader.quote_category(film_quotes, f"{path}.quotes_film",
                              settings.film_category_name, 'film')
    ]
    include_audio = reader.flag(raw, INCLUDE_AUDIO_KEYS, path, audio_default)
    if include_audio and audio_quotes:
        categories.append(
            reader.quote_category(audio_quotes, f"{path}.quotes_audio",
                                  settings.audio_category_name, 'audio')
        )
    return reader.campaign(identity, path, default_name, categories)


class PayloadShape:
    """A recognized payload layout that can be read into campaigns."""
    name = 'abstract'

    def matches(self, payload) -> bool:
        raise NotImplementedError

    def read_campaigns(self, payload: Mapping, reader: PayloadReader) -> list[Campaign]:
        raise NotImplementedError


class CanonicalShape(PayloadShape):
    """campaigns[].categories[]"""
    name = 'canonical'

    def matches(self, payload) -> bool:
        if not isinstance(payload, Mapping):
            return False
        campaigns = _as_list(payload, CAMPAIGNS_KEYS)
        if campaigns is None:
            return False
        if any(isinstance(c, Mapping) and _as_list(c, CATEGORIES_KEYS) is not None
               for c in campaigns):
            return True
        return not any(_is_quote_list_campaign(c) for c in campaigns)

    def read_campaigns(self, payload, reader):
        campaigns = []
        for index, raw in reader.entries(_as_list(payload, CAMPAIGNS_KEYS), 'campaigns'):
            path = f"campaigns[{index}]"
            if _is_quote_list_campaign(raw):
                # Older campaigns saved next to migrated ones keep their quote lists
                campaigns.append(_quote_list_campaign(raw, raw, path, reader,
                                                      f"Campaign {index + 1}"))
                continue
            categories = [
                reader.category(entry, f"{path}.categories[{position}]", f"Category {position + 1}")
                for position, entry in reader.entries(_as_list(raw, CATEGORIES_KEYS),
                                                      f"{path}.categories")
            ]
            campaigns.append(reader.campaign(raw, path, f"Campaign {index + 1}", categories))
        return campaigns


class FlatCategoriesShape(PayloadShape):
    """Top-level categories[] with no campaigns."""
    name = 'flat_categories'

    def matches(self, payload) -> bool:
        return (
            isinstance(payload, Mapping)
            and _as_list(payload, CAMPAIGNS_KEYS) is None
            and _as_list(payload, CATEGORIES_KEYS) is not None
        )

    def read_campaigns(self, payload, reader):
        categories = [
            reader.category(entry, f"categories[{index}]", f"Category {index + 1}")
            for index, entry in reader.entries(_as_list(payload, CATEGORIES_KEYS), 'categories')
        ]
        return [reader.campaign({}, 'campaigns[0]', reader.settings.single_campaign_name,
                                categories)]


class QuoteListShape(PayloadShape):
    """quotes_film[] / quotes_audio[] per campaign or at the top level."""
    name = 'quote_list'

    def matches(self, payload) -> bool:
        if not isinstance(payload, Mapping):
            return False
        campaigns = _as_list(payload, CAMPAIGNS_KEYS)
        if campaigns is not None:
            return any(_is_quote_list_campaign(c) for c in campaigns)
        return _has_any(payload, FILM_QUOTES_KEYS) or _has_any(payload, AUDIO_QUOTES_KEYS)

    def read_campaigns(self, payload, reader):
        campaigns = _as_list(payload, CAMPAIGNS_KEYS)
        if campaigns is None:
            # Single-film budgets keep the quote lists at the top level and
            # include audio whenever quotes were entered for it
            audio_default = bool(_as_list(payload, AUDIO_QUOTES_KEYS))
            return [_quote_list_campaign(payload, {}, 'campaigns[0]', reader,
                                         reader.settings.single_campaign_name, audio_default)]
        return [
            _quote_list_campaign(raw, raw, f"campaigns[{index}]", reader, f"Campaign {index + 1}")
            for index, raw in reader.entries(campaigns, 'campaigns')
        ]


class FallbackShape(PayloadShape):
    """Unrecognized payloads become a single empty campaign."""
    name = 'fallback'

    def matches(self, payload) -> bool:
        return True

    def read_campaigns(self, payload, reader):
        return [reader.campaign({}, 'campaigns[0]', reader.settings.single_campaign_name,
                                reader.seeded_categories())]


DEFAULT_SHAPES = (CanonicalShape(), FlatCategoriesShape(), QuoteListShape(), FallbackShape())


class PayloadNormalizer:
    """
    Normalizes any stored budget payload into a canonical `Budget`.

    Resolution order for the honorarium percentage:
    1. Explicit percentage in the payload
    2. Client honorarium table, keyed by the payload's client name
    3. Settings default
    """

    def __init__(self, settings: Optional[Settings] = None, honorarium_table=None,
                 shapes=DEFAULT_SHAPES):
        self.settings = settings or get_settings()
        self.honorarium_table = honorarium_table
        self.shapes = shapes

    def detect_shape(self, payload) -> PayloadShape:
        for shape in self.shapes:
            if shape.matches(payload):
                return shape
        return FallbackShape()

    def normalize(self, payload) -> NormalizedBudget:
        """Build a fresh canonical tree; the payload is never modified."""
        if isinstance(payload, Budget):
            payload = payload.to_dict()

        reader = PayloadReader(self.settings)
        if payload is not None and not isinstance(payload, Mapping):
            reader.warn('payload', '', type(payload).__name__, "payload is not an object")

        shape = self.detect_shape(payload)
        meta = payload if isinstance(payload, Mapping) else {}

        budget = Budget(
            campaigns=shape.read_campaigns(payload, reader),
            combination_mode=self._combination_mode(meta, reader),
            package_discount_percent=reader.percent(meta, PACKAGE_DISCOUNT_KEYS, 'budget') or ZERO,
            client=reader.text(meta, CLIENT_KEYS),
            product=reader.text(meta, PRODUCT_KEYS),
        )
        budget.honorarium_percent, budget.honorarium_source = self._honorarium(
            meta, budget.client, reader
        )

        logger.debug("Normalized %s payload into %d campaign(s) with %d warning(s)",
                     shape.name, len(budget.campaigns), len(reader.warnings))
        return NormalizedBudget(budget=budget, shape=shape.name, warnings=reader.warnings)

    def _combination_mode(self, meta: Mapping, reader: PayloadReader) -> str:
        value = reader.text(meta, COMBINATION_MODE_KEYS)
        default = self.settings.default_combination_mode
        if value is None:
            return default
        mode = COMBINATION_MODE_ALIASES.get(value.lower())
        if mode not in COMBINATION_MODES:
            reader.warn('budget', COMBINATION_MODE_KEYS[0], value,
                        f"unknown combination mode, using {default}")
            return default
        return mode

    def _honorarium(self, meta: Mapping, client: Optional[str],
                    reader: PayloadReader) -> tuple[Decimal, str]:
        percent = reader.percent(meta, HONORARIUM_KEYS, 'budget')
        if percent is not None:
            source = reader.text(meta, HONORARIUM_SOURCE_KEYS, 'payload')
            return percent, source if source in HONORARIUM_SOURCES else 'payload'

        # Export-era payloads: {"honorario": {"aplicar": bool, "percentual": n}}
        legacy = meta.get('honorario')
        if isinstance(legacy, Mapping):
            if not reader.flag(legacy, ('aplicar',), 'budget.honorario', True):
                return ZERO, 'payload'
            percent = reader.percent(legacy, ('percentual',), 'budget.honorario')
            if percent is not None:
                return percent, 'payload'

        if self.honorarium_table is not None:
            percent = self.honorarium_table.lookup(client)
            if percent is not None:
                return percent, 'client'

        return clamp_percent(self.settings.default_honorarium_percent), 'default'


def normalize(payload, settings: Optional[Settings] = None, honorarium_table=None) -> Budget:
    """Convenience wrapper returning only the canonical budget."""
    return PayloadNormalizer(settings, honorarium_table).normalize(payload).budget
