"""
Breakdown table - one row per priced alternative for export collaborators.

The PDF/Excel renderers lay out campaigns, categories and their quotes as a
table; this builds that table from a computed `Result` so renderers never
re-derive prices.
"""
import pandas as pd

from .models import ITEMIZED

COLUMNS = [
    'campaign_id', 'campaign', 'category_id', 'category', 'pricing_mode',
    'visible', 'entry_id', 'option_id', 'entry', 'quantity', 'unit_price',
    'gross_value', 'discount', 'net_value', 'winner', 'category_subtotal',
]


def breakdown_rows(result) -> list[dict]:
    """Flatten a computed result into breakdown rows, in document order."""
    rows = []
    for campaign in result.budget.campaigns:
        campaign_totals = result.totals.campaign(campaign.id)
        subtotals = {c.category_id: c.subtotal for c in campaign_totals.categories}

        for category in campaign.categories:
            base = {
                'campaign_id': campaign.id,
                'campaign': campaign.name,
                'category_id': category.id,
                'category': category.name,
                'pricing_mode': category.pricing_mode,
                'visible': category.visible,
                'category_subtotal': subtotals[category.id],
            }

            if category.pricing_mode == ITEMIZED:
                for item in category.items:
                    rows.append({
                        **base,
                        'entry_id': item.id,
                        'option_id': None,
                        'entry': item.description,
                        'quantity': item.quantity,
                        'unit_price': item.unit_price,
                        'gross_value': item.gross_value,
                        'discount': item.discount,
                        'net_value': item.net_value,
                        'winner': None,
                    })
                continue

            selection = result.selections.get(category.id)
            for offer in category.offers:
                if offer.priced_by_options:
                    entries = [(option, option.label or option.id) for option in offer.options]
                else:
                    entries = [(None, None)]

                for option, option_label in entries:
                    priced = option or offer
                    label = offer.supplier or offer.description or offer.id
                    if option_label:
                        label = f"{label} / {option_label}"
                    is_winner = (
                        selection is not None
                        and selection.offer_id == offer.id
                        and selection.option_id == (option.id if option else None)
                    )
                    rows.append({
                        **base,
                        'entry_id': offer.id,
                        'option_id': option.id if option else None,
                        'entry': label,
                        'quantity': None,
                        'unit_price': None,
                        'gross_value': priced.gross_value,
                        'discount': priced.discount,
                        'net_value': priced.net_value,
                        'winner': is_winner,
                    })
    return rows


def breakdown_frame(result) -> pd.DataFrame:
    """Breakdown rows as a DataFrame with a stable column order."""
    return pd.DataFrame(breakdown_rows(result), columns=COLUMNS)
