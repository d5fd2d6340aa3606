"""
Tests for payload normalization across the stored payload shapes.
"""
import copy
import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from budget_engine.config.settings import Settings
from budget_engine.engine.models import Budget, FLAT, ITEMIZED
from budget_engine.engine.normalizer import PayloadNormalizer
from budget_engine.services.honorarium_service import HonorariumTable


@pytest.fixture
def settings():
    return Settings(project_root=Path('.'))


@pytest.fixture
def normalizer(settings):
    return PayloadNormalizer(settings)


def canonical_payload():
    return {
        "client": "ACME Motors",
        "combinationMode": "sum",
        "honorariumPercent": "10",
        "campaigns": [
            {
                "id": "camp-1",
                "name": "Launch",
                "categories": [
                    {
                        "id": "cat-film",
                        "name": "Film",
                        "pricingMode": "flat",
                        "offers": [
                            {"id": "o1", "supplier": "Alpha", "grossValue": "1.000,00", "discount": 0},
                            {"id": "o2", "supplier": "Beta", "grossValue": 800, "discount": "100"},
                        ],
                    },
                    {
                        "name": "Adaptations",
                        "pricingMode": "itemized",
                        "items": [
                            {"description": "15s", "quantity": 2, "unitPrice": "150", "discount": 0},
                        ],
                    },
                ],
            }
        ],
    }


def test_canonical_payload_is_coerced(normalizer):
    normalized = normalizer.normalize(canonical_payload())
    budget = normalized.budget

    assert normalized.shape == "canonical"
    assert budget.combination_mode == "sum"
    assert budget.honorarium_percent == Decimal("10")
    assert budget.honorarium_source == "payload"
    assert len(budget.campaigns) == 1

    film, adaptations = budget.campaigns[0].categories
    assert film.pricing_mode == FLAT
    assert film.offers[0].gross_value == Decimal("1000")
    assert film.offers[1].discount == Decimal("100")
    assert adaptations.pricing_mode == ITEMIZED
    assert adaptations.items[0].unit_price == Decimal("150")
    assert normalized.warnings == []


def test_missing_ids_are_generated_and_kept_ids_preserved(normalizer):
    budget = normalizer.normalize(canonical_payload()).budget
    campaign = budget.campaigns[0]

    assert campaign.id == "camp-1"
    assert campaign.categories[0].id == "cat-film"
    generated = campaign.categories[1].id
    assert generated and generated != "cat-film"
    assert campaign.categories[1].items[0].id


def test_payload_is_not_mutated(normalizer):
    payload = canonical_payload()
    snapshot = copy.deepcopy(payload)
    normalizer.normalize(payload)
    assert payload == snapshot


def test_normalizing_canonical_output_is_a_no_op(normalizer):
    first = normalizer.normalize(canonical_payload()).budget
    second = normalizer.normalize(first.to_dict()).budget
    assert second == first

    # A Budget instance is accepted directly
    assert normalizer.normalize(first).budget == first


def test_flat_legacy_is_wrapped_in_single_campaign(normalizer):
    payload = {
        "categorias": [
            {"nome": "Filme", "modoPreco": "fechado",
             "fornecedores": [{"nome": "Alpha", "valor": 500, "desconto": 50}]},
            {"nome": "Extras", "modoPreco": "itens",
             "itens": [{"descricao": "Diária", "quantidade": 3, "valorUnitario": 200}]},
        ]
    }
    normalized = normalizer.normalize(payload)
    budget = normalized.budget

    assert normalized.shape == "flat_categories"
    assert [c.name for c in budget.campaigns] == ["Single Campaign"]
    film, extras = budget.campaigns[0].categories
    assert film.name == "Filme"
    assert film.offers[0].supplier == "Alpha"
    assert film.offers[0].net_value == Decimal("450")
    assert extras.items[0].net_value == Decimal("600")


def test_quote_list_campaigns_become_film_and_audio_categories(normalizer):
    payload = {
        "campaigns": [
            {
                "name": "With audio",
                "includeAudio": True,
                "quotes_film": [
                    {"produtora": "Alpha", "escopo": "30s", "valor": 1000},
                    {"produtora": "Beta", "escopo": "30s", "valor": 900,
                     "opcoes": [{"nome": "A", "valor": 950}, {"nome": "B", "valor": 850, "desconto": 20}]},
                ],
                "quotes_audio": [{"produtora": "Sonic", "descritivo": "Trilha", "valor": 300}],
            },
            {
                "name": "Audio switched off",
                "inclui_audio": False,
                "quotes_film": [{"produtora": "Gamma", "valor": 700}],
                "quotes_audio": [{"produtora": "Sonic", "valor": 300}],
            },
            {
                "name": "Audio on but empty",
                "includeAudio": True,
                "quotes_film": [],
                "quotes_audio": [],
            },
        ]
    }
    normalized = normalizer.normalize(payload)
    first, second, third = normalized.budget.campaigns

    assert normalized.shape == "quote_list"
    assert [c.name for c in first.categories] == ["Film Production", "Audio"]
    assert [c.name for c in second.categories] == ["Film Production"]
    assert [c.name for c in third.categories] == ["Film Production"]

    film = first.categories[0]
    assert all(o.kind == "film" for o in film.offers)
    assert first.categories[1].offers[0].kind == "audio"
    assert first.categories[1].offers[0].description == "Trilha"

    beta = film.offers[1]
    assert beta.has_options
    assert [o.label for o in beta.options] == ["A", "B"]
    assert beta.net_value == Decimal("830")


def test_campaign_audio_quotes_need_the_include_flag(normalizer):
    payload = {"campaigns": [{
        "quotes_film": [{"produtora": "Alpha", "valor": 100}],
        "quotes_audio": [{"produtora": "Sonic", "valor": 50}],
    }]}
    campaign = normalizer.normalize(payload).budget.campaigns[0]
    assert [c.name for c in campaign.categories] == ["Film Production"]


def test_quote_list_campaign_next_to_canonical_one_keeps_its_quotes(normalizer):
    payload = {"campaigns": [
        {"id": "new", "name": "Migrated", "categories": [
            {"name": "Film", "offers": [{"grossValue": 100}]},
        ]},
        {"id": "old", "name": "Legacy", "inclui_audio": True,
         "quotes_film": [{"produtora": "Alpha", "valor": 500}],
         "quotes_audio": [{"produtora": "Sonic", "valor": 50}]},
    ]}
    normalized = normalizer.normalize(payload)
    migrated, legacy = normalized.budget.campaigns

    assert normalized.shape == "canonical"
    assert [c.name for c in migrated.categories] == ["Film"]
    assert legacy.id == "old"
    assert [c.name for c in legacy.categories] == ["Film Production", "Audio"]
    assert legacy.categories[0].offers[0].gross_value == Decimal("500")
    assert normalizer.normalize(normalized.budget).budget == normalized.budget


def test_top_level_quote_lists_fold_into_single_campaign(normalizer):
    payload = {
        "cliente": "Multimix",
        "quotes_film": [{"produtora": "Alpha", "valor": "1.200,00"}],
        "quotes_audio": [{"produtora": "Sonic", "valor": "300"}],
        "honorario_perc": 15,
    }
    normalized = normalizer.normalize(payload)
    budget = normalized.budget

    assert normalized.shape == "quote_list"
    assert budget.client == "Multimix"
    assert budget.honorarium_percent == Decimal("15")
    campaign = budget.campaigns[0]
    assert campaign.name == "Single Campaign"
    assert [c.name for c in campaign.categories] == ["Film Production", "Audio"]
    assert campaign.categories[0].offers[0].gross_value == Decimal("1200")


@pytest.mark.parametrize("payload", [None, {}, [], "garbage", {"foo": "bar"}])
def test_unrecognized_payload_falls_back_to_one_empty_campaign(normalizer, payload):
    normalized = normalizer.normalize(payload)
    budget = normalized.budget

    assert normalized.shape == "fallback"
    assert len(budget.campaigns) == 1
    assert budget.campaigns[0].categories == []
    assert budget.honorarium_percent == Decimal("0")
    assert budget.combination_mode == "individual"


def test_base_categories_seed_fallback_and_mark_locked():
    settings = Settings(project_root=Path('.'), base_categories=("Film Production", "Audio"))
    normalizer = PayloadNormalizer(settings)

    fallback = normalizer.normalize({}).budget
    assert [c.name for c in fallback.campaigns[0].categories] == ["Film Production", "Audio"]
    assert all(c.locked for c in fallback.campaigns[0].categories)

    payload = {"categories": [{"name": "Audio"}, {"name": "Extras"}]}
    categories = normalizer.normalize(payload).budget.campaigns[0].categories
    assert [c.locked for c in categories] == [True, False]


def test_portuguese_budget_options(normalizer):
    payload = {
        "campanhas": [{"nome": "A", "categorias": []}],
        "combinarModo": "somar",
        "honorarioPerc": "12,5",
    }
    budget = normalizer.normalize(payload).budget
    assert budget.combination_mode == "sum"
    assert budget.honorarium_percent == Decimal("12.5")
    assert budget.campaigns[0].name == "A"


def test_package_mode_and_discount(normalizer):
    budget = normalizer.normalize({
        "campaigns": [],
        "combinationMode": "pacote",
        "packageDiscountPercent": 20,
    }).budget
    assert budget.combination_mode == "package"
    assert budget.package_discount_percent == Decimal("20")
    assert budget.campaigns == []


def test_unknown_combination_mode_warns_and_defaults(normalizer):
    normalized = normalizer.normalize({"campaigns": [], "combinationMode": "mixed"})
    assert normalized.budget.combination_mode == "individual"
    assert any(w.field == "combinationMode" for w in normalized.warnings)


def test_unparsable_amount_is_zero_flagged_and_warned(normalizer):
    payload = {"categories": [{"name": "Film", "offers": [
        {"supplier": "Typo", "grossValue": "mil reais"},
        {"supplier": "Alpha", "grossValue": 500},
    ]}]}
    normalized = normalizer.normalize(payload)
    typo, alpha = normalized.budget.campaigns[0].categories[0].offers

    assert typo.gross_value == Decimal("0")
    assert typo.coerced is True
    assert alpha.coerced is False
    assert len(normalized.warnings) == 1
    warning = normalized.warnings[0]
    assert warning.field == "grossValue"
    assert warning.raw == "mil reais"
    assert "categories[0].offers[0]" in warning.path


def test_negative_amounts_become_zero(normalizer):
    normalized = normalizer.normalize({"categories": [{"name": "X", "offers": [
        {"grossValue": -100, "discount": -5},
    ]}]})
    offer = normalized.budget.campaigns[0].categories[0].offers[0]
    assert offer.gross_value == Decimal("0")
    assert offer.discount == Decimal("0")
    assert len(normalized.warnings) == 2


def test_percentages_are_clamped(normalizer):
    normalized = normalizer.normalize({
        "campaigns": [], "honorariumPercent": 150, "packageDiscountPercent": -10,
    })
    assert normalized.budget.honorarium_percent == Decimal("100")
    assert normalized.budget.package_discount_percent == Decimal("0")
    assert len(normalized.warnings) == 2


def test_duplicate_category_ids_are_regenerated(normalizer):
    payload = {"campaigns": [
        {"id": "c1", "categories": [{"id": "dup", "name": "A"}]},
        {"id": "c2", "categories": [{"id": "dup", "name": "B"}]},
    ]}
    normalized = normalizer.normalize(payload)
    first = normalized.budget.campaigns[0].categories[0]
    second = normalized.budget.campaigns[1].categories[0]

    assert first.id == "dup"
    assert second.id != "dup"
    assert any("duplicate id" in w.message for w in normalized.warnings)


def test_mode_xor_drops_inactive_list(normalizer):
    normalized = normalizer.normalize({"categories": [{
        "name": "Mixed",
        "pricingMode": "itemized",
        "offers": [{"grossValue": 10}],
        "items": [{"quantity": 1, "unitPrice": 10}],
    }]})
    category = normalized.budget.campaigns[0].categories[0]
    assert category.pricing_mode == ITEMIZED
    assert category.offers == []
    assert len(category.items) == 1
    assert len(normalized.warnings) == 1


def test_pricing_mode_inferred_from_content(normalizer):
    budget = normalizer.normalize({"categories": [
        {"name": "Items only", "items": [{"quantity": 1, "unitPrice": 10}]},
        {"name": "Nothing"},
    ]}).budget
    items_only, nothing = budget.campaigns[0].categories
    assert items_only.pricing_mode == ITEMIZED
    assert nothing.pricing_mode == FLAT
    assert nothing.visible is True


def test_string_flags_are_understood(normalizer):
    budget = normalizer.normalize({"categories": [{
        "name": "Hidden", "visivel": "false",
        "offers": [{"grossValue": 1, "selecionado": "sim"}],
    }]}).budget
    category = budget.campaigns[0].categories[0]
    assert category.visible is False
    assert category.offers[0].selected is True


def test_has_options_without_options_warns(normalizer):
    normalized = normalizer.normalize({"categories": [{"name": "X", "offers": [
        {"grossValue": 300, "hasOptions": True, "options": []},
    ]}]})
    offer = normalized.budget.campaigns[0].categories[0].offers[0]
    assert offer.net_value == Decimal("300")
    assert len(normalized.warnings) == 1


def test_non_object_entries_are_skipped(normalizer):
    normalized = normalizer.normalize({"categories": [{"name": "X", "offers": [
        "not an offer", {"grossValue": 10},
    ]}]})
    assert len(normalized.budget.campaigns[0].categories[0].offers) == 1
    assert len(normalized.warnings) == 1


class TestHonorariumResolution:
    """Honorarium comes from the payload, then the client table, then settings."""

    @pytest.fixture
    def table(self):
        return HonorariumTable.from_mapping({"ACME Motors": 15})

    def test_client_table_used_when_payload_has_no_percentage(self, settings, table):
        budget = PayloadNormalizer(settings, table).normalize(
            {"cliente": "acme motors ", "campaigns": []}
        ).budget
        assert budget.honorarium_percent == Decimal("15")
        assert budget.honorarium_source == "client"

    def test_payload_percentage_wins_over_client_table(self, settings, table):
        budget = PayloadNormalizer(settings, table).normalize(
            {"client": "ACME Motors", "honorariumPercent": 5, "campaigns": []}
        ).budget
        assert budget.honorarium_percent == Decimal("5")
        assert budget.honorarium_source == "payload"

    def test_settings_default_for_unknown_client(self, table):
        settings = Settings(project_root=Path('.'), default_honorarium_percent=Decimal("7"))
        budget = PayloadNormalizer(settings, table).normalize(
            {"client": "Someone Else", "campaigns": []}
        ).budget
        assert budget.honorarium_percent == Decimal("7")
        assert budget.honorarium_source == "default"

    def test_legacy_honorario_object(self, normalizer):
        applied = normalizer.normalize(
            {"campaigns": [], "honorario": {"aplicar": True, "percentual": 20}}
        ).budget
        skipped = normalizer.normalize(
            {"campaigns": [], "honorario": {"aplicar": False, "percentual": 20}}
        ).budget
        assert applied.honorarium_percent == Decimal("20")
        assert skipped.honorarium_percent == Decimal("0")

    def test_client_sourced_budget_renormalizes_identically(self, settings, table):
        normalizer = PayloadNormalizer(settings, table)
        first = normalizer.normalize({"client": "ACME Motors", "campaigns": []}).budget
        second = normalizer.normalize(first.to_dict()).budget
        assert second == first
        assert isinstance(second, Budget)
