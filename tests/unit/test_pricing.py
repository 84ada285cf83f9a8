"""Tests for PricingCalculator - option pricing and series tiers."""

from decimal import Decimal
from pathlib import Path

import pytest

from streamgate.config import reset_config
from streamgate.errors import PricingError
from streamgate.models import AccessKind, AccessPeriod, ContentMetadata, ContentType, PlanDefinition
from streamgate.services.pricing import PricingCalculator, describe_purchase, price

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "engine.yaml"


@pytest.fixture
def calculator(settings):
    return PricingCalculator(settings.pricing)


@pytest.fixture
def bare_movie():
    """Movie with no pricing fields at all."""
    return ContentMetadata(content_id="movie-0", title="Untitled", currency="USD")


@pytest.fixture
def pro_plan():
    plan = PlanDefinition(id="pro", name="Professional", price=Decimal("35000"), currency="RWF")
    return ContentMetadata.from_plan(plan)


class TestWatchAndDownload:
    """Tests for single-title options."""

    def test_watch_uses_view_price(self, calculator, movie):
        quote = calculator.price(movie, AccessKind.WATCH)
        assert quote.amount == Decimal("500")
        assert quote.currency == "RWF"
        assert quote.access_kind == AccessKind.WATCH
        assert quote.label == "Watch"

    def test_download_uses_download_price(self, calculator, movie):
        quote = calculator.price(movie, AccessKind.DOWNLOAD)
        assert quote.amount == Decimal("1500")
        assert quote.label == "Download"

    def test_watch_falls_back_to_share_of_generic_price(self, calculator):
        content = ContentMetadata(content_id="m", price=Decimal("1000"), currency="RWF")
        assert calculator.price(content, AccessKind.WATCH).amount == Decimal("800")

    def test_download_falls_back_to_generic_price(self, calculator):
        content = ContentMetadata(content_id="m", price=Decimal("1000"), currency="RWF")
        assert calculator.price(content, AccessKind.DOWNLOAD).amount == Decimal("1000")

    def test_defaults_when_pricing_absent(self, calculator, bare_movie):
        assert calculator.price(bare_movie, AccessKind.WATCH).amount == Decimal("2.99")
        assert calculator.price(bare_movie, AccessKind.DOWNLOAD).amount == Decimal("4.99")

    def test_zero_price_treated_as_absent(self, calculator):
        content = ContentMetadata(content_id="m", view_price=Decimal("0"), currency="USD")
        assert calculator.price(content, AccessKind.WATCH).amount == Decimal("2.99")

    def test_negative_price_treated_as_absent(self, calculator):
        content = ContentMetadata(
            content_id="m",
            view_price=Decimal("-5"),
            price=Decimal("10"),
            currency="USD",
        )
        assert calculator.price(content, AccessKind.WATCH).amount == Decimal("8.00")

    def test_default_currency_is_rwf(self, calculator):
        content = ContentMetadata(content_id="m", view_price=Decimal("500"))
        assert calculator.price(content, AccessKind.WATCH).currency == "RWF"

    def test_zero_decimal_currency_rounds_half_up(self, calculator):
        content = ContentMetadata(content_id="m", view_price=Decimal("2.5"), currency="RWF")
        assert calculator.price(content, AccessKind.WATCH).amount == Decimal("3")

    def test_legacy_kind_spelling_accepted(self, calculator, movie):
        assert calculator.price(movie, "movie_watch").access_kind == AccessKind.WATCH
        assert calculator.price(movie, "movie_download").access_kind == AccessKind.DOWNLOAD

    def test_pricing_is_deterministic(self, calculator, movie):
        assert calculator.price(movie, AccessKind.WATCH) == calculator.price(movie, AccessKind.WATCH)


class TestSeriesAccess:
    """Tests for series access tiers."""

    def test_thirty_day_tier_is_best_value(self, calculator, series):
        quote = calculator.price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_30)
        assert quote.amount == Decimal("3000")
        assert quote.is_best_value is True
        assert quote.access_period == AccessPeriod.DAYS_30
        assert quote.label == "30 Days"

    def test_savings_computed_against_weekly_tier(self, calculator, series):
        quote = calculator.price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_30)
        # 2000 per week stretched to 30 days is 8571.43; 3000 is charged
        assert quote.savings == Decimal("5571")
        assert quote.savings_percent == 65

    def test_yearly_tier_savings(self, calculator, series):
        quote = calculator.price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_365)
        assert quote.amount == Decimal("8000")
        assert quote.savings == Decimal("96286")
        assert quote.savings_percent == 92
        assert quote.is_best_value is False

    def test_short_tiers_have_no_savings(self, calculator, series):
        day = calculator.price(series, AccessKind.SERIES_ACCESS, AccessPeriod.HOURS_24)
        week = calculator.price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_7)
        assert day.amount == Decimal("1000")
        assert week.amount == Decimal("2000")
        assert day.savings is None
        assert week.savings is None

    def test_savings_disabled_without_reference(self, settings, series):
        pricing = settings.pricing.model_copy(update={"savings_reference_period": None})
        quote = PricingCalculator(pricing).price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_30)
        assert quote.savings is None
        assert quote.savings_percent is None

    def test_series_options_lists_every_tier(self, calculator, series):
        quotes = calculator.series_options(series)
        assert [q.access_period for q in quotes] == [
            AccessPeriod.HOURS_24,
            AccessPeriod.DAYS_7,
            AccessPeriod.DAYS_30,
            AccessPeriod.DAYS_90,
            AccessPeriod.DAYS_365,
        ]
        assert [q.amount for q in quotes] == [Decimal(v) for v in ("1000", "2000", "3000", "5000", "8000")]
        assert sum(q.is_best_value for q in quotes) == 1

    def test_series_base_defaults_when_unpriced(self, calculator):
        content = ContentMetadata(content_id="s", content_type=ContentType.SERIES, currency="RWF")
        quote = calculator.price(content, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_7)
        assert quote.amount == Decimal("200")

    def test_series_access_requires_period(self, calculator, series):
        with pytest.raises(PricingError, match="access period"):
            calculator.price(series, AccessKind.SERIES_ACCESS)

    def test_series_access_requires_series(self, calculator, movie):
        with pytest.raises(PricingError, match="not a series"):
            calculator.price(movie, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_7)

    def test_all_tiers_positive(self, calculator, series):
        for quote in calculator.series_options(series):
            assert quote.amount > 0


class TestSubscriptionUpgrade:
    """Tests for plan upgrades."""

    def test_plan_priced_from_definition(self, calculator, pro_plan):
        quote = calculator.price(pro_plan, AccessKind.SUBSCRIPTION_UPGRADE)
        assert quote.amount == Decimal("35000")
        assert quote.currency == "RWF"
        assert quote.label == "Professional"

    def test_plan_period_carried_into_quote(self, calculator, pro_plan):
        assert calculator.price(pro_plan, AccessKind.SUBSCRIPTION_UPGRADE).access_period == AccessPeriod.DAYS_30

    def test_yearly_plan_quote(self, calculator):
        plan = PlanDefinition(id="max", name="Ultimate", price=Decimal("120000"), period="365d")
        quote = calculator.price(ContentMetadata.from_plan(plan), AccessKind.SUBSCRIPTION_UPGRADE)
        assert quote.access_period == AccessPeriod.DAYS_365
        assert quote.amount == Decimal("120000")

    def test_plan_cannot_be_bought_as_watch(self, calculator, pro_plan):
        with pytest.raises(PricingError, match="subscription upgrade"):
            calculator.price(pro_plan, AccessKind.WATCH)

    def test_upgrade_requires_plan(self, calculator, movie):
        with pytest.raises(PricingError, match="not a subscription plan"):
            calculator.price(movie, AccessKind.SUBSCRIPTION_UPGRADE)


class TestDescribePurchase:
    """Tests for charge descriptions."""

    def test_watch_description(self, calculator, movie):
        quote = calculator.price(movie, AccessKind.WATCH)
        assert describe_purchase(movie, quote) == "Watch: The Long Rains"

    def test_download_description(self, calculator, movie):
        quote = calculator.price(movie, AccessKind.DOWNLOAD)
        assert describe_purchase(movie, quote) == "Download: The Long Rains"

    def test_series_description_names_period(self, calculator, series):
        quote = calculator.price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_30)
        assert describe_purchase(series, quote) == "Series Access: Hills of Kigali - 30 Days"

    def test_upgrade_description(self, calculator, pro_plan):
        quote = calculator.price(pro_plan, AccessKind.SUBSCRIPTION_UPGRADE)
        assert describe_purchase(pro_plan, quote) == "Subscription Upgrade: Professional"


class TestModulePrice:
    """Tests for the module-level price() helper."""

    def test_uses_global_configuration(self, monkeypatch, series):
        monkeypatch.setenv("STREAMGATE_CONFIG", str(CONFIG_PATH))
        reset_config()
        try:
            quote = price(series, AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_30)
        finally:
            reset_config()
        assert quote.amount == Decimal("3000")
        assert quote.is_best_value is True
