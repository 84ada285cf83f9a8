"""Pricing calculator - derives the charge for a (content, access kind, period) option.

Pure: no I/O, no state. Given the same settings and inputs it always returns
the same quote.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from streamgate.errors import PricingError
from streamgate.logging_config import get_logger
from streamgate.models.content import ContentMetadata, ContentType
from streamgate.models.purchase import AccessKind, AccessPeriod, PriceQuote
from streamgate.models.settings import PricingSettings
from streamgate.utils.access_period import format_access_period, parse_access_period

logger = get_logger(__name__)


class PricingCalculator:
    """Computes price quotes from content metadata and pricing settings.

    Args:
        settings: pricing rules, defaults to the global configuration
    """

    def __init__(self, settings: Optional[PricingSettings] = None):
        if settings is None:
            from streamgate.config import get_config

            settings = get_config().settings.pricing
        self.settings = settings

    def currency_for(self, content: ContentMetadata) -> str:
        """Currency a content item is sold in."""
        return (content.currency or self.settings.default_currency).upper()

    def price(
        self,
        content: ContentMetadata,
        access_kind: AccessKind,
        access_period: Optional[AccessPeriod] = None,
    ) -> PriceQuote:
        """Price one purchasable option.

        Args:
            content: Content metadata from the catalog (or a plan)
            access_kind: What is being bought
            access_period: Series access tier, required for series access

        Returns:
            PriceQuote with a strictly positive amount

        Raises:
            PricingError: If the option does not apply to this content
        """
        access_kind = AccessKind.parse(access_kind)
        currency = self.currency_for(content)

        if content.content_type == ContentType.PLAN and access_kind != AccessKind.SUBSCRIPTION_UPGRADE:
            raise PricingError(f"Plan {content.content_id} can only be bought as a subscription upgrade")

        if access_kind == AccessKind.WATCH:
            amount = self._watch_amount(content)
            return PriceQuote(
                amount=self._quantize(amount, currency),
                currency=currency,
                access_kind=access_kind,
                label="Watch",
            )

        if access_kind == AccessKind.DOWNLOAD:
            amount = self._download_amount(content)
            return PriceQuote(
                amount=self._quantize(amount, currency),
                currency=currency,
                access_kind=access_kind,
                label="Download",
            )

        if access_kind == AccessKind.SERIES_ACCESS:
            return self._series_quote(content, access_period, currency)

        return self._upgrade_quote(content, currency)

    def series_options(self, content: ContentMetadata) -> list[PriceQuote]:
        """Quote every configured series tier, shortest first."""
        periods = sorted(
            (AccessPeriod(p) for p in self.settings.series_multipliers if p in AccessPeriod._value2member_map_),
            key=lambda p: p.millis,
        )
        return [self.price(content, AccessKind.SERIES_ACCESS, period) for period in periods]

    def _watch_amount(self, content: ContentMetadata) -> Decimal:
        view_price = self._positive(content, "view_price")
        if view_price is not None:
            return view_price
        generic = self._positive(content, "price")
        if generic is not None:
            return generic * self.settings.watch_fallback_ratio
        return self.settings.default_watch_price

    def _download_amount(self, content: ContentMetadata) -> Decimal:
        download_price = self._positive(content, "download_price")
        if download_price is not None:
            return download_price
        generic = self._positive(content, "price")
        if generic is not None:
            return generic
        return self.settings.default_download_price

    def _series_base(self, content: ContentMetadata) -> Decimal:
        base = self._positive(content, "view_price")
        if base is None:
            base = self._positive(content, "price")
        if base is None:
            base = self.settings.default_series_base_price
        return base

    def _series_quote(
        self,
        content: ContentMetadata,
        access_period: Optional[AccessPeriod],
        currency: str,
    ) -> PriceQuote:
        if content.content_type != ContentType.SERIES:
            raise PricingError(f"Content {content.content_id} is not a series")
        if access_period is None:
            raise PricingError("Series access requires an access period")

        period = AccessPeriod(access_period)
        multiplier = self.settings.series_multipliers.get(period.value)
        if multiplier is None:
            raise PricingError(f"No series multiplier configured for {period.value}")

        base = self._series_base(content)
        amount = self._quantize(base * multiplier, currency)
        savings, savings_percent = self._savings(base, period, amount, currency)

        return PriceQuote(
            amount=amount,
            currency=currency,
            access_kind=AccessKind.SERIES_ACCESS,
            access_period=period,
            label=period.label,
            is_best_value=period.value == self.settings.best_value_period,
            savings=savings,
            savings_percent=savings_percent,
        )

    def _upgrade_quote(self, content: ContentMetadata, currency: str) -> PriceQuote:
        if content.content_type != ContentType.PLAN:
            raise PricingError(f"Content {content.content_id} is not a subscription plan")

        amount = self._positive(content, "view_price") or self._positive(content, "price")
        if amount is None:
            raise PricingError(f"Plan {content.content_id} has no price")

        return PriceQuote(
            amount=self._quantize(amount, currency),
            currency=currency,
            access_kind=AccessKind.SUBSCRIPTION_UPGRADE,
            access_period=content.access_period,
            label=content.title or content.content_id,
        )

    def _savings(
        self,
        base: Decimal,
        period: AccessPeriod,
        amount: Decimal,
        currency: str,
    ) -> tuple[Optional[Decimal], Optional[int]]:
        """Savings against the reference tier stretched to ``period``'s length."""
        reference = self.settings.savings_reference_period
        if reference is None or reference == period.value:
            return None, None

        reference_multiplier = self.settings.series_multipliers.get(reference)
        if reference_multiplier is None:
            return None, None

        reference_millis = parse_access_period(reference)
        if period.millis <= reference_millis:
            return None, None

        undiscounted = base * reference_multiplier * Decimal(period.millis) / Decimal(reference_millis)
        savings = max(undiscounted - amount, Decimal(0))
        percent = int((savings / undiscounted * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return self._quantize(savings, currency, allow_zero=True), percent

    def _positive(self, content: ContentMetadata, field: str) -> Optional[Decimal]:
        value = getattr(content, field)
        if value is None:
            return None
        if value <= 0:
            logger.warning(
                "non_positive_price_ignored",
                content_id=content.content_id,
                field=field,
                value=str(value),
            )
            return None
        return Decimal(value)

    def _quantize(self, amount: Decimal, currency: str, allow_zero: bool = False) -> Decimal:
        unit = Decimal("1") if currency in self.settings.zero_decimal_currencies else Decimal("0.01")
        quantized = Decimal(amount).quantize(unit, rounding=ROUND_HALF_UP)
        if not allow_zero and quantized <= 0:
            return unit
        return quantized


def price(
    content: ContentMetadata,
    access_kind: AccessKind,
    access_period: Optional[AccessPeriod] = None,
) -> PriceQuote:
    """Price an option using the global configuration."""
    return PricingCalculator().price(content, access_kind, access_period)


def describe_purchase(content: ContentMetadata, quote: PriceQuote) -> str:
    """Charge description sent with the purchase request."""
    title = content.title or content.content_id
    if quote.access_kind == AccessKind.SERIES_ACCESS and quote.access_period is not None:
        return f"Series Access: {title} - {format_access_period(quote.access_period.value)}"
    if quote.access_kind == AccessKind.SUBSCRIPTION_UPGRADE:
        return f"Subscription Upgrade: {title}"
    if quote.access_kind == AccessKind.DOWNLOAD:
        return f"Download: {title}"
    return f"Watch: {title}"
