"""Tests for booking price computation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from apps.bookings.domain.entities import AddOn, Party, PricingUnit
from apps.bookings.domain.pricing import PricingPolicy, compute_total, quote_for
from apps.bookings.exceptions import ServiceMisconfigured, WizardStateError
from apps.bookings.testing import lodging_service, tour_service
from shared.domain.value_objects import DateRange, Money

TAX = Decimal("0.19")


class ComputeTotalTests(SimpleTestCase):

    def test_two_nights_for_two_adults(self) -> None:
        quote = compute_total(
            Money(150000, "COP"),
            PricingUnit.PER_NIGHT,
            DateRange(date(2024, 2, 10), date(2024, 2, 12)),
            Party(adults=2),
            [],
            TAX,
        )
        self.assertEqual(quote.nights, 2)
        self.assertEqual(quote.subtotal, Money(600000, "COP"))
        self.assertEqual(quote.tax, Money(114000, "COP"))
        self.assertEqual(quote.total, Money(714000, "COP"))

    def test_same_day_stay_counts_one_night(self) -> None:
        quote = compute_total(
            Money(100000, "COP"),
            PricingUnit.PER_NIGHT,
            DateRange(date(2024, 2, 10), date(2024, 2, 10)),
            Party(adults=1),
            [],
            Decimal("0"),
        )
        self.assertEqual(quote.nights, 1)
        self.assertEqual(quote.total, Money(100000, "COP"))

    def test_per_person_ignores_stay_length(self) -> None:
        quote = compute_total(
            Money(80000, "COP"),
            PricingUnit.PER_PERSON,
            DateRange(date(2024, 2, 10), date(2024, 2, 15)),
            Party(adults=3),
            [],
            Decimal("0"),
        )
        self.assertEqual(quote.nights, 1)
        self.assertEqual(quote.subtotal, Money(240000, "COP"))

    def test_children_are_weighted_without_truncation(self) -> None:
        quote = compute_total(
            Money(100001, "COP"),
            PricingUnit.PER_PERSON,
            DateRange(date(2024, 2, 10)),
            Party(adults=1, children=1),
            [],
            Decimal("0"),
            child_weight=Decimal("0.5"),
        )
        self.assertEqual(quote.party_multiplier, Decimal("1.5"))
        self.assertEqual(quote.subtotal.amount, Decimal("150001.5"))
        self.assertEqual(quote.total.rounded(), Decimal("150002"))

    def test_two_children_count_as_one_adult(self) -> None:
        args = (
            Money(100000, "COP"),
            PricingUnit.PER_NIGHT,
            DateRange(date(2024, 2, 10), date(2024, 2, 11)),
            Party(adults=2, children=2),
            [],
            TAX,
        )
        quote = compute_total(*args)
        self.assertEqual(quote.party_multiplier, Decimal("3.0"))
        self.assertEqual(quote, compute_total(*args))

    def test_add_on_never_lowers_total(self) -> None:
        dates = DateRange(date(2024, 2, 10), date(2024, 2, 12))
        free = AddOn(id="welcome-drink", name="Welcome drink", price=Money(0, "COP"))
        without = compute_total(Money(150000, "COP"), PricingUnit.PER_NIGHT, dates, Party(adults=2), [], TAX)
        with_free = compute_total(Money(150000, "COP"), PricingUnit.PER_NIGHT, dates, Party(adults=2), [free], TAX)
        self.assertGreaterEqual(with_free.total.amount, without.total.amount)

    def test_add_ons_are_not_scaled_by_party_or_nights(self) -> None:
        breakfast = AddOn(id="breakfast", name="Breakfast", price=Money(30000, "COP"))
        quote = compute_total(
            Money(100000, "COP"),
            PricingUnit.PER_NIGHT,
            DateRange(date(2024, 2, 10), date(2024, 2, 13)),
            Party(adults=2),
            [breakfast],
            TAX,
        )
        self.assertEqual(quote.add_ons_amount, Money(30000, "COP"))
        self.assertEqual(quote.subtotal, Money(630000, "COP"))
        self.assertEqual(quote.total, quote.subtotal + quote.tax)

    def test_missing_base_price_is_misconfiguration(self) -> None:
        with self.assertRaises(ServiceMisconfigured):
            compute_total(
                None,
                PricingUnit.PER_NIGHT,
                DateRange(date(2024, 2, 10), date(2024, 2, 12)),
                Party(),
                [],
                TAX,
                service_reference="hotel-without-price",
            )


class QuoteForTests(SimpleTestCase):

    def test_quote_uses_catalog_add_ons(self) -> None:
        service = tour_service(add_ons=[AddOn(id="lunch", name="Lunch", price=Money(25000, "COP"))])
        quote = quote_for(
            service,
            DateRange(date(2024, 2, 10)),
            Party(adults=2),
            ["lunch"],
            PricingPolicy(tax_rate="0"),
        )
        self.assertEqual(quote.subtotal, Money(185000, "COP"))

    def test_unknown_add_on_is_refused(self) -> None:
        with self.assertRaises(WizardStateError):
            quote_for(
                lodging_service(),
                DateRange(date(2024, 2, 10), date(2024, 2, 12)),
                Party(adults=2),
                ["spa"],
                PricingPolicy(tax_rate="0.19"),
            )
