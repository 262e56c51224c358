"""Tests for the booking wizard: steps, gating, commit and payment."""

from __future__ import annotations

import asyncio
from datetime import date

from django.test import SimpleTestCase, override_settings

from apps.bookings.application.availability import AvailabilityGate, Block, Undetermined
from apps.bookings.application.commit import BookingCommitter, CommitUnavailable, Committed, LostAvailability
from apps.bookings.application.ports import AvailabilityAnswer
from apps.bookings.application.wizard import (
    Advanced,
    BookingWizard,
    DuplicateSubmission,
    NotReady,
    StepInvalid,
    open_wizard,
)
from apps.bookings.domain.entities import AddOn, BookingStatus, Party, PayerDetails, PaymentMethod
from apps.bookings.domain.pricing import PricingPolicy
from apps.bookings.domain.steps import WizardStep
from apps.bookings.exceptions import ServiceMisconfigured, ServiceNotFound, WizardStateError
from apps.bookings.testing import (
    InMemoryBookingStore,
    ScriptedAvailabilityOracle,
    lodging_service,
    sample_contact,
    tour_service,
)
from apps.payments.handoff import Declined, Paid, PaymentHandoff, PaymentPending, RedirectRequired
from apps.payments.ledger import BookingStatusWriter
from apps.payments.testing import InMemoryPaymentAttemptStore, ScriptedPaymentGateway
from shared.domain.value_objects import DateRange, Money

CARD = PayerDetails(card_token="tok_visa", holder_name="Ana Restrepo", document_number="1020304050")


class WizardTestCase(SimpleTestCase):

    def build(self, service=None, oracle=None, store=None, include_add_ons_step: bool = True) -> BookingWizard:
        self.store = store or InMemoryBookingStore()
        self.oracle = oracle or ScriptedAvailabilityOracle()
        self.gateway = ScriptedPaymentGateway()
        self.attempts = InMemoryPaymentAttemptStore()
        handoff = PaymentHandoff(self.gateway, self.attempts, BookingStatusWriter(self.store))
        return BookingWizard(
            service or lodging_service(),
            gate=AvailabilityGate(self.oracle, timeout=0.5),
            committer=BookingCommitter(self.store, timeout=0.5, attempts=2, backoff=0),
            handoff=handoff,
            policy=PricingPolicy(tax_rate="0.19"),
            include_add_ons_step=include_add_ons_step,
            customer_token="customer-1",
        )

    async def walk_to_confirmation(self, wizard: BookingWizard, method=PaymentMethod.CARD, payer=CARD):
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        wizard.set_party(adults=2)
        self.assertIsInstance(await wizard.advance(), Advanced)
        if WizardStep.REVIEW_ADD_ONS in wizard.steps:
            self.assertIsInstance(await wizard.advance(), Advanced)
        contact = sample_contact()
        wizard.set_contact(contact.full_name, contact.email, contact.phone, contact.document_id)
        self.assertIsInstance(await wizard.advance(), Advanced)
        wizard.choose_payment_method(method, payer, accept_terms=True)
        self.assertEqual(await wizard.advance(), Advanced(WizardStep.CONFIRMATION))


class WizardStepTests(WizardTestCase):

    def test_service_without_price_cannot_be_booked(self) -> None:
        with self.assertRaises(ServiceMisconfigured):
            self.build(service=lodging_service(base_price=None))

    def test_add_ons_step_is_optional(self) -> None:
        wizard = self.build(include_add_ons_step=False)
        self.assertNotIn(WizardStep.REVIEW_ADD_ONS, wizard.steps)
        self.assertEqual(len(wizard.steps), 4)

    async def test_date_step_requires_check_in(self) -> None:
        wizard = self.build()
        outcome = await wizard.advance()
        self.assertIsInstance(outcome, StepInvalid)
        self.assertIn("check_in", outcome.errors)
        self.assertEqual(wizard.step, WizardStep.DATE_AND_PARTY)
        self.assertEqual(self.oracle.calls, [])

    async def test_lodging_requires_check_out(self) -> None:
        wizard = self.build()
        wizard.select_dates(date(2024, 2, 10))
        outcome = await wizard.advance()
        self.assertIn("check_out", outcome.errors)

    async def test_single_day_service_needs_no_check_out(self) -> None:
        wizard = self.build(service=tour_service())
        wizard.select_dates(date(2024, 2, 10))
        self.assertIsInstance(await wizard.advance(), Advanced)

    async def test_party_above_capacity_is_invalid(self) -> None:
        wizard = self.build(service=lodging_service(max_capacity=2))
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        wizard.set_party(adults=2, children=1)
        outcome = await wizard.advance()
        self.assertIn("party", outcome.errors)

    async def test_contact_step_checks_email(self) -> None:
        wizard = self.build(include_add_ons_step=False)
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        await wizard.advance()
        wizard.set_contact("Ana", "not-an-email", "+573001234567", "1020304050")
        outcome = await wizard.advance()
        self.assertEqual(outcome.step, WizardStep.CONTACT_INFO)
        self.assertIn("email", outcome.errors)

    async def test_payment_step_requires_terms_and_payer_fields(self) -> None:
        wizard = self.build(include_add_ons_step=False)
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        await wizard.advance()
        contact = sample_contact()
        wizard.set_contact(contact.full_name, contact.email, contact.phone, contact.document_id)
        await wizard.advance()
        wizard.choose_payment_method(PaymentMethod.CARD, PayerDetails(), accept_terms=False)
        outcome = await wizard.advance()
        self.assertIn("terms", outcome.errors)
        self.assertIn("card_token", outcome.errors)

    async def test_total_follows_selection(self) -> None:
        breakfast = AddOn(id="breakfast", name="Breakfast", price=Money(30000, "COP"))
        wizard = self.build(service=lodging_service(add_ons=[breakfast]))
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        wizard.set_party(adults=2)
        self.assertEqual(wizard.quote.total, Money(714000, "COP"))

        wizard.select_add_on("breakfast")
        self.assertEqual(wizard.quote.subtotal, Money(630000, "COP"))

        wizard.remove_add_on("breakfast")
        self.assertEqual(wizard.quote.total, Money(714000, "COP"))

    def test_unknown_add_on_is_refused(self) -> None:
        wizard = self.build()
        with self.assertRaises(WizardStateError):
            wizard.select_add_on("spa")

    async def test_back_keeps_entered_data(self) -> None:
        wizard = self.build()
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        await wizard.advance()
        self.assertEqual(wizard.back(), WizardStep.DATE_AND_PARTY)
        self.assertEqual(wizard.draft.dates, DateRange(date(2024, 2, 10), date(2024, 2, 12)))

    def test_cannot_jump_forward(self) -> None:
        wizard = self.build()
        with self.assertRaises(WizardStateError):
            wizard.go_to(WizardStep.CONFIRMATION)

    async def test_draft_copy_does_not_leak_changes(self) -> None:
        wizard = self.build()
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        draft = wizard.draft
        draft.add_on_ids.add("spa")
        self.assertEqual(wizard.draft.add_on_ids, set())


class WizardAvailabilityTests(WizardTestCase):

    async def test_blocked_dates_keep_wizard_on_date_step(self) -> None:
        alternatives = (DateRange(date(2024, 2, 14), date(2024, 2, 16)),)
        wizard = self.build(oracle=ScriptedAvailabilityOracle(
            AvailabilityAnswer(available=False, reason="Sold out", alternative_dates=alternatives)
        ))
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))
        quote = wizard.quote

        outcome = await wizard.advance()

        self.assertIsInstance(outcome, Block)
        self.assertEqual(outcome.alternative_dates, alternatives)
        self.assertEqual(wizard.step, WizardStep.DATE_AND_PARTY)
        self.assertEqual(wizard.quote, quote)
        self.assertEqual(wizard.last_gate_decision, outcome)

    async def test_unreachable_availability_does_not_admit(self) -> None:
        wizard = self.build(oracle=ScriptedAvailabilityOracle("hang"))
        wizard.gate.timeout = 0.05
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))

        outcome = await wizard.advance()

        self.assertIsInstance(outcome, Undetermined)
        self.assertEqual(wizard.step, WizardStep.DATE_AND_PARTY)
        self.assertFalse(wizard.has_passed(WizardStep.DATE_AND_PARTY))

    async def test_dates_are_locked_while_checking(self) -> None:
        wizard = self.build(oracle=ScriptedAvailabilityOracle(delay=0.05))
        wizard.select_dates(date(2024, 2, 10), date(2024, 2, 12))

        check = asyncio.ensure_future(wizard.advance())
        await asyncio.sleep(0.01)
        with self.assertRaises(WizardStateError):
            wizard.select_dates(date(2024, 3, 1), date(2024, 3, 3))
        self.assertIsInstance(await check, Advanced)

    async def test_changing_party_after_admission_requires_new_check(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard)

        wizard.go_to(WizardStep.DATE_AND_PARTY)
        wizard.set_party(adults=3)
        wizard.go_to(WizardStep.DATE_AND_PARTY)

        blockers = wizard.commit_blockers()
        self.assertIn("availability", blockers)
        self.assertIn(WizardStep.DATE_AND_PARTY.value, blockers)
        self.assertIsInstance(await wizard.submit(), NotReady)
        self.assertEqual(self.store.create_calls, 0)


class WizardSubmitTests(WizardTestCase):

    async def test_submit_before_confirmation_is_not_ready(self) -> None:
        wizard = self.build()
        outcome = await wizard.submit()
        self.assertIsInstance(outcome, NotReady)
        self.assertIn("step", outcome.errors)

    async def test_submit_commits_snapshot(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard)

        outcome = await wizard.submit()

        self.assertIsInstance(outcome, Committed)
        self.assertEqual(outcome.booking.status, BookingStatus.PENDING)
        self.assertEqual(outcome.booking.total, Money(714000, "COP"))
        self.assertEqual(wizard.snapshot.quote.total, outcome.booking.total)
        self.assertEqual(outcome.booking.customer_token, "customer-1")

    async def test_double_submit_creates_one_booking(self) -> None:
        wizard = self.build(store=InMemoryBookingStore(delay=0.02))
        await self.walk_to_confirmation(wizard)

        first, second = await asyncio.gather(wizard.submit(), wizard.submit())

        self.assertIsInstance(first, Committed)
        self.assertIsInstance(second, DuplicateSubmission)
        self.assertEqual(self.store.create_calls, 1)
        self.assertEqual(len(self.store.bookings), 1)

    async def test_submit_after_commit_returns_existing_booking(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard)
        committed = await wizard.submit()

        again = await wizard.submit()

        self.assertIsInstance(again, DuplicateSubmission)
        self.assertEqual(again.booking.id, committed.booking.id)

    async def test_details_are_locked_after_commit(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard)
        await wizard.submit()

        with self.assertRaises(WizardStateError):
            wizard.select_dates(date(2024, 3, 1), date(2024, 3, 3))
        with self.assertRaises(WizardStateError):
            wizard.set_contact("Other", "other@example.com", "1", "2")

    async def test_lost_availability_returns_to_date_step(self) -> None:
        store = InMemoryBookingStore()
        wizard = self.build(service=lodging_service(max_capacity=2), store=store)
        await self.walk_to_confirmation(wizard)
        # Someone else takes the room between the gate check and the commit.
        other = self.build(service=lodging_service(max_capacity=2), store=store)
        await self.walk_to_confirmation(other)
        await other.submit()

        outcome = await wizard.submit()

        self.assertIsInstance(outcome, LostAvailability)
        self.assertEqual(wizard.step, WizardStep.DATE_AND_PARTY)
        self.assertIsInstance(wizard.last_gate_decision, Block)
        self.assertIsNone(wizard.booking)
        self.assertEqual(len(store.bookings), 1)


    async def test_unconfirmed_commit_keeps_details_locked(self) -> None:
        # The first write lands but both responses are lost.
        store = InMemoryBookingStore(fail_next=2, fail_after_write=True)
        wizard = self.build(store=store)
        await self.walk_to_confirmation(wizard)

        self.assertIsInstance(await wizard.submit(), CommitUnavailable)
        self.assertEqual(len(store.bookings), 1)

        wizard.go_to(WizardStep.DATE_AND_PARTY)
        with self.assertRaises(WizardStateError):
            wizard.set_party(adults=3)
        with self.assertRaises(WizardStateError):
            wizard.select_dates(date(2024, 2, 10), date(2024, 2, 14))
        with self.assertRaises(WizardStateError):
            wizard.set_contact("Other", "other@example.com", "1", "2")

        outcome = await wizard.submit()

        self.assertIsInstance(outcome, Committed)
        self.assertEqual(len(store.bookings), 1)
        self.assertEqual(wizard.booking.party, Party(adults=2))
        self.assertEqual(wizard.snapshot.party, wizard.booking.party)
        self.assertEqual(wizard.snapshot.dates, wizard.booking.dates)
        self.assertEqual(wizard.booking.total, wizard.snapshot.quote.total)
        self.assertEqual(wizard.booking.total, Money(714000, "COP"))
        self.assertEqual(wizard.step, WizardStep.CONFIRMATION)

    async def test_resubmit_after_store_outage_commits_once(self) -> None:
        store = InMemoryBookingStore(fail_next=2)
        wizard = self.build(store=store)
        await self.walk_to_confirmation(wizard)
        self.assertIsInstance(await wizard.submit(), CommitUnavailable)

        outcome = await wizard.submit()
        self.assertIsInstance(outcome, Committed)
        self.assertEqual(len(store.bookings), 1)


class WizardPaymentTests(WizardTestCase):

    async def test_pay_requires_committed_booking(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard)
        with self.assertRaises(WizardStateError):
            await wizard.pay()

    async def test_card_payment_marks_booking_paid(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard)
        await wizard.submit()

        outcome = await wizard.pay()

        self.assertIsInstance(outcome, Paid)
        self.assertEqual(wizard.booking.status, BookingStatus.PAID)
        stored = await self.store.get_booking(wizard.booking.id)
        self.assertEqual(stored.status, BookingStatus.PAID)

    async def test_soft_decline_allows_another_method(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(
            wizard, payer=PayerDetails(card_token="decline-tok", holder_name="Ana", document_number="1")
        )
        await wizard.submit()

        declined = await wizard.pay()

        self.assertIsInstance(declined, Declined)
        self.assertFalse(declined.hard)
        self.assertEqual(wizard.step, WizardStep.PAYMENT_METHOD)
        self.assertEqual(wizard.booking.status, BookingStatus.PENDING)

        wizard.choose_payment_method(PaymentMethod.WALLET, PayerDetails(document_number="1020304050"), True)
        self.assertIsInstance(await wizard.advance(), Advanced)
        self.assertIsInstance(await wizard.pay(), Paid)
        self.assertEqual(len(self.store.bookings), 1)
        self.assertEqual(len(await self.attempts.list_for_booking(wizard.booking.id)), 2)

    async def test_hard_decline_rejects_booking(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(
            wizard, payer=PayerDetails(card_token="fraud-tok", holder_name="Ana", document_number="1")
        )
        await wizard.submit()

        outcome = await wizard.pay()

        self.assertIsInstance(outcome, Declined)
        self.assertTrue(outcome.hard)
        self.assertEqual(wizard.booking.status, BookingStatus.REJECTED)

    async def test_payment_in_process_offers_no_other_method(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(
            wizard, payer=PayerDetails(card_token="pending-tok", holder_name="Ana", document_number="1")
        )
        await wizard.submit()

        outcome = await wizard.pay()

        self.assertIsInstance(outcome, PaymentPending)
        self.assertEqual(wizard.step, WizardStep.CONFIRMATION)
        self.assertEqual(wizard.booking.status, BookingStatus.AWAITING_PAYMENT)

        again = await wizard.pay()
        self.assertIsInstance(again, PaymentPending)
        self.assertEqual(self.gateway.calls.count("process_payment"), 1)

    async def test_hosted_checkout_returns_redirect(self) -> None:
        wizard = self.build()
        await self.walk_to_confirmation(wizard, method=PaymentMethod.GATEWAY_REDIRECT, payer=PayerDetails())
        await wizard.submit()

        outcome = await wizard.pay()

        self.assertIsInstance(outcome, RedirectRequired)
        self.assertTrue(outcome.redirect_url.startswith("https://"))
        self.assertEqual(wizard.booking.status, BookingStatus.AWAITING_PAYMENT)


class OpenWizardTests(SimpleTestCase):

    @override_settings(BOOKING_ENGINE={"CATALOG_BACKEND": "apps.bookings.testing.StaticServiceCatalog"})
    async def test_unknown_service_is_reported(self) -> None:
        with self.assertRaises(ServiceNotFound):
            await open_wizard("does-not-exist")
