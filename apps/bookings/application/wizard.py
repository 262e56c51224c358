"""
Booking Wizard

Drives one booking attempt through its steps:

    DATE_AND_PARTY -> [REVIEW_ADD_ONS] -> CONTACT_INFO -> PAYMENT_METHOD -> CONFIRMATION

The wizard is the only writer of its draft. Every change to dates,
party or add-ons re-prices the draft. Leaving the date step requires
the availability gate to admit the current dates and party; committing
requires every step to have passed since its data last changed; paying
requires a committed booking.

Network-bound actions (`advance` out of the date step, `submit`, `pay`)
are coroutines that return typed outcomes. Misuse of the wizard, such as
editing a locked draft, raises WizardStateError.
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Dict, Tuple

from apps.bookings.application.availability import Admit, AvailabilityGate, Block
from apps.bookings.application.commit import (
    BookingCommitter,
    CommitRejected,
    CommitUnavailable,
    Committed,
    LostAvailability,
)
from apps.bookings.domain.draft import DraftBooking, DraftSnapshot
from apps.bookings.domain.entities import (
    BookingRecord,
    ContactInfo,
    Party,
    PayerDetails,
    PaymentMethod,
    ServiceDefinition,
)
from apps.bookings.domain.pricing import PriceQuote, PricingPolicy, quote_for
from apps.bookings.domain.steps import (
    WizardStep,
    step_sequence,
    validate_contact,
    validate_dates_and_party,
    validate_payment,
)
from apps.bookings.exceptions import ServiceMisconfigured, WizardStateError
from shared.domain.value_objects import DateRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Advanced:
    step: WizardStep


@dataclass(frozen=True)
class StepInvalid:
    step: WizardStep
    errors: Dict[str, str]


@dataclass(frozen=True)
class NotReady:
    """Commit or payment was requested before the required steps passed."""
    errors: Dict[str, str]


@dataclass(frozen=True)
class DuplicateSubmission:
    """A submission is already in flight or has already produced a booking."""
    booking: BookingRecord | None = None


class BookingWizard:

    def __init__(self, service: ServiceDefinition, *, gate: AvailabilityGate,
                 committer: BookingCommitter, handoff, policy: PricingPolicy,
                 include_add_ons_step: bool = True, customer_token: str = '',
                 idempotency_key: str | None = None):
        if service.base_price is None:
            raise ServiceMisconfigured(service.reference)

        self.gate = gate
        self.committer = committer
        self.handoff = handoff
        self.policy = policy
        self.customer_token = customer_token
        # One key for the whole session; every commit retry reuses it.
        self.idempotency_key = idempotency_key or uuid.uuid4().hex

        self._steps = step_sequence(include_add_ons_step)
        self._index = 0
        self._draft = DraftBooking(service=service)
        self._passed = {step: False for step in self._steps}
        self._admitted_for: Tuple[DateRange, Party] | None = None
        self.last_gate_decision = None

        self._checking = False
        self._submitting = False
        self._paying = False
        self._snapshot: DraftSnapshot | None = None
        # Set while a commit may have been stored without us hearing back.
        self._unconfirmed: DraftSnapshot | None = None
        self.booking: BookingRecord | None = None

    # ----- read access -----

    @property
    def step(self) -> WizardStep:
        return self._steps[self._index]

    @property
    def steps(self) -> Tuple[WizardStep, ...]:
        return tuple(self._steps)

    @property
    def service(self) -> ServiceDefinition:
        return self._draft.service

    @property
    def draft(self) -> DraftBooking:
        """A copy; changes to it do not reach the wizard."""
        return copy.deepcopy(self._draft)

    @property
    def quote(self) -> PriceQuote | None:
        return self._draft.quote

    @property
    def snapshot(self) -> DraftSnapshot | None:
        """What was committed, frozen at submit time."""
        return self._snapshot

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    def has_passed(self, step: WizardStep) -> bool:
        return self._passed.get(step, False)

    # ----- mutators -----

    def _ensure_editable(self, step: WizardStep):
        if self.booking is not None or self._submitting:
            raise WizardStateError("The booking has been submitted; its details can no longer change")
        if self._unconfirmed is not None:
            raise WizardStateError(
                "A previous submission may already be stored; submit it again unchanged"
            )
        if self._checking and step is WizardStep.DATE_AND_PARTY:
            raise WizardStateError("Availability check in progress")

    def select_dates(self, check_in: date, check_out: date | None = None):
        self._ensure_editable(WizardStep.DATE_AND_PARTY)
        self._draft.dates = DateRange(check_in, check_out)
        self._invalidate(WizardStep.DATE_AND_PARTY)
        self._reprice()

    def set_party(self, adults: int, children: int = 0):
        self._ensure_editable(WizardStep.DATE_AND_PARTY)
        self._draft.party = Party(adults=adults, children=children)
        self._invalidate(WizardStep.DATE_AND_PARTY)
        self._reprice()

    def select_add_on(self, add_on_id: str):
        self._ensure_editable(WizardStep.REVIEW_ADD_ONS)
        if self.service.find_add_on(add_on_id) is None:
            raise WizardStateError(f"Add-on {add_on_id} is not offered by {self.service.reference}")
        self._draft.add_on_ids.add(add_on_id)
        self._reprice()

    def remove_add_on(self, add_on_id: str):
        self._ensure_editable(WizardStep.REVIEW_ADD_ONS)
        self._draft.add_on_ids.discard(add_on_id)
        self._reprice()

    def set_contact(self, full_name: str, email: str, phone: str, document_id: str,
                    special_requests: str = ''):
        self._ensure_editable(WizardStep.CONTACT_INFO)
        self._draft.contact = ContactInfo(
            full_name=full_name.strip(),
            email=email.strip(),
            phone=phone.strip(),
            document_id=document_id.strip(),
            special_requests=special_requests.strip(),
        )
        self._invalidate(WizardStep.CONTACT_INFO)

    def choose_payment_method(self, method: PaymentMethod, payer: PayerDetails | None = None,
                              accept_terms: bool = False):
        """Allowed after commit too, so a declined payment can be retried with another method."""
        if self._paying:
            raise WizardStateError("A payment is in progress")
        if self._submitting:
            raise WizardStateError("Submission in progress")
        self._draft.payment_method = PaymentMethod(method)
        self._draft.payer = payer or PayerDetails()
        self._draft.terms_accepted = accept_terms
        self._invalidate(WizardStep.PAYMENT_METHOD)

    def _invalidate(self, step: WizardStep):
        if step in self._passed:
            self._passed[step] = False

    def _reprice(self):
        if self._draft.dates is None:
            self._draft.quote = None
            return
        self._draft.quote = quote_for(
            self.service,
            self._draft.dates,
            self._draft.party,
            self._draft.add_on_ids,
            self.policy,
        )

    # ----- navigation -----

    def back(self) -> WizardStep:
        """Step back one step; entered data is kept."""
        if self._index > 0:
            self._index -= 1
        return self.step

    def go_to(self, step: WizardStep) -> WizardStep:
        """Jump back to an earlier step. Forward jumps are not allowed."""
        target = self._steps.index(step)
        if target > self._index:
            raise WizardStateError(f"Cannot skip ahead to {step.value}")
        self._index = target
        return self.step

    async def advance(self):
        """
        Validate the current step and move to the next one.

        Returns Advanced, StepInvalid, or the gate's Block / Undetermined
        when leaving the date step.
        """
        step = self.step
        if step is WizardStep.CONFIRMATION:
            raise WizardStateError("Confirmation is the last step; use submit()")
        if self._checking:
            raise WizardStateError("Availability check in progress")

        if step is WizardStep.DATE_AND_PARTY:
            errors = validate_dates_and_party(self.service, self._draft.dates, self._draft.party)
            if errors:
                return StepInvalid(step, errors)
            decision = await self._check_availability()
            if not isinstance(decision, Admit):
                return decision
        elif step is WizardStep.CONTACT_INFO:
            errors = validate_contact(self._draft.contact)
            if errors:
                return StepInvalid(step, errors)
        elif step is WizardStep.PAYMENT_METHOD:
            errors = validate_payment(self._draft.payment_method, self._draft.payer, self._draft.terms_accepted)
            if errors:
                return StepInvalid(step, errors)

        self._passed[step] = True
        self._index += 1
        if self.step is WizardStep.CONFIRMATION:
            self._reprice()
        logger.debug(f"Wizard {self.idempotency_key} advanced to {self.step.value}")
        return Advanced(self.step)

    async def _check_availability(self):
        dates, party = self._draft.dates, self._draft.party
        self._checking = True
        try:
            decision = await self.gate.check(self.service.reference, dates, party)
        finally:
            self._checking = False

        self.last_gate_decision = decision
        if isinstance(decision, Admit):
            self._admitted_for = (dates, party)
        else:
            self._admitted_for = None
        return decision

    # ----- commit -----

    def commit_blockers(self) -> Dict[str, str]:
        """Why submit() would refuse right now; empty when it would proceed."""
        blockers = {}
        if self.step is not WizardStep.CONFIRMATION:
            blockers['step'] = f"Currently on {self.step.value}"
        for step in self._steps:
            if step is WizardStep.CONFIRMATION:
                continue
            if not self._passed[step]:
                blockers[step.value] = "Step has not been completed"
        if self._admitted_for != (self._draft.dates, self._draft.party):
            blockers['availability'] = "Availability has not been confirmed for the selected dates"
        return blockers

    async def submit(self):
        """
        Commit the draft. Only the first call does anything; concurrent or
        repeated calls get DuplicateSubmission.

        After CommitUnavailable the store may hold the booking already, so
        the next submit sends the very same snapshot under the same key and
        the details stay locked until the store answers.
        """
        if self._submitting or self.booking is not None:
            logger.info(f"Duplicate submit ignored for wizard {self.idempotency_key}")
            return DuplicateSubmission(self.booking)

        if self._unconfirmed is None:
            blockers = self.commit_blockers()
            if blockers:
                return NotReady(blockers)

        self._submitting = True
        try:
            if self._unconfirmed is not None:
                snapshot = self._unconfirmed
            else:
                self._reprice()
                snapshot = self._draft.snapshot(self.customer_token)
            outcome = await self.committer.commit(snapshot, self.idempotency_key)
        finally:
            self._submitting = False

        self._unconfirmed = snapshot if isinstance(outcome, CommitUnavailable) else None
        if isinstance(outcome, Committed):
            self.booking = outcome.booking
            self._snapshot = snapshot
            self._index = self._steps.index(WizardStep.CONFIRMATION)
        elif isinstance(outcome, LostAvailability):
            self._admitted_for = None
            self._passed[WizardStep.DATE_AND_PARTY] = False
            self._index = 0
            self.last_gate_decision = Block(outcome.reason, outcome.alternative_dates)
        elif isinstance(outcome, (CommitRejected, CommitUnavailable)):
            logger.info(f"Wizard {self.idempotency_key} commit not completed: {outcome}")
        return outcome

    # ----- payment -----

    async def pay(self):
        """
        Hand the committed booking to the payment gateway with the chosen
        method. After a decline the wizard returns to the payment step so a
        different method can be chosen; the booking is not committed again.
        A payment the gateway is still processing offers no other method.
        """
        if self.booking is None:
            raise WizardStateError("Submit the booking before paying")
        if self._paying:
            return DuplicateSubmission(self.booking)

        errors = validate_payment(self._draft.payment_method, self._draft.payer, self._draft.terms_accepted)
        if errors or not self._passed[WizardStep.PAYMENT_METHOD]:
            return NotReady(errors or {'payment_method': "Payment step has not been completed"})

        from apps.payments.handoff import AlreadySettled, Declined, Paid, PaymentPending, RedirectRequired

        self._paying = True
        try:
            outcome = await self.handoff.start(self.booking, self._draft.payment_method, self._draft.payer)
        finally:
            self._paying = False

        if isinstance(outcome, (Paid, RedirectRequired, PaymentPending, AlreadySettled)):
            self.booking = outcome.booking
        elif isinstance(outcome, Declined):
            self.booking = outcome.booking
            if not outcome.hard:
                self._passed[WizardStep.PAYMENT_METHOD] = False
                self._index = self._steps.index(WizardStep.PAYMENT_METHOD)
        return outcome


async def open_wizard(service_reference: str, customer_token: str = '') -> BookingWizard:
    """Build a wizard wired to the collaborators configured in settings."""
    from django.utils.module_loading import import_string

    from apps.bookings.conf import engine_settings
    from apps.payments.services import build_payment_handoff

    conf = engine_settings()
    catalog = import_string(conf.catalog_backend)()
    oracle = import_string(conf.availability_backend)()
    store = import_string(conf.booking_store_backend)()

    service = await catalog.get_service(service_reference)
    return BookingWizard(
        service,
        gate=AvailabilityGate(oracle, timeout=conf.availability_timeout),
        committer=BookingCommitter(
            store,
            timeout=conf.commit_timeout,
            attempts=conf.commit_retry_attempts,
            backoff=conf.retry_backoff_seconds,
        ),
        handoff=build_payment_handoff(store),
        policy=conf.policy,
        include_add_ons_step=conf.include_add_ons_step,
        customer_token=customer_token,
    )
