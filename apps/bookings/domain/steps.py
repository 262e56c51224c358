"""
Wizard steps and their local validation rules.

Validators return a mapping of field name to message; an empty mapping
means the step's own fields are valid. The availability check for the
date step is remote and is handled by the wizard itself.
"""

import re
from enum import Enum
from typing import Dict, List

from apps.bookings.domain.entities import (
    ContactInfo,
    Party,
    PayerDetails,
    PaymentMethod,
    ServiceDefinition,
)
from shared.domain.value_objects import DateRange

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class WizardStep(Enum):
    DATE_AND_PARTY = 'date-and-party'
    REVIEW_ADD_ONS = 'review-add-ons'
    CONTACT_INFO = 'contact-info'
    PAYMENT_METHOD = 'payment-method'
    CONFIRMATION = 'confirmation'


def step_sequence(include_add_ons: bool) -> List[WizardStep]:
    steps = [WizardStep.DATE_AND_PARTY]
    if include_add_ons:
        steps.append(WizardStep.REVIEW_ADD_ONS)
    steps += [WizardStep.CONTACT_INFO, WizardStep.PAYMENT_METHOD, WizardStep.CONFIRMATION]
    return steps


def validate_dates_and_party(service: ServiceDefinition, dates: DateRange | None,
                             party: Party) -> Dict[str, str]:
    errors = {}
    if dates is None:
        errors['check_in'] = "Select a check-in date."
    elif service.requires_check_out and dates.check_out is None:
        errors['check_out'] = "Select a check-out date."

    if party.adults < 1:
        errors['adults'] = "At least one adult is required."
    elif service.max_capacity is not None and party.head_count > service.max_capacity:
        errors['party'] = f"This service allows at most {service.max_capacity} guests."
    return errors


def validate_contact(contact: ContactInfo | None) -> Dict[str, str]:
    if contact is None:
        return {name: "This field is required." for name in ContactInfo.REQUIRED_FIELDS}

    errors = {name: "This field is required." for name in contact.missing_fields()}
    if 'email' not in errors and not EMAIL_RE.match(contact.email.strip()):
        errors['email'] = "Enter a valid email address."
    return errors


def validate_payment(method: PaymentMethod | None, payer: PayerDetails,
                     terms_accepted: bool) -> Dict[str, str]:
    errors = {}
    if method is None:
        errors['payment_method'] = "Select a payment method."
    else:
        for name in payer.missing_for(method):
            errors[name] = "This field is required."
    if not terms_accepted:
        errors['terms'] = "You must accept the terms and conditions."
    return errors
