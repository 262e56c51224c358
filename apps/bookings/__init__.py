"""Bookings app package.

This app encapsulates the booking engine: the multi-step wizard that
collects dates, party, add-ons, contact and payment choice; pricing;
the availability gate; and the idempotent commit of a draft into a
persisted booking whose status then follows the payment outcome.
"""
