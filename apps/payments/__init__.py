"""Payments app package.

Hands committed bookings over to the payment gateway (direct charge or
hosted checkout) and reconciles the gateway's answers back onto the
booking status. Every interaction is recorded as a payment attempt.
"""
