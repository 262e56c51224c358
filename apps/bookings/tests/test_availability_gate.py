"""Tests for the availability gate."""

from __future__ import annotations

from datetime import date

from django.test import SimpleTestCase

from apps.bookings.application.availability import Admit, AvailabilityGate, Block, Undetermined
from apps.bookings.application.ports import AvailabilityAnswer
from apps.bookings.domain.entities import Party
from apps.bookings.testing import ScriptedAvailabilityOracle
from shared.domain.value_objects import DateRange
from shared.infrastructure.http import RemoteServiceRejected, RemoteServiceUnavailable

DATES = DateRange(date(2024, 2, 10), date(2024, 2, 12))


class AvailabilityGateTests(SimpleTestCase):

    async def _check(self, *script, timeout: float = 1.0):
        gate = AvailabilityGate(ScriptedAvailabilityOracle(*script), timeout=timeout)
        return await gate.check("hotel-cartagena", DATES, Party(adults=2))

    async def test_available_dates_are_admitted(self) -> None:
        decision = await self._check(AvailabilityAnswer(available=True))
        self.assertIsInstance(decision, Admit)

    async def test_unavailable_dates_are_blocked_with_alternatives(self) -> None:
        alternatives = (DateRange(date(2024, 2, 14), date(2024, 2, 16)),)
        decision = await self._check(
            AvailabilityAnswer(available=False, reason="Sold out", alternative_dates=alternatives)
        )
        self.assertEqual(decision, Block("Sold out", alternatives))

    async def test_timeout_is_undetermined_not_admitted(self) -> None:
        decision = await self._check("hang", timeout=0.05)
        self.assertIsInstance(decision, Undetermined)
        self.assertTrue(decision.retryable)

    async def test_unreachable_oracle_is_undetermined(self) -> None:
        decision = await self._check(RemoteServiceUnavailable("availability", "HTTP 503"))
        self.assertIsInstance(decision, Undetermined)
        self.assertTrue(decision.retryable)

    async def test_refused_request_is_not_retryable(self) -> None:
        decision = await self._check(RemoteServiceRejected("availability", 400, {"message": "bad"}))
        self.assertIsInstance(decision, Undetermined)
        self.assertFalse(decision.retryable)
