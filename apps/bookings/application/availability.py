"""
Availability Gate

Turns the availability collaborator's answer into a decision the wizard
can act on. A failed check is never treated as available.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Tuple

from apps.bookings.application.ports import AvailabilityOracle
from apps.bookings.domain.entities import Party
from shared.domain.value_objects import DateRange
from shared.infrastructure.http import RemoteServiceRejected, RemoteServiceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admit:
    pass


@dataclass(frozen=True)
class Block:
    """The dates are definitely unavailable."""
    reason: str
    alternative_dates: Tuple[DateRange, ...] = ()


@dataclass(frozen=True)
class Undetermined:
    """The check could not be completed; the dates may or may not be free."""
    detail: str
    retryable: bool = True


GateDecision = Admit | Block | Undetermined


class AvailabilityGate:

    def __init__(self, oracle: AvailabilityOracle, timeout: float = 10.0):
        self.oracle = oracle
        self.timeout = timeout

    async def check(self, service_reference: str, dates: DateRange, party: Party) -> GateDecision:
        try:
            answer = await asyncio.wait_for(
                self.oracle.check_availability(service_reference, dates, party),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Availability check for {service_reference} {dates} timed out after {self.timeout}s")
            return Undetermined("Availability check timed out", retryable=True)
        except RemoteServiceUnavailable as e:
            logger.warning(f"Availability check for {service_reference} {dates} failed: {e}")
            return Undetermined("Availability service unavailable", retryable=True)
        except RemoteServiceRejected as e:
            logger.error(f"Availability check for {service_reference} {dates} rejected: {e.body}")
            return Undetermined("Availability service refused the request", retryable=False)

        if answer.available:
            logger.info(f"Availability admitted: {service_reference} {dates} party={party.head_count}")
            return Admit()

        logger.info(
            f"Availability blocked: {service_reference} {dates} "
            f"reason={answer.reason!r} alternatives={len(answer.alternative_dates)}"
        )
        return Block(answer.reason, tuple(answer.alternative_dates))
