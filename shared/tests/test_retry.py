"""Tests for the async retry helper and the message bus."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from django.test import SimpleTestCase

from shared.application.message_bus import MessageBus
from shared.application.retry import retry_async
from shared.domain.base import DomainEvent
from shared.infrastructure.http import RemoteServiceRejected, RemoteServiceUnavailable


class Flaky:
    def __init__(self, failures: list[BaseException]):
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


class RetryAsyncTests(SimpleTestCase):

    async def test_retries_listed_errors_until_success(self) -> None:
        operation = Flaky([RemoteServiceUnavailable("store", "down")] * 2)
        result = await retry_async(operation, attempts=3, backoff=0, retry_on=(RemoteServiceUnavailable,))
        self.assertEqual(result, "ok")
        self.assertEqual(operation.calls, 3)

    async def test_last_failure_is_raised(self) -> None:
        operation = Flaky([RemoteServiceUnavailable("store", "down")] * 3)
        with self.assertRaises(RemoteServiceUnavailable):
            await retry_async(operation, attempts=3, backoff=0, retry_on=(RemoteServiceUnavailable,))
        self.assertEqual(operation.calls, 3)

    async def test_other_errors_are_not_retried(self) -> None:
        operation = Flaky([RemoteServiceRejected("store", 422, {})])
        with self.assertRaises(RemoteServiceRejected):
            await retry_async(operation, attempts=3, backoff=0, retry_on=(RemoteServiceUnavailable,))
        self.assertEqual(operation.calls, 1)

    async def test_timed_out_attempt_is_retried(self) -> None:
        calls = []

        async def slow_then_fast():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return "done"

        result = await retry_async(slow_then_fast, attempts=2, backoff=0, timeout=0.05)
        self.assertEqual(result, "done")
        self.assertEqual(len(calls), 2)


@dataclass(kw_only=True)
class SomethingHappened(DomainEvent):
    value: int


class MessageBusTests(SimpleTestCase):

    def test_failing_handler_does_not_stop_the_others(self) -> None:
        bus = MessageBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        def recorder(event):
            seen.append(event.value)

        bus.subscribe(SomethingHappened, broken)
        bus.subscribe(SomethingHappened, recorder)
        bus.publish([SomethingHappened(value=7)])

        self.assertEqual(seen, [7])

    def test_event_serializes_payload(self) -> None:
        data = SomethingHappened(value=3).to_dict()
        self.assertEqual(data["event_type"], "SomethingHappened")
        self.assertEqual(data["payload"], {"value": 3})
