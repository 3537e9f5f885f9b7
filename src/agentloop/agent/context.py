"""
agent/context.py — Per-Run Context

A RunContext travels explicitly through every call a run makes (agent
loop → strategy → oracle → tools). It carries the run's identity and its
cancellation signal; nothing about a request is stored in module globals.

Cancellation sources:
  - ctx.cancel()            — e.g. Ctrl+C in the CLI
  - ctx deadline            — RunContext.with_timeout(seconds)
  - asyncio task cancellation of the coroutine running the agent

Every suspension point either calls ctx.raise_if_cancelled() or awaits
through ctx.guard(), which races the awaited work against the cancel
signal and the deadline.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Optional, TypeVar

from agentloop.exceptions import AgentCancelledError

T = TypeVar("T")


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class RunContext:
    run_id: str = field(default_factory=_new_run_id)
    deadline: Optional[float] = None        # time.monotonic() value
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    reason: str = ""

    @classmethod
    def with_timeout(cls, seconds: float, run_id: Optional[str] = None) -> "RunContext":
        ctx = cls(deadline=time.monotonic() + seconds)
        if run_id:
            ctx.run_id = run_id
        return ctx

    def child(self) -> "RunContext":
        """Context for a delegated run: fresh run_id, same cancel signal and deadline."""
        return RunContext(deadline=self.deadline, cancel_event=self.cancel_event)

    # ── Signal ────────────────────────────────────────────────────────────────

    def cancel(self, reason: str = "") -> None:
        self.reason = reason
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise AgentCancelledError(f"执行被取消{self._reason_suffix()}")
        if self.expired:
            raise AgentCancelledError("执行被取消: 超过截止时间")

    def _reason_suffix(self) -> str:
        return f": {self.reason}" if self.reason else ""

    # ── Guarded await ─────────────────────────────────────────────────────────

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the run is cancelled first.

        On cancellation or deadline expiry the pending work is cancelled and
        AgentCancelledError is raised.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        self.raise_if_cancelled()
        # timeout fired a hair before expired became true
        raise AgentCancelledError("执行被取消: 超过截止时间")
