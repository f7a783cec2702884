from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from auratask.notifications.service import EmailProvider, OutboundEmail

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
  """Bounded fire-and-forget runner for side effects that follow a commit.

  A job's failure is logged and dropped; it never reaches the request that
  submitted it.
  """

  def __init__(self, concurrency: int = 8) -> None:
    self._concurrency = max(1, int(concurrency))
    self._sem: asyncio.Semaphore | None = None
    self._pending: set[asyncio.Task[Any]] = set()

  @property
  def pending(self) -> int:
    return len(self._pending)

  def submit(self, name: str, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> asyncio.Task[Any]:
    if self._sem is None:
      self._sem = asyncio.Semaphore(self._concurrency)
    task = asyncio.create_task(self._run(self._sem, name, fn, *args, **kwargs), name=name)
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)
    return task

  async def _run(self, sem: asyncio.Semaphore, name: str, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> None:
    async with sem:
      try:
        await fn(*args, **kwargs)
      except Exception:
        logger.exception("background job %s failed", name)

  async def drain(self) -> None:
    while self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)


def send_emails(dispatcher: BackgroundDispatcher, provider: EmailProvider, emails: Iterable[OutboundEmail]) -> None:
  for msg in emails:
    dispatcher.submit(f"email:{msg.tags[0] if msg.tags else 'message'}", provider.send, msg)
