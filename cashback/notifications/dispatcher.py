"""Background delivery of non-critical notification emails.

Welcome, referral-bonus and withdrawal-status mails are queued here and
sent by a single worker task that lives for the app lifespan. A request
never waits on, or fails because of, one of these mails.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from cashback.core.email import ResendMailer
from cashback.core.retry import with_retry

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    welcome = "welcome"
    referral_bonus = "referral_bonus"
    withdrawal_update = "withdrawal_update"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    to_email: str
    name: str
    params: dict[str, str] = field(default_factory=dict)


def welcome(to_email: str, name: str) -> Notification:
    return Notification(NotificationKind.welcome, to_email, name)


def referral_bonus(to_email: str, name: str, amount: str) -> Notification:
    return Notification(
        NotificationKind.referral_bonus, to_email, name, {"amount": amount}
    )


def withdrawal_update(
    to_email: str, name: str, amount: str, status: str, notes: str = ""
) -> Notification:
    return Notification(
        NotificationKind.withdrawal_update,
        to_email,
        name,
        {"amount": amount, "status": status, "notes": notes},
    )


class NotificationDispatcher:
    """One-way in-process queue drained by a background worker.

    Each notification is attempted up to max_attempts times with
    exponential backoff. Exhausted retries and a full queue are logged.
    """

    def __init__(
        self,
        mailer: ResendMailer,
        max_attempts: int = 3,
        queue_size: int = 1000,
        base_delay: float = 0.5,
    ):
        self._mailer = mailer
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-worker")

    async def stop(self, timeout: float = 5.0) -> None:
        """Give queued notifications up to timeout seconds, then cancel."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Notification queue not drained at shutdown, dropping %d",
                self._queue.qsize(),
            )
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    def dispatch(self, notification: Notification) -> bool:
        """Queue a notification. Never raises; returns False if dropped."""
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning(
                "Notification queue full, dropping %s notification",
                notification.kind.value,
            )
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued notification has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self.deliver(notification)
            finally:
                self._queue.task_done()

    async def deliver(self, notification: Notification) -> bool:
        """Send one notification with retries. Returns False if it gave up."""

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.info(
                "Retrying %s notification (attempt %d failed: %s), next in %.1fs",
                notification.kind.value,
                attempt,
                error,
                delay,
            )

        try:
            await with_retry(
                lambda: asyncio.to_thread(self._send, notification),
                attempts=self._max_attempts,
                exceptions=(Exception,),
                base_delay=self._base_delay,
                on_retry=on_retry,
            )
        except Exception:
            logger.error(
                "Giving up on %s notification after %d attempts",
                notification.kind.value,
                self._max_attempts,
                exc_info=True,
            )
            return False
        return True

    def _send(self, notification: Notification) -> str | None:
        params = notification.params
        if notification.kind == NotificationKind.welcome:
            return self._mailer.send_welcome(notification.to_email, notification.name)
        if notification.kind == NotificationKind.referral_bonus:
            return self._mailer.send_referral_bonus(
                notification.to_email, notification.name, params["amount"]
            )
        return self._mailer.send_withdrawal_update(
            notification.to_email,
            notification.name,
            params["amount"],
            params["status"],
            params.get("notes", ""),
        )
