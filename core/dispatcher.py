"""
Fire-and-forget notification dispatch.

Event handlers call NotificationDispatcher.send, which queues the work on a
single background thread and returns at once. The ticket or invoice write
that triggered the notification is already persisted; a failed delivery is
logged and never reaches the caller.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from core.models import Channel, TemplateType

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Queues notification sends on one worker thread."""

    def __init__(self, notification_service):
        self.notification_service = notification_service
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notify")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def send(
        self,
        user_id: str,
        template_type: TemplateType,
        variables: dict[str, str],
        channels: list[Channel] | None = None,
    ) -> None:
        """
        Queue a notification and return immediately.

        Args:
            user_id: Customer the message is for
            template_type: Kind of message
            variables: Template placeholder values
            channels: Channels to try (default email and SMS)
        """
        try:
            future = self._executor.submit(
                self.notification_service.send, user_id, template_type, variables, channels,
            )
        except RuntimeError:
            logger.error(f"Dispatcher is shut down, dropping {template_type.value} for {user_id}")
            return

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._finished(user_id, template_type))

    def _finished(self, user_id: str, template_type: TemplateType):
        def callback(future: Future):
            with self._lock:
                self._pending.discard(future)

            error = future.exception()
            if error is not None:
                logger.error(
                    f"Notification {template_type.value} for {user_id} failed",
                    exc_info=error,
                )

        return callback

    def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for queued notifications to finish.

        Returns:
            True if nothing is left pending
        """
        with self._lock:
            pending = set(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
