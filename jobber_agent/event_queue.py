"""
In-process FIFO queue of received webhook events with a single drain loop.

Delivery is at-least-once within the process: an event whose enrichment fails
is re-enqueued until it has used its attempt budget. Nothing survives a
restart.
"""
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Optional

from jobber_agent.errors import EnrichmentError, QueueClosedError, QueueFullError
from jobber_agent.logging_config import ProcessingContext, get_logger
from jobber_agent.models import Event, QueueEntry

logger = get_logger(__name__)

DEFAULT_MAX_SIZE = 1000
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 0.1


class EventQueue:
    """
    Bounded FIFO buffer drained by at most one worker at a time.

    enqueue() never blocks: it appends, and starts a drain if none is running.
    The drain exits once the queue is empty.
    """

    def __init__(self, processor: Callable[[QueueEntry], object], stats,
                 max_size: int = DEFAULT_MAX_SIZE,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 delay_seconds: float = DEFAULT_DELAY_SECONDS,
                 honor_retry_delay: bool = False,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.processor = processor
        self.stats = stats
        self.max_size = max_size
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.honor_retry_delay = honor_retry_delay
        self.clock = clock

        self._entries = deque()
        self._lock = threading.Lock()
        self._draining = False
        self._closed = False
        self._idle = threading.Event()
        self._idle.set()
        self._wakeup = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="webhook-drain-")

        self.active_drains = 0
        self.max_concurrent_drains = 0

    def __len__(self):
        with self._lock:
            return len(self._entries)

    @property
    def processing(self) -> bool:
        with self._lock:
            return self._draining

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, event: Event) -> QueueEntry:
        """
        Add an event and make sure a drain is running.

        Raises:
            QueueFullError: the queue holds max_size entries
            QueueClosedError: shutdown has started
        """
        with self._lock:
            if self._closed:
                raise QueueClosedError("Queue is shutting down")
            if len(self._entries) >= self.max_size:
                self.stats.event_rejected()
                raise QueueFullError(f"Queue is full ({self.max_size} entries)")

            entry = QueueEntry(event=event, received_at=self.clock())
            self._entries.append(entry)
            self.stats.event_received(event)
            length = len(self._entries)

            start_drain = not self._draining
            if start_drain:
                self._draining = True
                self._idle.clear()

        logger.info(
            "Webhook queued",
            entry_id=entry.id,
            topic=event.topic_name,
            user_id=event.user_id,
            user_name=event.user_name,
            queue_length=length,
        )
        self._wakeup.set()
        if start_drain:
            self._start_drain()
        return entry

    def _start_drain(self):
        future = self._executor.submit(self._drain)

        def _log_future(f):
            try:
                f.result()
            except Exception as e:
                logger.error("Drain loop crashed", error=str(e))
        future.add_done_callback(_log_future)

    def _drain(self):
        with self._lock:
            self.active_drains += 1
            self.max_concurrent_drains = max(self.max_concurrent_drains, self.active_drains)

        finished = False
        try:
            while True:
                entry = self._next_entry()
                if entry is None:
                    finished = True
                    return
                self._process_entry(entry)
                if self.delay_seconds:
                    time.sleep(self.delay_seconds)
        finally:
            with self._lock:
                self.active_drains -= 1
                if not finished:
                    self._draining = False
                    self._idle.set()

    def _next_entry(self) -> Optional[QueueEntry]:
        """
        Pop the next entry to process, or return None (and mark the drain as
        finished) when the queue is empty.
        """
        while True:
            with self._lock:
                if not self._entries:
                    self._draining = False
                    self._idle.set()
                    return None

                if not self.honor_retry_delay:
                    return self._entries.popleft()

                now = self.clock()
                for index, entry in enumerate(self._entries):
                    if entry.next_retry_at is None or entry.next_retry_at <= now:
                        del self._entries[index]
                        return entry

                wait = min(e.next_retry_at for e in self._entries) - now
                self._wakeup.clear()

            # Everything left is waiting out its backoff
            self._wakeup.wait(max(wait.total_seconds(), 0))

    def _process_entry(self, entry: QueueEntry):
        event = entry.event
        try:
            with ProcessingContext(
                "webhook",
                operation_id=entry.id,
                topic=event.topic_name,
                user_id=event.user_id,
                retries=entry.retries,
            ):
                self.processor(entry)
        except EnrichmentError as e:
            self._retry_or_fail(entry, e)
        except Exception as e:
            logger.error("Webhook processing failed", entry_id=entry.id, error=str(e), exc_info=True)
            self.stats.entry_failed()
        else:
            self.stats.entry_processed()

    def _retry_or_fail(self, entry: QueueEntry, error: Exception):
        entry.retries += 1

        if entry.retries < self.max_attempts:
            # Exponential backoff: 2^retries seconds (2, 4, ...)
            delay_seconds = 2 ** entry.retries
            entry.next_retry_at = self.clock() + timedelta(seconds=delay_seconds)
            with self._lock:
                # Retries bypass max_size and the closed flag: the entry is already ours
                self._entries.append(entry)
            self.stats.entry_retried()
            logger.warning(
                "Webhook enrichment failed, will retry",
                entry_id=entry.id,
                attempt=entry.retries,
                max_attempts=self.max_attempts,
                next_retry_at=entry.next_retry_at.isoformat(),
                error=str(error),
            )
        else:
            self.stats.entry_failed()
            logger.error(
                "Webhook failed after max attempts, dropping",
                entry_id=entry.id,
                attempts=entry.retries,
                topic=entry.event.topic_name,
                item_id=entry.event.item_id,
                error=str(error),
            )

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is empty and no drain is running."""
        return self._idle.wait(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting events and wait for the queue to drain.

        Returns True if the queue drained before the deadline.
        """
        with self._lock:
            self._closed = True
            remaining = len(self._entries)
        logger.info("Shutting down webhook queue", remaining=remaining, timeout=timeout)

        drained = self.wait_until_idle(timeout)
        if not drained:
            logger.warning("Queue shutdown deadline elapsed", remaining=len(self))
        self._executor.shutdown(wait=False)
        return drained

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "length": len(self._entries),
                "processing": self._draining,
                "closed": self._closed,
                "max_size": self.max_size,
                "active_drains": self.active_drains,
                "max_concurrent_drains": self.max_concurrent_drains,
            }
