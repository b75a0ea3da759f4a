import threading
from collections import Counter

from jobber_agent.models import Event


class Stats:
    """Process-wide webhook counters. Reset only by a restart."""

    def __init__(self):
        self.stats = {
            "received": 0,
            "processed": 0,
            "failed": 0,
            "retried": 0,
            "rejected": 0,
            "analysis_errors": 0,
        }
        self.by_user = Counter()
        self.by_topic = Counter()
        self.lock = threading.Lock()

    def event_received(self, event: Event):
        with self.lock:
            self.stats["received"] += 1
            self.by_user[event.user_id or "unknown"] += 1
            self.by_topic[event.topic_name] += 1

    def event_rejected(self):
        with self.lock:
            self.stats["rejected"] += 1

    def entry_processed(self):
        with self.lock:
            self.stats["processed"] += 1

    def entry_failed(self):
        with self.lock:
            self.stats["failed"] += 1

    def entry_retried(self):
        with self.lock:
            self.stats["retried"] += 1

    def analysis_failed(self):
        with self.lock:
            self.stats["analysis_errors"] += 1

    def snapshot(self) -> dict:
        with self.lock:
            totals = self.stats.copy()
            by_user = dict(self.by_user)
            by_topic = dict(self.by_topic)

        received = totals["received"]
        totals["success_rate"] = (
            f"{totals['processed'] / received * 100:.2f}%" if received else "0%"
        )
        return {
            "total": totals,
            "by_user": by_user,
            "by_topic": by_topic,
            "unique_users": len(by_user),
            "most_active_user": max(by_user, key=by_user.get) if by_user else None,
        }
