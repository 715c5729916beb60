"""
Sort open reminders into overdue, due today and upcoming.

``today`` is always passed in, so the result depends only on the arguments.
"""
from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, List, Optional

OVERDUE = "overdue"
TODAY = "today"
UPCOMING = "upcoming"


@dataclass
class ReminderBuckets:
    overdue: List = field(default_factory=list)
    today: List = field(default_factory=list)
    upcoming: List = field(default_factory=list)

    @property
    def ordered(self) -> List:
        """Overdue first, then today, then upcoming"""
        return self.overdue + self.today + self.upcoming

    @property
    def attention_count(self) -> int:
        return len(self.overdue) + len(self.today)


def bucket_for(reminder_date: date, today: date) -> str:
    if reminder_date < today:
        return OVERDUE
    if reminder_date == today:
        return TODAY
    return UPCOMING


def _sort_key(reminder):
    # Reminders without a time sort before timed ones on the same day
    reminder_time: Optional[time] = reminder.reminder_time
    return (reminder.reminder_date, reminder_time is not None, reminder_time or time.min)


def classify(reminders: Iterable, today: date, horizon_days: Optional[int] = None) -> ReminderBuckets:
    """
    Bucket not-completed reminders relative to ``today``.

    Args:
        reminders: Objects with ``reminder_date``, ``reminder_time`` and ``is_completed``
        today: The calendar day to classify against
        horizon_days: If set, upcoming reminders further out than this are left out

    Returns:
        ReminderBuckets, each bucket sorted by date and time
    """
    buckets = ReminderBuckets()
    for reminder in sorted((r for r in reminders if not r.is_completed), key=_sort_key):
        bucket = bucket_for(reminder.reminder_date, today)
        if bucket == UPCOMING and horizon_days is not None:
            if (reminder.reminder_date - today).days > horizon_days:
                continue
        getattr(buckets, bucket).append(reminder)
    return buckets
