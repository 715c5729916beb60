from fastapi import APIRouter, Query
from typing import Optional

from app.common.clock import local_today
from app.dependencies.dbDependecies import db_dependency
from app.modules.reminders.classifier import classify
from app.modules.reminders.models import Reminder
from app.modules.reminders.schemas import ReminderNotifications

router = APIRouter(prefix="/reminders", tags=["Reminders"])


@router.get("/notifications", response_model=ReminderNotifications)
def reminder_notifications(
    db: db_dependency,
    horizon_days: Optional[int] = Query(7, ge=0, le=365, description="How far ahead to list upcoming reminders"),
):
    """Open reminders grouped as overdue, due today and upcoming, relative to today's local date."""
    today = local_today()
    reminders = db.query(Reminder).filter(Reminder.is_completed.is_(False)).all()
    buckets = classify(reminders, today, horizon_days)
    return ReminderNotifications(
        today=today,
        overdue=buckets.overdue,
        due_today=buckets.today,
        upcoming=buckets.upcoming,
        attention_count=buckets.attention_count,
    )
