from pydantic import BaseModel
from typing import List, Optional
from datetime import date, time
from uuid import UUID


class ReminderOut(BaseModel):
    id: UUID
    customer_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    type: str
    reminder_date: date
    reminder_time: Optional[time] = None

    class Config:
        from_attributes = True


class ReminderNotifications(BaseModel):
    today: date
    overdue: List[ReminderOut]
    due_today: List[ReminderOut]
    upcoming: List[ReminderOut]
    attention_count: int
