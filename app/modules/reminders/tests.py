"""
Tests for reminder classification
"""

import pytest
from datetime import date, time, timedelta
from types import SimpleNamespace

from app.common.clock import local_today
from app.modules.reminders.classifier import OVERDUE, TODAY, UPCOMING, bucket_for, classify
from app.modules.reminders.models import Reminder

TODAY_DATE = date(2026, 3, 5)


def reminder(title, days=0, at=None, completed=False):
    return SimpleNamespace(
        title=title,
        reminder_date=TODAY_DATE + timedelta(days=days),
        reminder_time=at,
        is_completed=completed,
    )


class TestBucketFor:

    def test_yesterday_today_tomorrow(self):
        assert bucket_for(TODAY_DATE - timedelta(days=1), TODAY_DATE) == OVERDUE
        assert bucket_for(TODAY_DATE, TODAY_DATE) == TODAY
        assert bucket_for(TODAY_DATE + timedelta(days=1), TODAY_DATE) == UPCOMING


class TestClassify:

    def test_buckets(self):
        buckets = classify([reminder("igår", -1), reminder("idag"), reminder("imorgon", 1)], TODAY_DATE)
        assert [r.title for r in buckets.overdue] == ["igår"]
        assert [r.title for r in buckets.today] == ["idag"]
        assert [r.title for r in buckets.upcoming] == ["imorgon"]
        assert buckets.attention_count == 2

    def test_completed_reminders_are_ignored(self):
        buckets = classify([reminder("klar", -3, completed=True)], TODAY_DATE)
        assert buckets.ordered == []
        assert buckets.attention_count == 0

    def test_order_within_bucket(self):
        buckets = classify([
            reminder("sen", 0, time(15, 0)),
            reminder("tidig", 0, time(8, 30)),
            reminder("heldag", 0),
            reminder("förrförra", -2),
            reminder("förra", -1),
        ], TODAY_DATE)
        assert [r.title for r in buckets.today] == ["heldag", "tidig", "sen"]
        assert [r.title for r in buckets.overdue] == ["förrförra", "förra"]
        assert [r.title for r in buckets.ordered][:2] == ["förrförra", "förra"]

    def test_horizon_limits_upcoming_only(self):
        buckets = classify([reminder("gammal", -30), reminder("nästa vecka", 7), reminder("långt bort", 8)],
                           TODAY_DATE, horizon_days=7)
        assert [r.title for r in buckets.overdue] == ["gammal"]
        assert [r.title for r in buckets.upcoming] == ["nästa vecka"]

    def test_same_input_same_result(self):
        reminders = [reminder("a", 1), reminder("b", -1), reminder("c")]
        assert classify(reminders, TODAY_DATE) == classify(reminders, TODAY_DATE)


class TestNotificationsEndpoint:

    @pytest.fixture
    def stored(self, db_session, make_customer):
        customer = make_customer()
        today = local_today()
        rows = [
            Reminder(customer_id=customer.id, title="Ring Anna", reminder_date=today - timedelta(days=1)),
            Reminder(customer_id=customer.id, title="Skicka offert", reminder_date=today, reminder_time=time(10, 0)),
            Reminder(title="Förnya domän", reminder_date=today + timedelta(days=3)),
            Reminder(title="Långt fram", reminder_date=today + timedelta(days=30)),
            Reminder(title="Redan gjort", reminder_date=today - timedelta(days=2), is_completed=True),
        ]
        db_session.add_all(rows)
        db_session.commit()
        return rows

    def test_notifications(self, client, stored):
        response = client.get("/reminders/notifications")
        assert response.status_code == 200
        data = response.json()
        assert data["today"] == local_today().isoformat()
        assert [r["title"] for r in data["overdue"]] == ["Ring Anna"]
        assert [r["title"] for r in data["due_today"]] == ["Skicka offert"]
        assert [r["title"] for r in data["upcoming"]] == ["Förnya domän"]
        assert data["attention_count"] == 2

    def test_wider_horizon(self, client, stored):
        data = client.get("/reminders/notifications", params={"horizon_days": 60}).json()
        assert [r["title"] for r in data["upcoming"]] == ["Förnya domän", "Långt fram"]
