from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from hostledger.core import models
from hostledger.services import notifications
from hostledger.tasks import jobs
from hostledger.tasks.queue import INLINE_TASKS, TaskQueue


def test_jobs_are_registered():
    assert INLINE_TASKS["hostledger.expire_listings"] is jobs.expire_listings_job
    assert INLINE_TASKS["hostledger.send_email"] is jobs.send_email_job


def test_unknown_task_is_rejected():
    with pytest.raises(ValueError):
        TaskQueue().enqueue("hostledger.does_not_exist")


def test_expire_listings_job_uses_a_session_scope(monkeypatch, session_factory, make_user, db):
    host = make_user("Host", role="host")
    db.add(
        models.Listing(
            host_id=host.id,
            title="Old Flat",
            price=Decimal("900"),
            status="active",
            expires_at=datetime.utcnow() - timedelta(days=2),
        )
    )
    db.commit()

    @contextmanager
    def scope():
        session = session_factory()
        try:
            yield session
            session.commit()
        finally:
            session.close()

    monkeypatch.setattr("hostledger.core.database.session_scope", scope)

    assert jobs.expire_listings_job() == 1


def test_email_without_smtp_host_is_only_logged(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("SMTP should not be used")

    monkeypatch.setattr(notifications.smtplib, "SMTP", fail)
    notifications.send_email({"to": "host@example.com", "subject": "Payout", "body": "Released"})


def test_notify_swallows_queue_failures(monkeypatch):
    class BrokenQueue:
        def enqueue(self, *args, **kwargs):
            raise RuntimeError("broker down")

    monkeypatch.setattr(notifications, "get_task_queue", lambda: BrokenQueue())
    notifications.notify({"to": "host@example.com", "subject": "Payout"})
