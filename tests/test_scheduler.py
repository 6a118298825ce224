from contextlib import contextmanager
from datetime import datetime, timedelta

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

import scheduler
from models import Sessao
from scheduler import SchedulerManager


@pytest.fixture
def manager(engine, monkeypatch):
    @contextmanager
    def test_scope():
        with Session(engine, expire_on_commit=False) as db:
            yield db
            db.commit()

    monkeypatch.setattr(scheduler, "session_scope", test_scope)
    manager = SchedulerManager()
    monkeypatch.setattr(manager.scheduler, "start", lambda *args, **kwargs: None)
    yield manager
    manager.stop()


def _expire(session, token):
    sessao = session.query(Sessao).filter_by(token=token).one()
    sessao.expires_at = datetime.utcnow() - timedelta(minutes=1)
    session.commit()


def test_run_job_purges_expired_sessions(manager, session, registered):
    _expire(session, registered["token"])

    assert manager._run_job("manual") == 1
    assert manager._run_job("manual") == 0
    assert session.query(Sessao).count() == 0


def test_run_job_keeps_live_sessions(manager, session, registered):
    assert manager._run_job() == 0
    assert session.query(Sessao).filter_by(token=registered["token"]).count() == 1


def test_start_purges_and_registers_jobs(manager, session, registered):
    _expire(session, registered["token"])

    manager.start()

    assert session.query(Sessao).count() == 0
    jobs = {job.id: job for job in manager.scheduler.get_jobs()}
    assert set(jobs) == {"sessions_daily", "sessions_hourly_safety"}

    daily = jobs["sessions_daily"]
    assert isinstance(daily.trigger, CronTrigger)
    assert daily.args == ("daily_03:30",)
    fields = {field.name: str(field) for field in daily.trigger.fields}
    assert fields["hour"] == "3"
    assert fields["minute"] == "30"

    hourly = jobs["sessions_hourly_safety"]
    assert isinstance(hourly.trigger, IntervalTrigger)
    assert hourly.trigger.interval == timedelta(hours=1)
    assert hourly.args == ("hourly_safety_net",)
