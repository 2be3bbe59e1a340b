import pytest

from uniclaim.services import scheduler_service
from uniclaim.services.scheduler_service import CLEANUP_JOB_ID, HEALTH_CHECK_JOB_ID, UniClaimScheduler


@pytest.fixture
def scheduler():
    sch = UniClaimScheduler(cleanup_hour=3, health_check_minutes=15)
    yield sch
    sch.shutdown()


def test_register_jobs_without_starting(scheduler):
    scheduler.register_jobs()

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {CLEANUP_JOB_ID, HEALTH_CHECK_JOB_ID}
    assert jobs[CLEANUP_JOB_ID].name == "Periodic Ghost Conversation Cleanup"
    assert jobs[HEALTH_CHECK_JOB_ID].name == "Conversation Health Check"
    assert scheduler.is_running is False


def test_job_status(scheduler):
    scheduler.register_jobs()

    status = scheduler.get_job_status(CLEANUP_JOB_ID)
    assert status["id"] == CLEANUP_JOB_ID
    assert "hour='3'" in status["trigger"]
    assert "0:15:00" in scheduler.get_job_status(HEALTH_CHECK_JOB_ID)["trigger"]
    assert scheduler.get_job_status("missing") is None


def test_remove_job(scheduler):
    scheduler.register_jobs()

    scheduler.remove_job(HEALTH_CHECK_JOB_ID)

    assert [job.id for job in scheduler.get_jobs()] == [CLEANUP_JOB_ID]


def test_settings_fall_back_to_environment(monkeypatch):
    monkeypatch.setenv("UNICLAIM_CLEANUP_HOUR", "4")
    monkeypatch.setenv("UNICLAIM_HEALTH_CHECK_MINUTES", "30")

    sch = UniClaimScheduler()

    assert sch.cleanup_hour == 4
    assert sch.health_check_minutes == 30


def test_run_cleanup_job_records_result(fake_db, scheduler):
    fake_db.seed("conversations/ghost", {"postId": "p-gone"})

    result = scheduler.run_cleanup_job()

    assert result.ghosts_detected == 1
    assert result.ghosts_cleaned == 1
    assert scheduler.last_cleanup_result is result
    assert not fake_db.exists("conversations/ghost")


def test_run_health_check_job_records_summary(fake_db, scheduler):
    fake_db.seed("conversations/ghost", {"postId": "p-gone"})

    result = scheduler.run_health_check_job()

    assert result.healthy is False
    assert scheduler.last_health_check["ghost_count"] == 1
    assert scheduler.last_health_check["checked_at"]


def test_global_scheduler_accessor():
    assert scheduler_service.get_scheduler() is scheduler_service.uniclaim_scheduler
