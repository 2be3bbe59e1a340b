"""
Scheduler Service for UniClaim conversation maintenance.
Runs ghost conversation cleanup and health checks in the background using APScheduler.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
from datetime import datetime, timezone
import logging
import atexit
import os
from .background_cleanup_service import run_periodic_cleanup, quick_health_check

# Configure logging for scheduler
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = 'periodic_ghost_cleanup'
HEALTH_CHECK_JOB_ID = 'conversation_health_check'

class UniClaimScheduler:
    """
    Background scheduler for UniClaim maintenance tasks.
    Handles periodic ghost conversation cleanup and health checks.
    """

    def __init__(self, cleanup_hour=None, health_check_minutes=None):
        """Initialize the scheduler with background execution."""
        self.scheduler = BackgroundScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,  # Collapse missed runs into one
                'max_instances': 1,  # Only one instance of each job at a time
                'misfire_grace_time': 300  # 5 minutes grace period for missed jobs
            }
        )
        self.cleanup_hour = int(cleanup_hour if cleanup_hour is not None
                                else os.environ.get('UNICLAIM_CLEANUP_HOUR', '2'))
        self.health_check_minutes = int(health_check_minutes if health_check_minutes is not None
                                        else os.environ.get('UNICLAIM_HEALTH_CHECK_MINUTES', '60'))
        self.is_running = False
        self.last_cleanup_result = None
        self.last_health_check = None

        # Register shutdown handler
        atexit.register(self.shutdown)

    def register_jobs(self):
        """Add all maintenance jobs (safe to call before start)."""
        self.add_cleanup_job()
        self.add_health_check_job()

    def start(self):
        """Start the scheduler and add all jobs."""
        if not self.is_running:
            try:
                self.register_jobs()
                self.scheduler.start()
                self.is_running = True

                logger.info("✅ UniClaim Scheduler started successfully")
                logger.info("📅 Scheduled jobs:")
                for job in self.scheduler.get_jobs():
                    logger.info(f"   - {job.name}: {job.trigger}")

            except Exception as e:
                logger.error(f"❌ Failed to start scheduler: {str(e)}")
                raise

    def add_cleanup_job(self):
        """
        Add the daily ghost conversation cleanup job.
        Runs at UNICLAIM_CLEANUP_HOUR:00 UTC to avoid peak usage hours.
        """
        try:
            self.scheduler.add_job(
                func=self.run_cleanup_job,
                trigger=CronTrigger(hour=self.cleanup_hour, minute=0, timezone=timezone.utc),
                id=CLEANUP_JOB_ID,
                name='Periodic Ghost Conversation Cleanup',
                replace_existing=True
            )
            logger.info(f"📋 Added ghost cleanup job (daily at {self.cleanup_hour:02d}:00 UTC)")
        except Exception as e:
            logger.error(f"❌ Failed to add ghost cleanup job: {str(e)}")
            raise

    def add_health_check_job(self):
        """Add the quick conversation health check job."""
        try:
            self.scheduler.add_job(
                func=self.run_health_check_job,
                trigger=IntervalTrigger(minutes=self.health_check_minutes, timezone=timezone.utc),
                id=HEALTH_CHECK_JOB_ID,
                name='Conversation Health Check',
                replace_existing=True
            )
            logger.info(f"✅ Added conversation health check job (every {self.health_check_minutes} minutes)")
        except Exception as e:
            logger.error(f"❌ Failed to add health check job: {str(e)}")
            raise

    def run_cleanup_job(self):
        """Job function for ghost cleanup; wraps the background cleanup service with logging."""
        try:
            logger.info("🔄 Starting scheduled ghost conversation cleanup...")
            result = run_periodic_cleanup()
            self.last_cleanup_result = result
            if result.errors:
                logger.warning(f"⚠️ Ghost cleanup finished with {len(result.errors)} errors")
                for error in result.errors:
                    logger.warning(f"   - {error}")
            logger.info(f"📊 Cleaned {result.ghosts_cleaned}/{result.ghosts_detected} issues in {result.duration}ms")
            return result
        except Exception as e:
            logger.error(f"❌ Error in ghost cleanup job: {str(e)}")

    def run_health_check_job(self):
        """Job function for the quick health check."""
        try:
            result = quick_health_check()
            self.last_health_check = {
                'checked_at': datetime.now(timezone.utc).isoformat(),
                **result.to_dict()
            }
            if result.healthy:
                logger.info(f"💚 Conversations healthy ({result.total_conversations} total)")
            else:
                logger.warning(f"⚠️ Estimated {result.ghost_count} ghost conversations out of {result.total_conversations}")
            return result
        except Exception as e:
            logger.error(f"❌ Error in health check job: {str(e)}")

    def remove_job(self, job_id):
        """Remove a job from the scheduler."""
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"🗑️ Removed job: {job_id}")
        except Exception as e:
            logger.error(f"❌ Failed to remove job {job_id}: {str(e)}")

    def get_jobs(self):
        """Get list of all scheduled jobs."""
        return self.scheduler.get_jobs()

    def get_job_status(self, job_id):
        """Get status of a specific job."""
        try:
            job = self.scheduler.get_job(job_id)
            if job:
                return {
                    'id': job.id,
                    'name': job.name,
                    'next_run': getattr(job, 'next_run_time', None),
                    'trigger': str(job.trigger)
                }
            return None
        except Exception as e:
            logger.error(f"❌ Failed to get job status for {job_id}: {str(e)}")
            return None

    def shutdown(self):
        """Shutdown the scheduler gracefully."""
        if self.is_running:
            try:
                self.scheduler.shutdown(wait=True)
                self.is_running = False
                logger.info("🛑 UniClaim Scheduler shutdown successfully")
            except Exception as e:
                logger.error(f"❌ Error during scheduler shutdown: {str(e)}")

# Global scheduler instance
uniclaim_scheduler = UniClaimScheduler()

def start_scheduler():
    """Start the global scheduler instance."""
    uniclaim_scheduler.start()

def get_scheduler():
    """Get the global scheduler instance."""
    return uniclaim_scheduler

def stop_scheduler():
    """Stop the global scheduler instance."""
    uniclaim_scheduler.shutdown()
