"""
Background cleanup service for periodic ghost conversation maintenance.
Called by the scheduler and from the admin API.
"""
import math
import time
import logging
from datetime import datetime, timezone
from .. import database
from . import conversation_validation_service as validation
from . import conversation_cleanup_service as cleanup
from .conversation_types import PeriodicCleanupResult, HealthCheckResult, GhostConversationError

_logger = logging.getLogger(__name__)

QUICK_CHECK_SAMPLE_SIZE = 10

def _elapsed_ms(start):
    return int((time.monotonic() - start) * 1000)

def run_periodic_cleanup() -> PeriodicCleanupResult:
    """
    Detect and clean up ghost conversations and orphaned messages.
    Never raises; failures are reported in the result's errors.
    """
    start = time.monotonic()
    errors = []
    try:
        _logger.info("🧹 Starting periodic ghost conversation cleanup...")
        ghosts = validation.detect_ghost_conversations()
        orphans = validation.detect_orphaned_messages()
        total_issues = len(ghosts) + len(orphans)

        if total_issues == 0:
            duration = _elapsed_ms(start)
            _logger.info(f"Periodic cleanup completed in {duration}ms - No issues found")
            return PeriodicCleanupResult(timestamp=datetime.now(timezone.utc).isoformat(), duration=duration)

        _logger.info(f"Found {len(ghosts)} ghost conversations and {len(orphans)} orphaned messages")

        ghost_result = cleanup.cleanup_ghost_conversations(ghosts)
        message_result = cleanup.cleanup_orphaned_messages(orphans)
        errors.extend(f'Ghost cleanup: {error}' for error in ghost_result.errors)
        errors.extend(f'Message cleanup: {error}' for error in message_result.errors)

        total_cleaned = ghost_result.success + message_result.success
        duration = _elapsed_ms(start)
        _logger.info(f"Periodic cleanup completed in {duration}ms - Cleaned up {total_cleaned}/{total_issues} issues")
        return PeriodicCleanupResult(
            timestamp=datetime.now(timezone.utc).isoformat(),
            ghosts_detected=total_issues,
            ghosts_cleaned=total_cleaned,
            errors=errors,
            duration=duration,
        )
    except Exception as e:
        _logger.error(f"❌ Periodic cleanup failed: {e}")
        if isinstance(e, GhostConversationError):
            errors.append(e.message)
        else:
            errors.append(f'Periodic cleanup failed: {e}')
        return PeriodicCleanupResult(
            timestamp=datetime.now(timezone.utc).isoformat(),
            errors=errors,
            duration=_elapsed_ms(start),
        )

def quick_health_check(sample_size=QUICK_CHECK_SAMPLE_SIZE) -> HealthCheckResult:
    """
    Lightweight health check: inspect the first few conversations and
    extrapolate the ghost count to the whole collection.
    """
    try:
        _logger.info("Running quick health check for conversations...")
        conversations = list(database.get_db().collection('conversations').stream())
        total = len(conversations)
        if total == 0:
            return HealthCheckResult(healthy=True)

        sample = conversations[:min(sample_size, total)]
        issues = []
        for conv_doc in sample:
            ghost = validation.check_conversation_post(conv_doc)
            if ghost:
                issues.append(f'Conversation {ghost.conversation_id}: {ghost.reason}')

        estimated_ghosts = math.ceil(len(issues) / len(sample) * total)
        _logger.info(f"Health check completed - Found approximately {estimated_ghosts} ghost conversations out of {total} total")
        return HealthCheckResult(
            healthy=estimated_ghosts == 0,
            total_conversations=total,
            ghost_count=estimated_ghosts,
            issues=issues,
        )
    except Exception as e:
        _logger.error(f"Quick health check failed: {e}")
        return HealthCheckResult(healthy=False, issues=[f'Health check failed: {e}'])

def comprehensive_health_check() -> HealthCheckResult:
    """Full detection of ghosts and orphans; slower than quick_health_check"""
    try:
        _logger.info("Running comprehensive health check for conversations...")
        total = len(list(database.get_db().collection('conversations').stream()))
        ghosts = validation.detect_ghost_conversations()
        orphans = validation.detect_orphaned_messages()

        issues = [f'Ghost conversation: {g.conversation_id} ({g.reason})' for g in ghosts]
        issues += [f'Orphaned message: {m.message_id} in {m.conversation_id} ({m.reason})' for m in orphans]
        _logger.info(f"Comprehensive health check completed - Found {len(issues)} total issues")
        return HealthCheckResult(
            healthy=not issues,
            total_conversations=total,
            ghost_count=len(ghosts),
            issues=issues,
            orphaned_messages=len(orphans),
        )
    except Exception as e:
        _logger.error(f"Comprehensive health check failed: {e}")
        return HealthCheckResult(
            healthy=False,
            issues=[f'Comprehensive health check failed: {e}'],
            orphaned_messages=0,
        )
