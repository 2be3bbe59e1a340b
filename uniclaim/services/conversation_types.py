"""Result types and errors for ghost conversation detection and cleanup."""
from dataclasses import dataclass, field, asdict
from typing import List, Optional

GHOST_REASON_MISSING_POST_ID = 'Missing postId field'
GHOST_REASON_POST_DELETED = 'Post no longer exists'
# Only these reasons prove the post is gone; access errors may be transient
DELETABLE_GHOST_REASONS = (GHOST_REASON_MISSING_POST_ID, GHOST_REASON_POST_DELETED)


@dataclass
class GhostConversation:
    conversation_id: str
    post_id: str
    reason: str

    @property
    def is_confirmed(self):
        return self.reason in DELETABLE_GHOST_REASONS

    def to_dict(self):
        return asdict(self)


@dataclass
class OrphanedMessage:
    conversation_id: str
    message_id: str
    reason: str

    def to_dict(self):
        return asdict(self)


@dataclass
class CleanupResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass
class ConversationIntegrityResult:
    total_conversations: int = 0
    valid_conversations: int = 0
    ghost_conversations: int = 0
    orphaned_messages: int = 0
    details: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass
class PeriodicCleanupResult:
    timestamp: str
    ghosts_detected: int = 0
    ghosts_cleaned: int = 0
    errors: List[str] = field(default_factory=list)
    duration: int = 0  # milliseconds

    def to_dict(self):
        return asdict(self)


@dataclass
class HealthCheckResult:
    healthy: bool
    total_conversations: int = 0
    ghost_count: int = 0
    issues: List[str] = field(default_factory=list)
    orphaned_messages: Optional[int] = None

    def to_dict(self):
        data = asdict(self)
        # Only the comprehensive check counts orphans
        if data['orphaned_messages'] is None:
            data.pop('orphaned_messages')
        return data


class GhostConversationError(Exception):
    """Base error for conversation integrity operations"""
    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code
        super().__init__(message)


class ConversationValidationError(GhostConversationError):
    def __init__(self, message: str):
        super().__init__(message, 'VALIDATION_ERROR')


class CleanupError(GhostConversationError):
    def __init__(self, message: str):
        super().__init__(message, 'CLEANUP_ERROR')
