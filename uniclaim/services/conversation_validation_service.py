"""
Conversation validation service.
Detects ghost conversations (conversations whose post is gone) and orphaned
messages (messages whose parent conversation document was deleted).
"""
import logging
from google.api_core import exceptions as gcp_exceptions
from .. import database
from .conversation_types import (
    GhostConversation,
    OrphanedMessage,
    ConversationIntegrityResult,
    ConversationValidationError,
    GHOST_REASON_MISSING_POST_ID,
    GHOST_REASON_POST_DELETED,
)

_logger = logging.getLogger(__name__)

def check_conversation_post(conv_doc):
    """Return a GhostConversation when the conversation's post is missing or unreadable, else None"""
    conv_data = conv_doc.to_dict() or {}
    post_id = conv_data.get('postId')
    if not post_id:
        return GhostConversation(conv_doc.id, 'unknown', GHOST_REASON_MISSING_POST_ID)

    try:
        post_snap = database.get_db().collection('posts').document(post_id).get()
    except gcp_exceptions.PermissionDenied:
        return GhostConversation(conv_doc.id, post_id, 'Cannot access post (permission denied)')
    except Exception as e:
        return GhostConversation(conv_doc.id, post_id, f'Error checking post: {e}')

    if not post_snap.exists:
        return GhostConversation(conv_doc.id, post_id, GHOST_REASON_POST_DELETED)
    return None

def detect_ghost_conversations():
    """
    Detect conversations without a corresponding post.

    Returns:
        list[GhostConversation]
    """
    try:
        conversations = database.get_db().collection('conversations').stream()
        ghosts = []
        for conv_doc in conversations:
            ghost = check_conversation_post(conv_doc)
            if ghost:
                ghosts.append(ghost)
        _logger.info(f"Ghost detection found {len(ghosts)} ghost conversations")
        return ghosts
    except Exception as e:
        _logger.error(f"Ghost conversation detection failed: {e}")
        raise ConversationValidationError(f'Failed to detect ghost conversations: {e}')

def detect_orphaned_messages():
    """
    Detect messages whose parent conversation document no longer exists.
    Firestore keeps subcollections alive after their parent is deleted, so
    the scan goes through the messages collection group.

    Returns:
        list[OrphanedMessage]
    """
    try:
        messages = database.get_db().collection_group('messages').stream()
        parent_exists = {}
        orphans = []
        for message_doc in messages:
            conv_ref = message_doc.reference.parent.parent
            if conv_ref is None or conv_ref.parent.id != 'conversations':
                continue
            if conv_ref.id not in parent_exists:
                try:
                    parent_exists[conv_ref.id] = conv_ref.get().exists
                except Exception as e:
                    _logger.warning(f"Cannot access conversation {conv_ref.id}: {e}")
                    parent_exists[conv_ref.id] = None
            exists = parent_exists[conv_ref.id]
            if exists is None:
                orphans.append(OrphanedMessage(conv_ref.id, message_doc.id, 'Cannot access parent conversation'))
            elif not exists:
                orphans.append(OrphanedMessage(conv_ref.id, message_doc.id, 'Parent conversation was deleted'))
        _logger.info(f"Orphan detection found {len(orphans)} orphaned messages")
        return orphans
    except Exception as e:
        _logger.error(f"Orphaned message detection failed: {e}")
        raise ConversationValidationError(f'Failed to detect orphaned messages: {e}')

def validate_conversation_integrity():
    """
    Validate every conversation for admin reporting.

    Returns:
        ConversationIntegrityResult
    """
    try:
        db = database.get_db()
        conversations = list(db.collection('conversations').stream())
        result = ConversationIntegrityResult(total_conversations=len(conversations))

        for conv_doc in conversations:
            ghost = check_conversation_post(conv_doc)
            if ghost:
                result.ghost_conversations += 1
                if ghost.reason == GHOST_REASON_MISSING_POST_ID:
                    result.details.append(f'Conversation {conv_doc.id}: Missing postId')
                elif ghost.reason == GHOST_REASON_POST_DELETED:
                    result.details.append(f'Conversation {conv_doc.id}: Post {ghost.post_id} not found')
                else:
                    result.details.append(f'Conversation {conv_doc.id}: {ghost.reason}')
                continue

            result.valid_conversations += 1
            try:
                messages = list(db.collection('conversations').document(conv_doc.id)
                                .collection('messages').limit(1).stream())
            except Exception as e:
                result.orphaned_messages += 1
                result.details.append(f'Conversation {conv_doc.id}: Cannot access messages - {e}')
                continue

            if not messages:
                result.details.append(f'Conversation {conv_doc.id}: No messages found')
            else:
                result.details.append(f'Conversation {conv_doc.id}: Valid')

        return result
    except Exception as e:
        _logger.error(f"Conversation integrity validation failed: {e}")
        raise ConversationValidationError(f'Failed to validate conversation integrity: {e}')
