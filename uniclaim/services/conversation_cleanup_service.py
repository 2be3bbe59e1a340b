"""
Conversation cleanup service.
Deletes ghost conversations, orphaned messages, and whole conversations with
their messages. Claim requests are preserved on the post before a
conversation is deleted.
"""
import logging
from collections import defaultdict
from .. import database
from .claim_preservation_service import preserve_claims_before_deletion
from .conversation_types import CleanupResult, CleanupError

_logger = logging.getLogger(__name__)

# Firestore write batch limit
BATCH_SIZE = 500

class _BatchDeleter:
    """Queue deletes in a write batch and commit whenever the batch is full"""

    def __init__(self, db):
        self._db = db
        self._batch = db.batch()
        self._pending = 0
        self.committed = 0

    def delete(self, ref):
        self._batch.delete(ref)
        self._pending += 1
        if self._pending >= BATCH_SIZE:
            self.flush()

    def flush(self):
        if self._pending:
            self._batch.commit()
            self.committed += self._pending
            self._batch = self._db.batch()
            self._pending = 0

def _queue_conversation_deletion(db, deleter, conversation_id, preserve_claims=True):
    """Preserve claims, then queue the conversation and its messages for deletion.
    Returns the number of documents queued.
    """
    conv_ref = db.collection('conversations').document(conversation_id)
    if preserve_claims:
        conv_snap = conv_ref.get()
        post_id = (conv_snap.to_dict() or {}).get('postId') if conv_snap.exists else None
        if post_id:
            preserve_claims_before_deletion(conversation_id, post_id)

    queued = 0
    for message_doc in conv_ref.collection('messages').stream():
        deleter.delete(message_doc.reference)
        queued += 1
    deleter.delete(conv_ref)
    return queued + 1

def cleanup_ghost_conversations(ghost_conversations) -> CleanupResult:
    """
    Delete ghost conversations and their messages.
    `success` counts deleted conversations. Ghosts whose post could not be
    read are left in place and counted in `skipped`.
    """
    if not ghost_conversations:
        return CleanupResult()

    try:
        db = database.get_db()
        deleter = _BatchDeleter(db)
        result = CleanupResult()
        for ghost in ghost_conversations:
            if not ghost.is_confirmed:
                result.skipped += 1
                _logger.warning(f"Skipping conversation {ghost.conversation_id}: {ghost.reason}")
                continue
            try:
                # A ghost's post is gone, there is nothing to preserve onto
                _queue_conversation_deletion(db, deleter, ghost.conversation_id, preserve_claims=False)
                result.success += 1
            except Exception as e:
                result.failed += 1
                result.errors.append(f'Failed to add {ghost.conversation_id} to cleanup batch: {e}')
        deleter.flush()
        if result.success:
            _logger.info(f"Successfully cleaned up {result.success} ghost conversations")
        return result
    except Exception as e:
        _logger.error(f"Ghost conversation cleanup failed: {e}")
        raise CleanupError(f'Failed to cleanup ghost conversations: {e}')

def cleanup_orphaned_messages(orphaned_messages) -> CleanupResult:
    """
    Delete orphaned messages, grouped by their (deleted) conversation.
    `success` counts deleted messages.
    """
    if not orphaned_messages:
        return CleanupResult()

    try:
        db = database.get_db()
        deleter = _BatchDeleter(db)
        result = CleanupResult()

        by_conversation = defaultdict(list)
        for message in orphaned_messages:
            by_conversation[message.conversation_id].append(message)

        for conversation_id, messages in by_conversation.items():
            try:
                messages_ref = db.collection('conversations').document(conversation_id).collection('messages')
                for message in messages:
                    deleter.delete(messages_ref.document(message.message_id))
                result.success += len(messages)
                _logger.info(f"Queued {len(messages)} orphaned messages for deletion in conversation {conversation_id}")
            except Exception as e:
                result.failed += len(messages)
                result.errors.append(f'Failed to process conversation {conversation_id}: {e}')

        deleter.flush()
        _logger.info(f"Successfully cleaned up {result.success} orphaned messages")
        return result
    except Exception as e:
        _logger.error(f"Orphaned message cleanup failed: {e}")
        raise CleanupError(f'Failed to cleanup orphaned messages: {e}')

def cleanup_conversation(conversation_id) -> CleanupResult:
    """
    Delete one conversation and all of its messages.
    `success` counts deleted documents (conversation plus messages).
    """
    try:
        db = database.get_db()
        deleter = _BatchDeleter(db)
        result = CleanupResult()
        try:
            if not db.collection('conversations').document(conversation_id).get().exists:
                result.failed += 1
                result.errors.append(f'Conversation {conversation_id} not found')
                return result
            queued = _queue_conversation_deletion(db, deleter, conversation_id)
            deleter.flush()
            result.success = queued
            _logger.info(f"Successfully cleaned up conversation {conversation_id} and {queued - 1} messages")
        except Exception as e:
            result.failed += 1
            result.errors.append(f'Failed to cleanup conversation {conversation_id}: {e}')
        return result
    except Exception as e:
        _logger.error(f"Conversation cleanup failed: {e}")
        raise CleanupError(f'Failed to cleanup conversation: {e}')

def batch_cleanup_conversations(conversation_ids) -> CleanupResult:
    """
    Delete many conversations and their messages.
    `success` counts deleted documents (conversations plus messages).
    """
    if not conversation_ids:
        return CleanupResult()

    try:
        db = database.get_db()
        deleter = _BatchDeleter(db)
        result = CleanupResult()
        for conversation_id in conversation_ids:
            try:
                result.success += _queue_conversation_deletion(db, deleter, conversation_id)
            except Exception as e:
                result.failed += 1
                result.errors.append(f'Failed to cleanup conversation {conversation_id}: {e}')
        deleter.flush()
        _logger.info(f"Cleaned up {len(conversation_ids) - result.failed} conversations ({deleter.committed} documents)")
        return result
    except Exception as e:
        _logger.error(f"Batch conversation cleanup failed: {e}")
        raise CleanupError(f'Failed to batch cleanup conversations: {e}')
