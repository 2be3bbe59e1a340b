"""
Message service for claim requests inside post conversations.
Keeps each post's preserved claim history in step with the conversation.
"""
import logging
from datetime import datetime, timezone
from firebase_admin import firestore
from .. import database
from .claim_preservation_service import add_claim_request, update_claim_request_status
from .conversation_cleanup_service import cleanup_conversation, batch_cleanup_conversations
from .conversation_types import CleanupResult

_logger = logging.getLogger(__name__)

CLAIM_RESPONSE_STATUSES = ('accepted', 'rejected')

class MessageServiceError(Exception):
    """Raised when a conversation message operation cannot be completed"""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

def _participant_ids(conversation_data):
    # Participants are stored either as a map keyed by user id or as a list of ids
    participants = conversation_data.get('participants') or []
    if isinstance(participants, dict):
        return list(participants.keys())
    return list(participants)

def _validate_photo_urls(id_photo_url, evidence_photos):
    if id_photo_url and not str(id_photo_url).startswith('http'):
        raise MessageServiceError('Invalid ID photo URL provided')
    if evidence_photos is not None:
        if not isinstance(evidence_photos, list):
            raise MessageServiceError('Invalid evidence photos array provided')
        for photo in evidence_photos:
            url = photo.get('url') if isinstance(photo, dict) else None
            if not url or not str(url).startswith('http'):
                raise MessageServiceError('Invalid evidence photos array provided')

def send_claim_request(conversation_id, sender_id, sender_name, sender_profile_picture, post_id,
                       post_title, claim_reason=None, id_photo_url=None, evidence_photos=None):
    """
    Post a claim_request message to a conversation and preserve it on the post.

    Returns:
        str: The new message id
    """
    _validate_photo_urls(id_photo_url, evidence_photos)

    db = database.get_db()
    conv_ref = db.collection('conversations').document(conversation_id)
    conv_snap = conv_ref.get()
    if not conv_snap.exists:
        raise MessageServiceError('Conversation not found', 404)
    conversation_data = conv_snap.to_dict() or {}
    if conversation_data.get('claimRequested') is True:
        raise MessageServiceError('A claim request is already open in this conversation', 409)

    reason = claim_reason or 'No reason provided'
    requested_at = datetime.now(timezone.utc)
    message_ref = conv_ref.collection('messages').document()
    message_ref.set({
        'text': f'Claim Request: {reason}',
        'senderId': sender_id,
        'senderName': sender_name,
        'senderProfilePicture': sender_profile_picture,
        'timestamp': firestore.SERVER_TIMESTAMP,
        'readBy': [sender_id],
        'messageType': 'claim_request',
        'claimData': {
            'postId': post_id,
            'postTitle': post_title,
            'claimReason': reason,
            'idPhotoUrl': id_photo_url or '',
            'evidencePhotos': evidence_photos or [],
            'requestedAt': requested_at,
            'status': 'pending',
        },
    })

    updates = {
        'hasClaimRequest': True,
        'claimRequested': True,
        'claimRequestId': message_ref.id,
        'lastMessage': {
            'text': f'New claim request from {sender_name}',
            'senderId': sender_id,
            'timestamp': requested_at,
        },
        'updatedAt': firestore.SERVER_TIMESTAMP,
    }
    for participant_id in _participant_ids(conversation_data):
        if participant_id != sender_id:
            updates[f'unreadCounts.{participant_id}'] = firestore.Increment(1)
    conv_ref.update(updates)

    _logger.info(f"✅ Claim request sent successfully: {message_ref.id}")

    add_claim_request(post_id, message_ref.id, sender_id, sender_name, sender_profile_picture,
                      reason, requested_at)
    return message_ref.id

def get_claim_message(conversation_id, message_id):
    """Return the data of a claim_request message, raising 404 when it does not exist"""
    message_snap = (database.get_db().collection('conversations').document(conversation_id)
                    .collection('messages').document(message_id).get())
    if not message_snap.exists:
        raise MessageServiceError('Message not found', 404)
    message_data = message_snap.to_dict() or {}
    if message_data.get('messageType') != 'claim_request':
        raise MessageServiceError('Message is not a claim request')
    return message_data

def update_claim_response(conversation_id, message_id, status, user_id, id_photo_url=None):
    """
    Record the post owner's response to a claim request.
    Accepting with an owner ID photo moves the claim to pending_confirmation.

    Returns:
        str: The status that was stored
    """
    if status not in CLAIM_RESPONSE_STATUSES:
        raise MessageServiceError(f'Invalid claim response status: {status}')
    if id_photo_url and not str(id_photo_url).startswith('http'):
        raise MessageServiceError('Invalid ID photo URL provided')

    conv_ref = database.get_db().collection('conversations').document(conversation_id)
    message_ref = conv_ref.collection('messages').document(message_id)
    message_data = get_claim_message(conversation_id, message_id)

    stored_status = status
    responded_at = datetime.now(timezone.utc)
    update_data = {
        'claimData.status': status,
        'claimData.respondedAt': responded_at,
        'claimData.responderId': user_id,
    }
    if status == 'accepted' and id_photo_url:
        stored_status = 'pending_confirmation'
        update_data['claimData.ownerIdPhoto'] = id_photo_url
        update_data['claimData.status'] = stored_status
    message_ref.update(update_data)

    conv_snap = conv_ref.get()
    conv_updates = {
        'claimRequestStatus': status,
        'updatedAt': firestore.SERVER_TIMESTAMP,
    }
    if status == 'rejected':
        # Lets the claimant send a new request
        conv_updates['claimRequested'] = False
    conv_ref.update(conv_updates)

    post_id = (message_data.get('claimData') or {}).get('postId')
    if not post_id and conv_snap.exists:
        post_id = (conv_snap.to_dict() or {}).get('postId')
    if post_id:
        update_claim_request_status(post_id, message_id, stored_status,
                                    responded_at=responded_at, responder_id=user_id)

    _logger.info(f"✅ Claim response updated: {stored_status}")
    return stored_status

def confirm_claim_id_photo(conversation_id, message_id, confirmed_by):
    """
    Confirm the ID photos of a claim awaiting confirmation. The claim becomes
    accepted, the preserved record becomes confirmed and the post is resolved.

    Returns:
        str: The status stored on the message
    """
    db = database.get_db()
    conv_ref = db.collection('conversations').document(conversation_id)
    message_ref = conv_ref.collection('messages').document(message_id)
    message_data = get_claim_message(conversation_id, message_id)
    claim_data = message_data.get('claimData') or {}
    if claim_data.get('status') != 'pending_confirmation':
        raise MessageServiceError('Claim is not awaiting ID photo confirmation', 409)

    confirmed_at = datetime.now(timezone.utc)
    message_ref.update({
        'claimData.idPhotoConfirmed': True,
        'claimData.idPhotoConfirmedAt': confirmed_at,
        'claimData.idPhotoConfirmedBy': confirmed_by,
        'claimData.status': 'accepted',
    })

    conv_snap = conv_ref.get()
    conv_ref.update({
        'claimRequestStatus': 'accepted',
        'updatedAt': firestore.SERVER_TIMESTAMP,
    })
    _logger.info(f"✅ Claim ID photo confirmed: {message_id}")

    post_id = claim_data.get('postId')
    if not post_id and conv_snap.exists:
        post_id = (conv_snap.to_dict() or {}).get('postId')
    if not post_id:
        return 'accepted'

    update_claim_request_status(post_id, message_id, 'confirmed',
                                responded_at=claim_data.get('respondedAt'))
    try:
        db.collection('posts').document(post_id).update({
            'status': 'resolved',
            'resolvedAt': firestore.SERVER_TIMESTAMP,
            'resolvedBy': confirmed_by,
            'updatedAt': firestore.SERVER_TIMESTAMP,
            'claimDetails': {
                'messageId': message_id,
                'claimerId': message_data.get('senderId'),
                'claimerName': message_data.get('senderName') or '',
                'claimReason': claim_data.get('claimReason') or '',
                'idPhotoUrl': claim_data.get('idPhotoUrl') or '',
                'ownerIdPhoto': claim_data.get('ownerIdPhoto') or '',
                'evidencePhotos': claim_data.get('evidencePhotos') or [],
                'status': 'confirmed',
                'confirmedAt': confirmed_at,
                'confirmedBy': confirmed_by,
            },
        })
        _logger.info(f"✅ Post {post_id} resolved by confirmed claim {message_id}")
    except Exception as e:
        # The confirmation itself already succeeded
        _logger.warning(f"⚠️ Failed to resolve post {post_id} after claim confirmation: {e}")
    return 'accepted'

def get_conversation_participants(conversation_id):
    conv_snap = database.get_db().collection('conversations').document(conversation_id).get()
    if not conv_snap.exists:
        raise MessageServiceError('Conversation not found', 404)
    return _participant_ids(conv_snap.to_dict() or {})

def delete_conversation(conversation_id):
    """Delete a conversation and its messages after preserving its claim requests"""
    if not database.get_db().collection('conversations').document(conversation_id).get().exists:
        raise MessageServiceError('Conversation not found', 404)
    result = cleanup_conversation(conversation_id)
    if result.failed:
        raise MessageServiceError(result.errors[0] if result.errors else 'Failed to delete conversation', 500)
    return result

def delete_conversations_by_post_id(post_id):
    """Delete every conversation of a post after preserving their claim requests"""
    conversations = database.get_db().collection('conversations').where('postId', '==', post_id).stream()
    conversation_ids = [conv_doc.id for conv_doc in conversations]
    if not conversation_ids:
        return CleanupResult()
    _logger.info(f"🗑️ Deleting {len(conversation_ids)} conversations of post {post_id}")
    return batch_cleanup_conversations(conversation_ids)
