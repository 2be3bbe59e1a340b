"""
Claim preservation service.

Every post keeps a denormalized history of the claim requests made against it
in its `allClaimRequests` array, so the history survives when the
conversations (and their claim_request messages) are deleted.

Entry points:
- add_claim_request: append one record when a claim is sent
- update_claim_request_status: mirror a claim response into the record
- preserve_claims_before_deletion: backfill one conversation before it is deleted
- sync_post_claims: backfill from every conversation of a post

All entry points are best-effort. They log and swallow failures so they never
block the operation that triggered them.
"""
import logging
from datetime import datetime, timezone
from firebase_admin import firestore
from .. import database

_logger = logging.getLogger(__name__)

CLAIM_STATUSES = ('pending', 'accepted', 'rejected', 'pending_confirmation', 'confirmed')
ACCEPTED_STATUSES = ('accepted', 'confirmed')
RESOLVED_POST_STATUSES = ('resolved', 'completed')

def _to_datetime(value):
    """Normalize Firestore timestamps, datetimes, epoch numbers and ISO strings to aware UTC datetimes"""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif hasattr(value, 'ToDatetime'):
        # protobuf Timestamp, returned naive in UTC
        dt = value.ToDatetime()
    elif isinstance(value, (int, float)):
        # Epoch milliseconds when the value is large enough
        seconds = value / 1000 if value > 1e11 else value
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def _is_late_request(post_data, requested_at):
    """A request is late when it arrived after the post was resolved/completed"""
    if post_data.get('status') not in RESOLVED_POST_STATUSES:
        return False
    resolved_at = _to_datetime(post_data.get('resolvedAt'))
    requested = _to_datetime(requested_at)
    if not resolved_at or not requested:
        return False
    return requested > resolved_at

def _get_sender_details(sender_id):
    """Fetch the sender's user document; lookup failures are logged and ignored"""
    if not sender_id:
        return {}
    try:
        snap = database.get_db().collection('users').document(sender_id).get()
        if snap.exists:
            return snap.to_dict() or {}
    except Exception as e:
        _logger.warning(f"Could not fetch user details for claim preservation ({sender_id}): {e}")
    return {}

def _best_profile_picture(sender_details, fallback):
    return (sender_details.get('profilePicture')
            or sender_details.get('profileImageUrl')
            or sender_details.get('photoURL')
            or fallback
            or None)

def _best_sender_name(sender_name, sender_details):
    if sender_name:
        return sender_name
    full_name = f"{sender_details.get('firstName') or ''} {sender_details.get('lastName') or ''}".strip()
    return full_name or 'Unknown'

def _build_preserved_claim(message_id, message_data, sender_details, was_late_request):
    """Build a preserved claim record from a claim_request message"""
    claim_data = message_data.get('claimData') or {}
    status = claim_data.get('status') or 'pending'
    return {
        'messageId': message_id,
        'senderId': message_data.get('senderId') or '',
        'senderName': _best_sender_name(message_data.get('senderName'), sender_details),
        'senderProfilePicture': _best_profile_picture(sender_details, message_data.get('senderProfilePicture')),
        'status': status,
        'claimReason': claim_data.get('claimReason') or '',
        'requestedAt': claim_data.get('requestedAt') or message_data.get('timestamp'),
        'respondedAt': claim_data.get('respondedAt'),
        'responseMessage': claim_data.get('responseMessage'),
        'responderId': claim_data.get('responderId'),
        'isAccepted': status in ACCEPTED_STATUSES,
        'senderEmail': sender_details.get('email'),
        'senderContact': sender_details.get('contactNum'),
        'senderStudentId': sender_details.get('studentId'),
        'wasLateRequest': was_late_request,
    }

def _existing_message_ids(post_data):
    return {req.get('messageId') for req in post_data.get('allClaimRequests') or []}

def add_claim_request(post_id, message_id, sender_id, sender_name, sender_profile_picture,
                      claim_reason, requested_at) -> bool:
    """
    Append a new claim request to the post's allClaimRequests array.

    Returns:
        bool: True when the record was written
    """
    try:
        post_ref = database.get_db().collection('posts').document(post_id)
        post_snap = post_ref.get()
        if not post_snap.exists:
            _logger.warning(f"Post {post_id} not found, claim request {message_id} not preserved")
            return False

        post_data = post_snap.to_dict() or {}
        # Any claim made once the post is resolved/completed is late
        was_late_request = post_data.get('status') in RESOLVED_POST_STATUSES

        sender_details = _get_sender_details(sender_id)
        claim_request = {
            'messageId': message_id,
            'senderId': sender_id or '',
            'senderName': _best_sender_name(sender_name, sender_details),
            'senderProfilePicture': _best_profile_picture(sender_details, sender_profile_picture),
            'status': 'pending',
            'claimReason': claim_reason or '',
            'requestedAt': requested_at,
            'respondedAt': None,
            'responseMessage': None,
            'responderId': None,
            'isAccepted': False,
            'senderEmail': sender_details.get('email'),
            'senderContact': sender_details.get('contactNum'),
            'senderStudentId': sender_details.get('studentId'),
            'wasLateRequest': was_late_request,
        }

        post_ref.update({'allClaimRequests': firestore.ArrayUnion([claim_request])})
        _logger.info(f"Preserved claim request {message_id} on post {post_id}")
        return True
    except Exception as e:
        _logger.error(f"Failed to preserve claim request {message_id} on post {post_id}: {e}")
        return False

def update_claim_request_status(post_id, message_id, status, responded_at=None,
                                response_message=None, responder_id=None) -> bool:
    """
    Update one record of the post's allClaimRequests array inside a transaction.

    Args:
        post_id: Post holding the preserved record
        message_id: Claim request message id identifying the record
        status: New claim status
        responded_at: Response time; defaults to now when the status changes
        response_message: Optional response text
        responder_id: Optional id of the user who responded

    Returns:
        bool: True when the record was found and updated
    """
    if status not in CLAIM_STATUSES:
        _logger.warning(f"Ignoring unknown claim status '{status}' for {message_id}")
        return False

    def _apply(transaction):
        post_ref = database.get_db().collection('posts').document(post_id)
        post_snap = post_ref.get(transaction=transaction)
        if not post_snap.exists:
            return False

        claim_requests = list((post_snap.to_dict() or {}).get('allClaimRequests') or [])
        index = next((i for i, req in enumerate(claim_requests) if req.get('messageId') == message_id), -1)
        if index == -1:
            # Claims created before preservation existed are not in the array
            _logger.warning(f"Claim request {message_id} not found in post {post_id} for preservation update")
            return False

        previous = claim_requests[index]
        updated = dict(previous)
        updated['status'] = status
        if status in ACCEPTED_STATUSES:
            updated['isAccepted'] = True
        if responded_at:
            updated['respondedAt'] = responded_at
        elif status != previous.get('status'):
            # SERVER_TIMESTAMP is not allowed inside array elements
            updated['respondedAt'] = datetime.now(timezone.utc)
        if response_message:
            updated['responseMessage'] = response_message
        if responder_id:
            updated['responderId'] = responder_id

        claim_requests[index] = updated
        transaction.update(post_ref, {'allClaimRequests': claim_requests})
        return True

    try:
        return bool(database.run_transaction(_apply))
    except Exception as e:
        _logger.error(f"Failed to update preserved claim {message_id} on post {post_id}: {e}")
        return False

def preserve_claims_before_deletion(conversation_id, post_id) -> int:
    """
    Make sure every claim request of a conversation is preserved on its post.
    Called right before the conversation is deleted.

    Returns:
        int: Number of records appended
    """
    try:
        db = database.get_db()
        messages_query = (db.collection('conversations').document(conversation_id)
                          .collection('messages')
                          .order_by('timestamp', direction=firestore.Query.ASCENDING))
        claim_messages = []
        for message_doc in messages_query.stream():
            data = message_doc.to_dict() or {}
            if data.get('messageType') == 'claim_request' and data.get('claimData'):
                claim_messages.append((message_doc.id, data))

        if not claim_messages:
            return 0

        post_ref = db.collection('posts').document(post_id)
        post_snap = post_ref.get()
        if not post_snap.exists:
            return 0

        post_data = post_snap.to_dict() or {}
        existing_ids = _existing_message_ids(post_data)
        new_requests = []
        for message_id, data in claim_messages:
            if message_id in existing_ids:
                continue
            claim_data = data['claimData']
            requested_at = claim_data.get('requestedAt') or data.get('timestamp')
            new_requests.append(_build_preserved_claim(
                message_id,
                data,
                _get_sender_details(data.get('senderId')),
                _is_late_request(post_data, requested_at),
            ))
            existing_ids.add(message_id)

        if new_requests:
            post_ref.update({'allClaimRequests': firestore.ArrayUnion(new_requests)})
            _logger.info(f"Preserved {len(new_requests)} claim requests from conversation {conversation_id} on post {post_id}")
        return len(new_requests)
    except Exception as e:
        # Never block the deletion
        _logger.error(f"Failed to preserve claims of conversation {conversation_id}: {e}")
        return 0

def sync_post_claims(post_id) -> int:
    """
    Scan every conversation of a post and preserve any claim request missing
    from the post's allClaimRequests array. Covers claims made before
    preservation existed or whose preservation failed.

    Returns:
        int: Number of records appended
    """
    try:
        _logger.info(f"🔄 Syncing all claim requests for post {post_id}...")
        db = database.get_db()
        post_ref = db.collection('posts').document(post_id)
        post_snap = post_ref.get()
        if not post_snap.exists:
            _logger.warning(f"Post {post_id} not found during sync")
            return 0

        post_data = post_snap.to_dict() or {}
        existing_ids = _existing_message_ids(post_data)
        new_requests = []

        conversations = db.collection('conversations').where('postId', '==', post_id).stream()
        for conv_doc in conversations:
            messages = (db.collection('conversations').document(conv_doc.id)
                        .collection('messages')
                        .where('messageType', '==', 'claim_request')
                        .stream())
            for message_doc in messages:
                if message_doc.id in existing_ids:
                    continue
                data = message_doc.to_dict() or {}
                claim_data = data.get('claimData')
                if not claim_data:
                    continue
                requested_at = claim_data.get('requestedAt') or data.get('timestamp')
                new_requests.append(_build_preserved_claim(
                    message_doc.id,
                    data,
                    _get_sender_details(data.get('senderId')),
                    _is_late_request(post_data, requested_at),
                ))
                existing_ids.add(message_doc.id)

        if new_requests:
            post_ref.update({'allClaimRequests': firestore.ArrayUnion(new_requests)})
        _logger.info(f"✅ Claim sync for post {post_id} added {len(new_requests)} records")
        return len(new_requests)
    except Exception as e:
        _logger.error(f"❌ Claim sync failed for post {post_id}: {e}")
        return 0
