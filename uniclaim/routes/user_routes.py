from flask import Blueprint, jsonify, request
from ..auth import login_required, current_user, is_staff
from ..services.message_service import (
    send_claim_request,
    update_claim_response,
    confirm_claim_id_photo,
    get_claim_message,
    delete_conversation,
    get_conversation_participants,
    MessageServiceError,
)
from ..services.location_service import detect_location_from_coordinates, get_all_building_polygons

user_bp = Blueprint('user', __name__, url_prefix='/user')

def _require_participant(conversation_id, user):
    """Raise a 403 unless the user takes part in the conversation or is staff"""
    participants = get_conversation_participants(conversation_id)
    if user['uid'] not in participants and not is_staff(user):
        raise MessageServiceError('Not a participant of this conversation', 403)

def _require_claim_responder(conversation_id, message_id, user):
    """Only the other side of a claim may answer or confirm it"""
    _require_participant(conversation_id, user)
    if get_claim_message(conversation_id, message_id).get('senderId') == user['uid']:
        raise MessageServiceError('You cannot respond to your own claim request', 403)

@user_bp.route('/api/conversations/<conversation_id>/claims', methods=['POST'])
@login_required
def create_claim_request(conversation_id):
    """Send a claim request in a conversation"""
    data = request.get_json(silent=True) or {}
    post_id = data.get('postId')
    if not post_id:
        return jsonify({'success': False, 'error': 'Missing postId'}), 400

    user = current_user()
    try:
        _require_participant(conversation_id, user)
        message_id = send_claim_request(
            conversation_id,
            sender_id=user['uid'],
            sender_name=user.get('name') or data.get('senderName') or '',
            sender_profile_picture=user.get('profile_picture'),
            post_id=post_id,
            post_title=data.get('postTitle', ''),
            claim_reason=data.get('claimReason'),
            id_photo_url=data.get('idPhotoUrl'),
            evidence_photos=data.get('evidencePhotos'),
        )
        return jsonify({'success': True, 'messageId': message_id}), 201
    except MessageServiceError as e:
        return jsonify({'success': False, 'error': e.message}), e.status_code
    except Exception as e:
        print(f"Error sending claim request: {str(e)}")
        return jsonify({'success': False, 'error': 'Failed to send claim request'}), 500

@user_bp.route('/api/conversations/<conversation_id>/claims/<message_id>/respond', methods=['POST'])
@login_required
def respond_to_claim_request(conversation_id, message_id):
    """Accept or reject a claim request"""
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({'success': False, 'error': 'Missing status'}), 400

    user = current_user()
    try:
        _require_claim_responder(conversation_id, message_id, user)
        stored_status = update_claim_response(
            conversation_id,
            message_id,
            status,
            user['uid'],
            id_photo_url=data.get('idPhotoUrl'),
        )
        return jsonify({'success': True, 'status': stored_status}), 200
    except MessageServiceError as e:
        return jsonify({'success': False, 'error': e.message}), e.status_code
    except Exception as e:
        print(f"Error updating claim response: {str(e)}")
        return jsonify({'success': False, 'error': 'Failed to update claim response'}), 500

@user_bp.route('/api/conversations/<conversation_id>/claims/<message_id>/confirm', methods=['POST'])
@login_required
def confirm_claim(conversation_id, message_id):
    """Confirm the ID photos of an accepted claim and resolve the post"""
    user = current_user()
    try:
        _require_claim_responder(conversation_id, message_id, user)
        status = confirm_claim_id_photo(conversation_id, message_id, user['uid'])
        return jsonify({'success': True, 'status': status}), 200
    except MessageServiceError as e:
        return jsonify({'success': False, 'error': e.message}), e.status_code
    except Exception as e:
        print(f"Error confirming claim: {str(e)}")
        return jsonify({'success': False, 'error': 'Failed to confirm claim'}), 500

@user_bp.route('/api/conversations/<conversation_id>', methods=['DELETE'])
@login_required
def delete_user_conversation(conversation_id):
    """Delete a conversation the user takes part in; claim history stays on the post"""
    try:
        _require_participant(conversation_id, current_user())
        result = delete_conversation(conversation_id)
        return jsonify({'success': True, 'deleted': result.success}), 200
    except MessageServiceError as e:
        return jsonify({'success': False, 'error': e.message}), e.status_code
    except Exception as e:
        print(f"Error deleting conversation: {str(e)}")
        return jsonify({'success': False, 'error': 'Failed to delete conversation'}), 500

@user_bp.route('/api/location/detect', methods=['POST'])
@login_required
def detect_location():
    """Detect the campus building for a map pin"""
    data = request.get_json(silent=True) or {}
    try:
        lat = float(data.get('lat'))
        lng = float(data.get('lng'))
    except (TypeError, ValueError):
        return jsonify({'success': False, 'error': 'lat and lng must be numbers'}), 400

    try:
        result = detect_location_from_coordinates(lat, lng)
        return jsonify({'success': True, **result}), 200
    except Exception as e:
        return jsonify({'success': False, 'error': f'Location detection failed: {str(e)}'}), 500

@user_bp.route('/api/location/buildings', methods=['GET'])
@login_required
def list_buildings():
    buildings = [
        {'name': b['name'], 'coordinates': [list(p) for p in b['coordinates']]}
        for b in get_all_building_polygons()
    ]
    return jsonify({'success': True, 'buildings': buildings}), 200
