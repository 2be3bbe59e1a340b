from flask import Blueprint, request, jsonify
from ..auth import admin_required
from .. import database
from ..services.scheduler_service import get_scheduler, start_scheduler, stop_scheduler
from ..services.claim_preservation_service import sync_post_claims, preserve_claims_before_deletion
from ..services.conversation_types import GhostConversationError
from ..services.conversation_validation_service import (
    detect_ghost_conversations,
    detect_orphaned_messages,
    validate_conversation_integrity,
)
from ..services.conversation_cleanup_service import (
    cleanup_ghost_conversations,
    cleanup_orphaned_messages,
    batch_cleanup_conversations,
)
from ..services.background_cleanup_service import (
    run_periodic_cleanup,
    quick_health_check,
    comprehensive_health_check,
)
from ..services.message_service import delete_conversation, delete_conversations_by_post_id, MessageServiceError

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

def _error_response(e):
    if isinstance(e, GhostConversationError):
        return jsonify({'success': False, 'error': e.message, 'code': e.code}), 500
    return jsonify({'success': False, 'error': str(e)}), 500

# =============================
# Claim Preservation APIs
# =============================

@admin_bp.route('/api/posts/<post_id>/claims/sync', methods=['POST'])
@admin_required
def api_sync_post_claims(post_id):
    added = sync_post_claims(post_id)
    return jsonify({'success': True, 'postId': post_id, 'added': added}), 200

@admin_bp.route('/api/conversations/<conversation_id>/preserve-claims', methods=['POST'])
@admin_required
def api_preserve_conversation_claims(conversation_id):
    data = request.get_json(silent=True) or {}
    post_id = data.get('postId')
    if not post_id:
        conv_snap = database.get_db().collection('conversations').document(conversation_id).get()
        if not conv_snap.exists:
            return jsonify({'success': False, 'error': 'Conversation not found'}), 404
        post_id = (conv_snap.to_dict() or {}).get('postId')
    if not post_id:
        return jsonify({'success': False, 'error': 'Conversation has no postId'}), 400
    added = preserve_claims_before_deletion(conversation_id, post_id)
    return jsonify({'success': True, 'postId': post_id, 'added': added}), 200

@admin_bp.route('/api/conversations/<conversation_id>', methods=['DELETE'])
@admin_required
def api_delete_conversation(conversation_id):
    try:
        result = delete_conversation(conversation_id)
        return jsonify({'success': True, 'result': result.to_dict()}), 200
    except MessageServiceError as e:
        return jsonify({'success': False, 'error': e.message}), e.status_code
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/posts/<post_id>/conversations', methods=['DELETE'])
@admin_required
def api_delete_post_conversations(post_id):
    try:
        result = delete_conversations_by_post_id(post_id)
        return jsonify({'success': True, 'result': result.to_dict()}), 200
    except Exception as e:
        return _error_response(e)

# =============================
# Ghost Conversation APIs
# =============================

@admin_bp.route('/api/conversations/ghosts', methods=['GET'])
@admin_required
def api_detect_ghosts():
    try:
        ghosts = detect_ghost_conversations()
        return jsonify({'success': True, 'count': len(ghosts), 'ghosts': [g.to_dict() for g in ghosts]}), 200
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/conversations/orphaned-messages', methods=['GET'])
@admin_required
def api_detect_orphaned_messages():
    try:
        orphans = detect_orphaned_messages()
        return jsonify({'success': True, 'count': len(orphans), 'messages': [m.to_dict() for m in orphans]}), 200
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/conversations/integrity', methods=['GET'])
@admin_required
def api_conversation_integrity():
    try:
        return jsonify({'success': True, 'integrity': validate_conversation_integrity().to_dict()}), 200
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/conversations/cleanup/ghosts', methods=['POST'])
@admin_required
def api_cleanup_ghosts():
    try:
        ghosts = detect_ghost_conversations()
        result = cleanup_ghost_conversations(ghosts)
        return jsonify({'success': True, 'detected': len(ghosts), 'result': result.to_dict()}), 200
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/conversations/cleanup/orphaned-messages', methods=['POST'])
@admin_required
def api_cleanup_orphaned_messages():
    try:
        orphans = detect_orphaned_messages()
        result = cleanup_orphaned_messages(orphans)
        return jsonify({'success': True, 'detected': len(orphans), 'result': result.to_dict()}), 200
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/conversations/cleanup/batch', methods=['POST'])
@admin_required
def api_batch_cleanup():
    data = request.get_json(silent=True) or {}
    conversation_ids = data.get('conversationIds')
    if not isinstance(conversation_ids, list) or not all(isinstance(c, str) for c in conversation_ids):
        return jsonify({'success': False, 'error': 'conversationIds must be a list of strings'}), 400
    try:
        result = batch_cleanup_conversations(conversation_ids)
        return jsonify({'success': True, 'result': result.to_dict()}), 200
    except Exception as e:
        return _error_response(e)

@admin_bp.route('/api/conversations/cleanup/periodic', methods=['POST'])
@admin_required
def api_run_periodic_cleanup():
    result = run_periodic_cleanup()
    return jsonify({'success': not result.errors, 'result': result.to_dict()}), 200

@admin_bp.route('/api/conversations/health', methods=['GET'])
@admin_required
def api_conversation_health():
    mode = request.args.get('mode', 'quick')
    if mode == 'comprehensive':
        result = comprehensive_health_check()
    elif mode == 'quick':
        result = quick_health_check()
    else:
        return jsonify({'success': False, 'error': f'Unknown health check mode: {mode}'}), 400
    return jsonify({'success': True, 'mode': mode, 'health': result.to_dict()}), 200

# =============================
# Scheduler Control APIs
# =============================

@admin_bp.route('/api/scheduler/start', methods=['POST'])
@admin_required
def api_scheduler_start():
    try:
        start_scheduler()
        return jsonify({'success': True}), 200
    except Exception as e:
        return jsonify({'success': False, 'error': str(e)}), 500

@admin_bp.route('/api/scheduler/stop', methods=['POST'])
@admin_required
def api_scheduler_stop():
    try:
        stop_scheduler()
        return jsonify({'success': True}), 200
    except Exception as e:
        return jsonify({'success': False, 'error': str(e)}), 500

@admin_bp.route('/api/scheduler/jobs', methods=['GET'])
@admin_required
def api_scheduler_jobs():
    try:
        sch = get_scheduler()
        jobs = []
        for j in sch.get_jobs():
            next_run = getattr(j, 'next_run_time', None)
            jobs.append({
                'id': j.id,
                'name': j.name,
                'next_run': next_run.isoformat() if next_run else None,
                'trigger': str(j.trigger),
            })
        return jsonify({'success': True, 'jobs': jobs}), 200
    except Exception as e:
        return jsonify({'success': False, 'error': str(e)}), 500

@admin_bp.route('/api/scheduler/status', methods=['GET'])
@admin_required
def api_scheduler_status():
    sch = get_scheduler()
    last_cleanup = sch.last_cleanup_result.to_dict() if sch.last_cleanup_result else None
    return jsonify({
        'success': True,
        'running': sch.is_running,
        'last_cleanup': last_cleanup,
        'last_health_check': sch.last_health_check,
    }), 200

@admin_bp.route('/api/scheduler/run/cleanup', methods=['POST'])
@admin_required
def api_scheduler_run_cleanup():
    result = get_scheduler().run_cleanup_job()
    return jsonify({'success': True, 'message': 'Ghost cleanup executed', 'result': result.to_dict() if result else None}), 200

@admin_bp.route('/api/scheduler/run/health-check', methods=['POST'])
@admin_required
def api_scheduler_run_health_check():
    result = get_scheduler().run_health_check_job()
    return jsonify({'success': True, 'message': 'Health check executed', 'result': result.to_dict() if result else None}), 200
