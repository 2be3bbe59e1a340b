from functools import wraps
from flask import request, jsonify, g
from firebase_admin import auth as firebase_auth
from . import database

STAFF_ROLES = ('admin', 'campus_security')

def _bearer_token():
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    return header[len('Bearer '):].strip() or None

def authenticate_request():
    """Verify the request's Firebase ID token and load the user's profile.
    Returns the user dict or {"error": ...}.
    """
    token = _bearer_token()
    if not token:
        return {"error": "Missing bearer token"}

    try:
        decoded = firebase_auth.verify_id_token(token)
    except Exception:
        return {"error": "Invalid or expired token"}

    uid = decoded.get('uid')
    user_snap = database.get_db().collection('users').document(uid).get()
    user_data = user_snap.to_dict() if user_snap.exists else {}
    if user_data.get('status') in ('deactivated', 'banned'):
        return {"error": "Account is not active"}

    return {
        'uid': uid,
        'email': decoded.get('email') or user_data.get('email'),
        'role': user_data.get('role', 'user'),
        'name': f"{user_data.get('firstName', '')} {user_data.get('lastName', '')}".strip(),
        'profile_picture': user_data.get('profilePicture') or user_data.get('profileImageUrl'),
    }

def current_user():
    return getattr(g, 'current_user', None)

def is_staff(user):
    return bool(user) and user.get('role') in STAFF_ROLES

def login_required(f):
    """Decorator to require a verified Firebase user for an API route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = authenticate_request()
        if "error" in user:
            return jsonify({'success': False, 'error': user["error"], 'code': 'UNAUTHORIZED'}), 401
        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function

def admin_required(f):
    """Decorator to require an admin or campus security user for an API route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = authenticate_request()
        if "error" in user:
            return jsonify({'success': False, 'error': user["error"], 'code': 'UNAUTHORIZED'}), 401
        if not is_staff(user):
            return jsonify({'success': False, 'error': 'Admin access required', 'code': 'FORBIDDEN'}), 403
        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function
