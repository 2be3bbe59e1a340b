import os
import firebase_admin
from firebase_admin import credentials, firestore

_db = None

def _resolve_credentials_path():
    """Find the service-account key file, writing it from env JSON as a last resort"""
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
    # Preferred config path under /config/credentials
    config_credentials_path = os.path.join(project_root, 'config', 'credentials', 'firebaseAdminKey.json')
    default_path = os.path.join(project_root, 'firebaseAdminKey.json')
    # Resolve path from environment first
    path = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS') or os.environ.get('FIREBASE_ADMIN_KEY_PATH')
    # Fallbacks: config folder, project root, current working directory
    if not path:
        if os.path.isfile(config_credentials_path):
            path = config_credentials_path
        elif os.path.isfile(default_path):
            path = default_path
        else:
            cwd_path = os.path.join(os.getcwd(), 'firebaseAdminKey.json')
            if os.path.isfile(cwd_path):
                path = cwd_path
    if not path or not os.path.isfile(path):
        env_json = os.environ.get('FIREBASE_ADMIN_KEY_JSON')
        if env_json:
            os.makedirs(os.path.dirname(config_credentials_path), exist_ok=True)
            with open(config_credentials_path, 'w', encoding='utf-8') as f:
                f.write(env_json)
            path = config_credentials_path
    return path

def initialize_firebase():
    """Initialize the Firebase Admin SDK and return a Firestore client"""
    try:
        firebase_admin.get_app()
    except ValueError:
        path = _resolve_credentials_path()
        options = {}
        project_id = os.environ.get('FIREBASE_PROJECT_ID')
        if project_id:
            options['projectId'] = project_id
        if path:
            firebase_admin.initialize_app(credentials.Certificate(path), options or None)
        else:
            # Application default credentials (Cloud Run, emulator, gcloud auth)
            firebase_admin.initialize_app(options=options or None)

    return firestore.client()

def get_db():
    """Get the shared Firestore client, initializing Firebase on first use"""
    global _db
    if _db is None:
        _db = initialize_firebase()
    return _db

def run_transaction(callback):
    """Run callback(transaction) inside a Firestore transaction and return its result.

    The callback may be retried by Firestore on contention, so it must only
    read through the transaction and write through transaction.update/set.
    """
    transaction = get_db().transaction()

    @firestore.transactional
    def _run(txn):
        return callback(txn)

    return _run(transaction)
