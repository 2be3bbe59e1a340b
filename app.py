from flask import Flask, jsonify
from flask_cors import CORS
from datetime import datetime, timezone
import os
from dotenv import load_dotenv

load_dotenv()

# Import backend modules
from uniclaim.routes.user_routes import user_bp
from uniclaim.routes.admin_routes import admin_bp
from uniclaim.services.scheduler_service import start_scheduler, stop_scheduler

# Create app directly
app = Flask(__name__)

# Enable CORS for all routes
CORS(app)

# Register blueprints
app.register_blueprint(user_bp)
app.register_blueprint(admin_bp)

@app.errorhandler(404)
def handle_404(error):
    return jsonify({'success': False, 'error': 'Not found'}), 404

@app.errorhandler(405)
def handle_405(error):
    return jsonify({'success': False, 'error': 'Method not allowed'}), 405

# Health check endpoint for network connectivity testing
@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint for network connectivity testing"""
    return jsonify({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "uniclaim-backend"
    })

if __name__ == '__main__':
    # Start the background scheduler for ghost conversation maintenance
    if os.environ.get('UNICLAIM_ENABLE_SCHEDULER', 'true').lower() in ('1', 'true', 'yes'):
        try:
            start_scheduler()
            print("🚀 UniClaim Scheduler started - periodic ghost conversation cleanup enabled")
        except Exception as e:
            print(f"⚠️ Warning: Failed to start scheduler: {e}")
            print("📝 Manual cleanup will still work through the admin API")

    try:
        # Allow overriding host/port via environment for testing
        host = os.environ.get('HOST', '0.0.0.0')
        port = int(os.environ.get('PORT', '5000'))
        app.run(debug=os.environ.get('FLASK_DEBUG', 'false').lower() in ('1', 'true', 'yes'), host=host, port=port)
    finally:
        # Ensure scheduler is stopped when app shuts down
        stop_scheduler()
