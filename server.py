#!/usr/bin/env python3
"""
Property Management Governance Server
Flask server exposing permissions, approvals, audit and notification APIs
"""

from flask import Flask, jsonify
from flask_cors import CORS
import logging
import os
from pathlib import Path
from datetime import datetime
import secrets

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app, supports_credentials=True)

# Secret key for sessions (generate a secure one for production)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', secrets.token_hex(32))

# Database configuration
database_url = os.environ.get('DATABASE_URL', f'sqlite:///{Path(__file__).parent}/propgov.db')

# Fix Heroku/Vercel's postgres:// scheme (should be postgresql://)
if database_url and database_url.startswith('postgres://'):
    database_url = database_url.replace('postgres://', 'postgresql://', 1)

app.config['SQLALCHEMY_DATABASE_URI'] = database_url
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# PostgreSQL-specific connection pool settings
if database_url and database_url.startswith('postgresql://'):
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_size': 5,
        'max_overflow': 10,
        'pool_recycle': 300,  # Recycle connections after 5 minutes
        'pool_pre_ping': True,
        'pool_timeout': 30,
    }
else:
    # SQLite settings (for local dev)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True
    }

# Scheduling defaults
app.config['RENT_REMINDER_LEAD_DAYS'] = int(os.environ.get('RENT_REMINDER_LEAD_DAYS', 3))
app.config['LEASE_EXPIRY_NOTICE_DAYS'] = int(os.environ.get('LEASE_EXPIRY_NOTICE_DAYS', 30))
app.config['NOTIFICATION_SWEEP_MAX_SECONDS'] = int(os.environ.get('NOTIFICATION_SWEEP_MAX_SECONDS', 45))

# Import and initialize database
from models import db
db.init_app(app)

# pysqlite defers BEGIN and treats a leading SAVEPOINT as the outer
# transaction; hand transaction control to SQLAlchemy so audit savepoints nest.
if database_url.startswith('sqlite'):
    from sqlalchemy import event

    with app.app_context():
        sqlite_engine = db.engine

    @event.listens_for(sqlite_engine, 'connect')
    def _sqlite_disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, 'begin')
    def _sqlite_emit_begin(conn):
        conn.exec_driver_sql('BEGIN')

# Initialize rate limiter
from rate_limiter import init_limiter
limiter = init_limiter(app)

# Typed core errors → JSON responses
from routes.authorization import register_error_handlers
register_error_handlers(app)

# Register role and permission routes
from routes.roles_routes import register_roles_routes
register_roles_routes(app)

# Register approval workflow routes
from routes.approvals_routes import register_approvals_routes
register_approvals_routes(app)

# Register audit trail routes
from routes.audit_routes import register_audit_routes
register_audit_routes(app)

# Register notification routes
from routes.notifications_routes import register_notifications_routes
register_notifications_routes(app)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint to verify database connection"""
    try:
        db.session.execute(db.text('SELECT 1'))
        db.session.commit()
        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'timestamp': datetime.utcnow().isoformat()
        })
    except Exception as e:
        db.session.rollback()
        logger.error("Health check failed: %s", e)
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 503


if __name__ == '__main__':
    logger.info("Property Management Governance Server starting on http://localhost:5000")
    app.run(host='0.0.0.0', port=5000, debug=True)
