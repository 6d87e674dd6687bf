"""
Mini Drive Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import time
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, request, g, jsonify, has_app_context
from werkzeug.exceptions import HTTPException

from minidrive.config import config
from minidrive.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
        environment=os.environ.get('FLASK_ENV', 'production'),
        send_default_pii=False,
    )
    app.logger.info('Sentry error tracking initialized.')


def create_app(config_name=None, config_overrides=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)
        config_overrides: Optional dict applied after the config class
            (tests point STORAGE_ROOT at a temporary directory this way)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Enable response compression (gzip)
    from flask_compress import Compress
    Compress(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from minidrive.api import api_bp

    app.register_blueprint(api_bp, url_prefix='/api/v1')

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'}), 200


def _is_api_request():
    """Check if the current request targets the API (returns JSON)."""
    return request.path.startswith('/api/')


def register_error_handlers(app):
    """Register error handlers for domain errors and common HTTP errors."""
    from minidrive.services.exceptions import DriveError

    @app.errorhandler(DriveError)
    def drive_error(error):
        db.session.rollback()
        if error.status >= 500:
            app.logger.error('%s: %s', error.code, error.message)
        return jsonify({'error': error.to_dict()}), error.status

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'error': {'code': 'forbidden', 'message': 'Access denied.'}}), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': {'code': 'method_not_allowed', 'message': 'Method not allowed.'}}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        max_bytes = app.config['MAX_UPLOAD_BYTES']
        return jsonify({'error': {
            'code': 'file_too_large',
            'message': f'Upload exceeds the maximum size of {max_bytes // (1024 * 1024)} MB.',
        }}), 413

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': {
            'code': (error.name or 'error').lower().replace(' ', '_'),
            'message': error.description,
        }}), error.code


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('Database initialized.')

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin e-mail address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
                  help='Admin password (min. 8 characters)')
    @click.option('--full-name', default=None, help='Display name')
    def create_admin(email, password, full_name):
        """Create an admin account, or promote an existing user to admin."""
        from minidrive.models.user import User, AppRole

        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if user is not None:
            user.role = AppRole.ADMIN
            db.session.commit()
            click.echo(f'User {email} promoted to admin.')
            return

        if len(password) < 8:
            raise click.BadParameter('Password must be at least 8 characters.', param_hint='--password')

        user = User(email=email, full_name=full_name, role=AppRole.ADMIN)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f'Admin {email} created.')

    @app.cli.command('reconcile-storage')
    @click.option('--delete', 'delete_orphans', is_flag=True,
                  help='Remove storage objects that have no metadata row.')
    def reconcile_storage(delete_orphans):
        """Report storage objects and metadata rows that do not match."""
        from minidrive.services.file_service import FileService

        orphans = FileService.find_orphaned_objects()
        missing = FileService.missing_objects()

        click.echo(f'{len(orphans)} orphaned object(s) in storage.')
        for path in orphans:
            click.echo(f'  orphan: {path}')
        click.echo(f'{len(missing)} file row(s) without a storage object.')
        for file in missing:
            click.echo(f'  missing: file {file.id} ({file.storage_path})')

        if delete_orphans and orphans:
            removed = FileService.remove_orphaned_objects(orphans)
            click.echo(f'Removed {len(removed)} orphaned object(s).')


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        if has_app_context():
            log_entry['request_id'] = g.get('request_id', '-')
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout (for cloud log aggregation).
    Development: plain text.
    """
    if app.testing:
        return

    # Request ID middleware
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.request_started = time.monotonic()

    @app.after_request
    def log_request(response):
        elapsed_ms = int((time.monotonic() - g.get('request_started', time.monotonic())) * 1000)
        # Share tokens and signed URLs are bearer credentials: log the route, not the path
        path = request.url_rule.rule if request.url_rule is not None else request.path
        app.logger.info(
            '%s %s %s %dms',
            request.method,
            path,
            response.status_code,
            elapsed_ms,
        )
        response.headers['X-Request-ID'] = g.get('request_id', '-')
        return response

    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Mini Drive startup (JSON logging)')
    else:
        # Development: plain text
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Mini Drive startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Clickjacking protection
        response.headers['X-Frame-Options'] = 'DENY'

        # Referrer policy; share links must not leak through Referer
        response.headers['Referrer-Policy'] = 'no-referrer'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # Prevent cross-domain policy loading
        response.headers['X-Permitted-Cross-Domain-Policies'] = 'none'

        # JSON API and file downloads only
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        # Authenticated responses must not be cached by intermediaries
        if _is_api_request() and 'Cache-Control' not in response.headers:
            response.headers['Cache-Control'] = 'no-store'

        return response
