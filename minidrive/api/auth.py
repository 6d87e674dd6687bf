"""
API Authentication endpoints: registration, JWT login, refresh, and user info.
"""
from flask import request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from minidrive.api import api_bp
from minidrive.api.decorators import (
    create_access_token,
    create_refresh_token,
    decode_token,
    jwt_required,
)
from minidrive.api.helpers import api_error, api_success, load_json
from minidrive.api.schemas import UserSchema, RegisterSchema
from minidrive.extensions import db, limiter
from minidrive.models.user import User, AppRole
from minidrive.utils.audit import log_action, log_login, log_logout


def _token_response(user, status=200):
    expires_in = current_app.config['ACCESS_TOKEN_MINUTES'] * 60
    return jsonify({
        'data': {
            'access_token': create_access_token(user.id),
            'refresh_token': create_refresh_token(user.id),
            'token_type': 'Bearer',
            'expires_in': expires_in,
            'user': UserSchema().dump(user),
        }
    }), status


@api_bp.route('/auth/register', methods=['POST'])
@limiter.limit('5 per minute')
def api_register():
    """Create an account and return JWT tokens.

    Request body:
        {"email": "...", "password": "...", "full_name": "..."}

    E-mails listed in ADMIN_EMAILS are given the admin role.
    """
    data = load_json(RegisterSchema())
    email = data['email'].lower()

    if User.query.filter_by(email=email).first() is not None:
        return api_error('email_taken', 'An account with this email already exists.', 409)

    role = AppRole.ADMIN if email in current_app.config['ADMIN_EMAILS'] else AppRole.USER
    user = User(email=email, full_name=data.get('full_name') or None, role=role)
    user.set_password(data['password'])
    user.record_login()
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return api_error('email_taken', 'An account with this email already exists.', 409)

    current_app.logger.info(f'User {user.id} registered (role={user.role.value})')
    log_action('REGISTER', entity_type='User', entity_id=user.id, user=user)
    return _token_response(user, 201)


@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit('10 per minute')
def api_login():
    """Authenticate user and return JWT tokens.

    Request body:
        {"email": "...", "password": "..."}

    Returns:
        {"data": {"access_token": "...", "refresh_token": "...", "user": {...}}}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error('invalid_json', 'Request body must be valid JSON.', 400)

    email = str(data.get('email') or '').strip().lower()
    password = str(data.get('password') or '')

    if not email or not password:
        return api_error(
            'validation_error',
            'Email and password are required.',
            422,
            details=[
                {'field': f, 'message': f'{f} is required.', 'code': 'required'}
                for f in ['email', 'password'] if not data.get(f)
            ],
        )

    user = User.query.filter_by(email=email).first()

    if user is None or not user.check_password(password):
        log_login(user, success=False)
        return api_error('invalid_credentials', 'Invalid email or password.', 401)

    if not user.is_active:
        return api_error('account_inactive', 'Account is deactivated. Contact an administrator.', 403)

    user.record_login()
    db.session.commit()
    log_login(user, success=True)

    return _token_response(user)


@api_bp.route('/auth/refresh', methods=['POST'])
@limiter.limit('20 per minute')
def api_refresh():
    """Refresh an expired access token using a refresh token.

    Request body:
        {"refresh_token": "..."}

    Returns:
        {"data": {"access_token": "...", "expires_in": 3600}}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data.get('refresh_token'):
        return api_error('validation_error', 'refresh_token is required.', 422)

    payload = decode_token(data['refresh_token'])
    if payload is None:
        return api_error('invalid_token', 'Refresh token is invalid or expired.', 401)

    if payload.get('type') != 'refresh':
        return api_error('wrong_token_type', 'Refresh token required.', 401)

    try:
        user = db.session.get(User, int(payload['sub']))
    except (KeyError, ValueError, TypeError):
        user = None
    if user is None or not user.is_active:
        return api_error('user_not_found', 'User not found or deactivated.', 401)

    return jsonify({
        'data': {
            'access_token': create_access_token(user.id),
            'token_type': 'Bearer',
            'expires_in': current_app.config['ACCESS_TOKEN_MINUTES'] * 60,
        }
    }), 200


@api_bp.route('/auth/me', methods=['GET'])
@jwt_required
def api_me():
    """Get current authenticated user profile, including role."""
    return api_success(UserSchema().dump(request.api_user))


@api_bp.route('/auth/logout', methods=['POST'])
@jwt_required
def api_logout():
    """Tokens are stateless; the client discards them. The logout is audited."""
    log_logout(request.api_user)
    return api_success({'message': 'Logged out.'})
