"""
Audit logging utility for tracking security-relevant actions.
"""
from flask import request, has_request_context, current_app
from sqlalchemy.exc import SQLAlchemyError

from minidrive.extensions import db
from minidrive.utils.timezone import utcnow


class AuditLog(db.Model):
    """Audit log for tracking user actions."""

    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    action = db.Column(db.String(50), nullable=False, index=True)
    entity_type = db.Column(db.String(50), index=True)  # File, AccessRequest, ShareLink, User
    entity_id = db.Column(db.Integer)
    details = db.Column(db.JSON)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    timestamp = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship('User', backref=db.backref('audit_logs', lazy='dynamic'))

    def __repr__(self):
        return f'<AuditLog {self.action} {self.entity_type} by user {self.user_id}>'


def log_action(action, entity_type=None, entity_id=None, details=None, user=None):
    """
    Log an action to the audit trail.

    The entry is committed on its own, so call this after the business
    transaction has been committed.

    Args:
        action: Action type (LOGIN_SUCCESS, FILE_UPLOAD, REQUEST_APPROVE, ...)
        entity_type: Type of entity affected (File, AccessRequest, ...)
        entity_id: ID of the entity affected
        details: Additional details as dict
        user: User performing the action
    """
    try:
        audit_entry = AuditLog(
            user_id=user.id if user else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=request.remote_addr if has_request_context() else None,
            user_agent=(
                request.user_agent.string[:500]
                if has_request_context() and request.user_agent
                else None
            )
        )
        db.session.add(audit_entry)
        db.session.commit()
        return audit_entry
    except SQLAlchemyError as e:
        # Audit failures never break the request
        db.session.rollback()
        current_app.logger.error(f'Audit log error for {action}: {e}')
        return None


def log_login(user, success=True):
    """Log a login attempt."""
    action = 'LOGIN_SUCCESS' if success else 'LOGIN_FAILED'
    return log_action(
        action=action,
        entity_type='User',
        entity_id=user.id if user else None,
        details={'success': success},
        user=user if success else None
    )


def log_logout(user):
    """Log a logout."""
    return log_action(
        action='LOGOUT',
        entity_type='User',
        entity_id=user.id,
        user=user
    )
