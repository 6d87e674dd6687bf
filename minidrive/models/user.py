"""
User model with application roles.
"""
from enum import Enum

from werkzeug.security import generate_password_hash, check_password_hash

from minidrive.extensions import db
from minidrive.utils.timezone import utcnow


class AppRole(str, Enum):
    """System-wide roles. One role per user."""
    ADMIN = "admin"   # Sees every file, stats, users and requests
    USER = "user"     # Regular account


APP_ROLE_LABELS = {
    AppRole.ADMIN: "Administrator",
    AppRole.USER: "User",
}


def enum_values(enum_cls):
    """Persist enum values (lowercase strings) instead of member names."""
    return [member.value for member in enum_cls]


class User(db.Model):
    """User model with authentication and role management."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(120))
    role = db.Column(
        db.Enum(AppRole, name='app_role', values_callable=enum_values),
        default=AppRole.USER,
        nullable=False,
        index=True
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    # Relationships
    files = db.relationship(
        'File',
        back_populates='owner',
        cascade='all, delete-orphan',
        lazy='dynamic'
    )

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def display_name(self):
        """Full name when set, e-mail otherwise."""
        return self.full_name or self.email

    @property
    def is_admin(self):
        """Check if user holds the system admin role."""
        return self.role == AppRole.ADMIN

    @property
    def role_label(self):
        return APP_ROLE_LABELS.get(self.role, str(self.role))

    def set_password(self, password):
        """Hash and set user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against hash."""
        return check_password_hash(self.password_hash, password)

    def record_login(self):
        self.last_login = utcnow()
