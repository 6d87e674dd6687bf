"""
Per-file permission grants.
"""
from enum import Enum

from minidrive.extensions import db
from minidrive.models.user import enum_values
from minidrive.utils.timezone import utcnow


class PermissionType(str, Enum):
    """Permission levels on a single file, ordered view < edit < admin."""
    VIEW = "view"     # Read metadata, download
    EDIT = "edit"     # + rename
    ADMIN = "admin"   # + share

    @property
    def rank(self):
        return PERMISSION_HIERARCHY.index(self)

    def satisfies(self, required):
        """True if this level is at least ``required``."""
        return self.rank >= PermissionType(required).rank


# Shared by permission_grants and access_requests
permission_type_enum = db.Enum(PermissionType, name='permission_type', values_callable=enum_values)

# Permission hierarchy (higher index = more access)
PERMISSION_HIERARCHY = [
    PermissionType.VIEW,
    PermissionType.EDIT,
    PermissionType.ADMIN,
]


class PermissionGrant(db.Model):
    """A user's permission on a file they do not own."""

    __tablename__ = 'permission_grants'
    __table_args__ = (
        db.UniqueConstraint('file_id', 'user_id', name='uq_grant_file_user'),
    )

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(
        db.Integer,
        db.ForeignKey('files.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    permission_type = db.Column(
        permission_type_enum,
        nullable=False
    )
    granted_by_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True
    )
    granted_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    # Relationships
    file = db.relationship('File', back_populates='grants')
    user = db.relationship(
        'User',
        foreign_keys=[user_id],
        backref=db.backref('permission_grants', lazy='dynamic', cascade='all, delete-orphan')
    )
    granted_by = db.relationship('User', foreign_keys=[granted_by_id])

    def __repr__(self):
        return f'<PermissionGrant file={self.file_id} user={self.user_id} {self.permission_type.value}>'
