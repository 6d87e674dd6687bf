"""
File metadata model.

The bytes live in object storage under ``storage_path``; this row is the
only thing the rest of the application queries.
"""
import os

from minidrive.extensions import db
from minidrive.utils.timezone import utcnow


def major_mime_type(mime_type):
    return (mime_type or 'application/octet-stream').split('/', 1)[0]


class File(db.Model):
    """Metadata for an uploaded file."""

    __tablename__ = 'files'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    name = db.Column(db.String(255), nullable=False, index=True)
    size_bytes = db.Column(db.BigInteger, nullable=False, default=0)
    mime_type = db.Column(db.String(255), nullable=False, default='application/octet-stream')
    storage_path = db.Column(db.String(500), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    # Relationships
    owner = db.relationship('User', back_populates='files')
    grants = db.relationship(
        'PermissionGrant',
        back_populates='file',
        cascade='all, delete-orphan',
        lazy='dynamic'
    )
    access_requests = db.relationship(
        'AccessRequest',
        back_populates='file',
        cascade='all, delete-orphan',
        lazy='dynamic'
    )
    share_links = db.relationship(
        'ShareLink',
        back_populates='file',
        cascade='all, delete-orphan',
        lazy='dynamic'
    )

    def __repr__(self):
        return f'<File {self.name}>'

    @property
    def extension(self):
        """Lowercase extension without the dot ('' if none)."""
        return os.path.splitext(self.name or '')[1].lstrip('.').lower()

    @property
    def major_type(self):
        """Top-level MIME type ('image', 'application', ...)."""
        return major_mime_type(self.mime_type)

    @property
    def file_size_formatted(self):
        """Return human-readable file size."""
        size = self.size_bytes or 0
        for unit in ['B', 'KB', 'MB', 'GB']:
            if size < 1024:
                return f'{size:.1f} {unit}' if unit != 'B' else f'{size} {unit}'
            size /= 1024
        return f'{size:.1f} TB'

    def is_owned_by(self, user):
        return user is not None and self.owner_id == user.id
