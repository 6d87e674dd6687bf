"""
ShareLink model: token-addressed links to a single file.
"""
import secrets

from flask import current_app

from minidrive.extensions import db
from minidrive.utils.timezone import utcnow


def generate_share_token():
    """Unguessable, URL-safe token (256 bits of entropy)."""
    return secrets.token_urlsafe(32)


class ShareLink(db.Model):
    """A share link created by a user for a file. One per (file, creator)."""

    __tablename__ = 'share_links'
    __table_args__ = (
        db.UniqueConstraint('file_id', 'created_by_id', name='uq_share_file_creator'),
    )

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(
        db.Integer,
        db.ForeignKey('files.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    created_by_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    share_token = db.Column(
        db.String(64),
        unique=True,
        nullable=False,
        index=True,
        default=generate_share_token
    )
    is_public = db.Column(db.Boolean, default=False, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    file = db.relationship('File', back_populates='share_links')
    created_by = db.relationship('User')

    def __repr__(self):
        # Never include the token
        return f'<ShareLink {self.id} file={self.file_id}>'

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at <= utcnow()

    @property
    def is_valid(self):
        """A link is valid until its expiry; links without expiry never lapse."""
        return not self.is_expired

    @property
    def url(self):
        base_url = current_app.config['APP_URL'].rstrip('/')
        return f'{base_url}/api/v1/files/shared/{self.share_token}'
