"""
Share link issuance, lookup and revocation.

Share tokens are bearer credentials: log lines refer to link ids only.
"""
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from minidrive.extensions import db
from minidrive.models.file import File
from minidrive.models.permission import PermissionType
from minidrive.models.share_link import ShareLink
from minidrive.models.user import User
from minidrive.services.access_service import AccessService
from minidrive.services.exceptions import AccessDenied, Conflict, NotFound, ValidationFailed
from minidrive.utils.timezone import to_naive_utc, utcnow


class ShareService:
    """Service for file share links."""

    @staticmethod
    def can_share(file: File, user: User) -> bool:
        """Owner, admin-level grant holders and system admins may share."""
        return AccessService.resolve(file, user).allows(PermissionType.ADMIN)

    @staticmethod
    def ensure_share_link(file: File, creator: User, is_public: bool = False,
                          expires_at: Optional[datetime] = None) -> ShareLink:
        """
        Return the creator's link for ``file``, minting it on first use.

        Calling again returns the same token; ``is_public`` and ``expires_at``
        are updated to the new values.

        Raises:
            AccessDenied: If the creator may not share this file
            ValidationFailed: If ``expires_at`` is in the past
        """
        if not ShareService.can_share(file, creator):
            raise AccessDenied('Only the owner or a file admin can share this file.')

        expires_at = to_naive_utc(expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise ValidationFailed(
                'Expiry must be in the future.',
                details=[{'field': 'expires_at', 'message': 'Must be in the future.', 'code': 'invalid'}],
            )

        link = ShareLink.query.filter_by(file_id=file.id, created_by_id=creator.id).first()
        created = link is None
        if created:
            link = ShareLink(file_id=file.id, created_by_id=creator.id)
            db.session.add(link)
        link.is_public = bool(is_public)
        link.expires_at = expires_at

        try:
            db.session.commit()
        except IntegrityError:
            # Another request minted the link for the same (file, creator) first
            db.session.rollback()
            link = ShareLink.query.filter_by(file_id=file.id, created_by_id=creator.id).first()
            if link is None:
                raise Conflict('Share link could not be created, please retry.')
            link.is_public = bool(is_public)
            link.expires_at = expires_at
            db.session.commit()
            created = False

        current_app.logger.info(
            f'Share link {link.id} {"created" if created else "updated"} for file {file.id} '
            f'by user {creator.id} (public={link.is_public}, expires_at={link.expires_at})'
        )
        return link

    @staticmethod
    def find_by_token(share_token: str) -> ShareLink:
        """
        Look up a link by token.

        Unknown and expired tokens both raise NotFound so a caller cannot
        tell them apart.
        """
        link = ShareLink.query.filter_by(share_token=share_token).first() if share_token else None
        if link is None or not link.is_valid:
            raise NotFound('Share link not found or expired.', code='share_link_not_found')
        return link

    @staticmethod
    def revoke_share_link(file: File, actor: User) -> None:
        """Delete the actor's link for ``file``."""
        link = ShareLink.query.filter_by(file_id=file.id, created_by_id=actor.id).first()
        if link is None:
            raise NotFound('You have no share link for this file.', code='share_link_not_found')
        link_id = link.id
        db.session.delete(link)
        db.session.commit()
        current_app.logger.info(f'Share link {link_id} revoked for file {file.id} by user {actor.id}')
