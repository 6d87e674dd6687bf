"""
File lifecycle: upload, rename, delete, download URLs, listings.

Metadata rows and storage objects are kept consistent as follows:

- upload writes the object first, then the row; if the row cannot be
  written the object is removed again;
- delete removes the row inside an open transaction, then the object, then
  commits. A storage failure rolls the row back; a commit failure after the
  object is gone raises PartialDeleteError.
"""
import mimetypes
import os
import uuid
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from minidrive.extensions import db, storage
from minidrive.models.file import File
from minidrive.models.permission import PermissionGrant, PermissionType
from minidrive.models.user import User
from minidrive.services.access_service import AccessService
from minidrive.services.exceptions import (
    AccessDenied, NotFound, PartialDeleteError, UpstreamError, ValidationFailed,
)
from minidrive.utils.storage import StorageError

MAX_NAME_LENGTH = 255
DEFAULT_MIME_TYPE = 'application/octet-stream'


def clean_display_name(name: Optional[str]) -> str:
    """Strip directories and whitespace from a user supplied file name."""
    name = (name or '').replace('\\', '/').split('/')[-1].strip()
    if not name:
        raise ValidationFailed(
            'File name is required.',
            details=[{'field': 'name', 'message': 'name is required.', 'code': 'required'}],
        )
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationFailed(
            f'File name must be at most {MAX_NAME_LENGTH} characters.',
            details=[{'field': 'name', 'message': 'Too long.', 'code': 'max_length'}],
        )
    return name


def build_storage_path(owner_id: int, filename: str) -> str:
    """Object path ``<owner_id>/<uuid>.<ext>``; the display name never reaches storage."""
    safe_name = secure_filename(filename)
    ext = os.path.splitext(safe_name)[1].lower()
    return f'{owner_id}/{uuid.uuid4().hex}{ext}'


def detect_mime_type(filename: str, declared: Optional[str] = None) -> str:
    if declared and declared != DEFAULT_MIME_TYPE:
        return declared
    guessed, _encoding = mimetypes.guess_type(filename)
    return guessed or declared or DEFAULT_MIME_TYPE


class FileService:
    """Service for file metadata and storage objects."""

    @staticmethod
    def get_file(file_id: int) -> File:
        file = db.session.get(File, file_id)
        if file is None:
            raise NotFound('File not found.')
        return file

    @staticmethod
    def upload_file(owner: User, filename: str, data: bytes,
                    content_type: Optional[str] = None) -> File:
        """
        Store ``data`` and record its metadata for ``owner``.

        Raises:
            ValidationFailed: Empty name or file larger than MAX_UPLOAD_BYTES
            UpstreamError: Storage failed (nothing was recorded)
        """
        name = clean_display_name(filename)
        max_bytes = current_app.config['MAX_UPLOAD_BYTES']
        if len(data) > max_bytes:
            raise ValidationFailed(
                f'File exceeds the maximum size of {max_bytes // (1024 * 1024)} MB.',
                code='file_too_large',
                details={'max_bytes': max_bytes, 'size_bytes': len(data)},
            )

        storage_path = build_storage_path(owner.id, name)
        try:
            storage.upload(storage_path, data)
        except StorageError as e:
            current_app.logger.error(f'Upload to storage failed for user {owner.id}: {e}')
            raise UpstreamError('Storage is unavailable, the file was not uploaded.')

        file = File(
            owner_id=owner.id,
            name=name,
            size_bytes=len(data),
            mime_type=detect_mime_type(name, content_type),
            storage_path=storage_path,
        )
        try:
            db.session.add(file)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f'Metadata insert failed for {storage_path}: {e}')
            FileService._discard_object(storage_path)
            raise UpstreamError('The file could not be recorded.')

        current_app.logger.info(
            f'File {file.id} uploaded by user {owner.id} ({file.size_bytes} bytes, {file.mime_type})'
        )
        return file

    @staticmethod
    def _discard_object(storage_path: str) -> None:
        """Remove an object whose metadata row was never written."""
        try:
            storage.remove([storage_path])
        except StorageError as e:
            # Left for `flask reconcile-storage`
            current_app.logger.error(f'Orphaned storage object {storage_path}: {e}')

    @staticmethod
    def rename_file(file: File, actor: User, new_name: str) -> File:
        """Rename the display name; requires edit permission."""
        AccessService.require(file, actor, PermissionType.EDIT)
        name = clean_display_name(new_name)
        file.name = name
        db.session.commit()
        current_app.logger.info(f'File {file.id} renamed by user {actor.id}')
        return file

    @staticmethod
    def delete_file(file: File, actor: User) -> None:
        """
        Delete a file's row and object. Owner or system admin only.

        Raises:
            AccessDenied: If the actor is neither owner nor admin
            UpstreamError: Storage removal failed; the row is kept
            PartialDeleteError: Object removed but the row delete failed
        """
        if not file.is_owned_by(actor) and not actor.is_admin:
            raise AccessDenied('Only the owner or an admin can delete this file.')

        file_id = file.id
        storage_path = file.storage_path

        db.session.delete(file)
        try:
            db.session.flush()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f'Delete of file {file_id} failed before storage removal: {e}')
            raise UpstreamError('The file could not be deleted.')

        try:
            missing = storage.remove([storage_path])
        except StorageError as e:
            db.session.rollback()
            current_app.logger.error(f'Storage removal failed for file {file_id}, row kept: {e}')
            raise UpstreamError('Storage is unavailable, the file was not deleted.')

        if missing:
            current_app.logger.warning(
                f'File {file_id}: storage object {storage_path} was already missing'
            )

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(
                f'File {file_id}: object {storage_path} removed but metadata delete failed: {e}'
            )
            raise PartialDeleteError(
                'The file content was removed but its record could not be deleted.',
                details={'file_id': file_id},
            )

        current_app.logger.info(f'File {file_id} deleted by user {actor.id}')

    @staticmethod
    def download_url(file: File, inline: bool = False) -> dict:
        """Short-lived signed URL for the file's content.

        With ``inline`` the content is served for display in the browser
        instead of as an attachment.
        """
        ttl = current_app.config['SIGNED_URL_TTL']
        try:
            url = storage.create_signed_url(file.storage_path, ttl, download_name=file.name, inline=inline)
        except StorageError as e:
            current_app.logger.error(f'Signed URL failed for file {file.id}: {e}')
            raise UpstreamError('Could not create a download link.')
        return {'url': url, 'expires_in': ttl}

    # ============================================================
    # LISTINGS
    # ============================================================

    @staticmethod
    def owned_query(user: User):
        return File.query.filter(File.owner_id == user.id).order_by(File.created_at.desc(), File.id.desc())

    @staticmethod
    def shared_with_query(user: User):
        """Files the user holds a grant on."""
        return (
            File.query
            .join(PermissionGrant, PermissionGrant.file_id == File.id)
            .filter(PermissionGrant.user_id == user.id)
            .filter(File.owner_id != user.id)
            .order_by(PermissionGrant.granted_at.desc(), File.id.desc())
        )

    @staticmethod
    def grants_for(file: File):
        return file.grants.order_by(PermissionGrant.granted_at.asc()).all()

    @staticmethod
    def revoke_grant(file: File, actor: User, user_id: int) -> None:
        """Remove a user's grant. Owner, file admins and system admins only."""
        AccessService.require(file, actor, PermissionType.ADMIN)
        grant = PermissionGrant.query.filter_by(file_id=file.id, user_id=user_id).first()
        if grant is None:
            raise NotFound('Permission not found.')
        db.session.delete(grant)
        db.session.commit()
        current_app.logger.info(f'Permission of user {user_id} on file {file.id} revoked by user {actor.id}')

    # ============================================================
    # RECONCILIATION
    # ============================================================

    @staticmethod
    def find_orphaned_objects():
        """Storage paths with no metadata row."""
        known = {path for (path,) in db.session.query(File.storage_path).all()}
        return [path for path in storage.list_paths() if path not in known]

    @staticmethod
    def missing_objects():
        """Metadata rows whose object is missing from storage."""
        return [
            file for file in File.query.order_by(File.id).all()
            if not storage.exists(file.storage_path)
        ]

    @staticmethod
    def remove_orphaned_objects(paths):
        missing = storage.remove(paths)
        removed = [path for path in paths if path not in missing]
        current_app.logger.info(f'Reconciliation removed {len(removed)} orphaned object(s)')
        return removed
