"""
Admin view: every file across users, statistics, user roles.

Callers must already have checked that the actor holds the admin role.
"""
from typing import Dict, Any, Optional

from flask import current_app
from sqlalchemy import func, or_

from minidrive.extensions import db
from minidrive.models.access_request import AccessRequest, RequestStatus
from minidrive.models.file import File, major_mime_type
from minidrive.models.user import User, AppRole
from minidrive.services.exceptions import Conflict, NotFound, ValidationFailed

SORTABLE_COLUMNS = {
    'created_at': File.created_at,
    'name': File.name,
    'size_bytes': File.size_bytes,
}


def _contains_pattern(value):
    """ILIKE pattern matching ``value`` literally anywhere in the column."""
    escaped = value.strip().replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


class AdminService:
    """Service backing the admin endpoints."""

    @staticmethod
    def files_query(search: Optional[str] = None, owner_id: Optional[int] = None,
                    mime_type: Optional[str] = None, sort_by: str = 'created_at',
                    sort_order: str = 'desc'):
        """
        All files, filtered and sorted.

        Args:
            search: Case-insensitive substring of the file name or owner e-mail
            owner_id: Restrict to one owner
            mime_type: Case-insensitive substring of the MIME type ('image', 'pdf')
            sort_by: created_at, name or size_bytes
            sort_order: asc or desc

        Raises:
            ValidationFailed: Unknown sort column or order
        """
        column = SORTABLE_COLUMNS.get(sort_by or 'created_at')
        if column is None:
            raise ValidationFailed(
                f'Invalid sort_by: {sort_by}',
                code='invalid_filter',
                details={'allowed': sorted(SORTABLE_COLUMNS)},
            )
        sort_order = (sort_order or 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationFailed(f'Invalid sort_order: {sort_order}', code='invalid_filter')

        query = File.query.join(User, File.owner_id == User.id)

        if search:
            pattern = _contains_pattern(search)
            query = query.filter(or_(
                File.name.ilike(pattern, escape='\\'),
                User.email.ilike(pattern, escape='\\'),
            ))

        if owner_id:
            query = query.filter(File.owner_id == owner_id)

        if mime_type:
            query = query.filter(File.mime_type.ilike(_contains_pattern(mime_type), escape='\\'))

        ordering = column.asc() if sort_order == 'asc' else column.desc()
        return query.order_by(ordering, File.id.desc() if sort_order == 'desc' else File.id.asc())

    @staticmethod
    def stats() -> Dict[str, Any]:
        """Totals for the admin dashboard."""
        total_files = db.session.query(func.count(File.id)).scalar() or 0
        total_storage = db.session.query(func.coalesce(func.sum(File.size_bytes), 0)).scalar() or 0
        total_users = db.session.query(func.count(User.id)).scalar() or 0
        pending_requests = db.session.query(func.count(AccessRequest.id)).filter(
            AccessRequest.status == RequestStatus.PENDING
        ).scalar() or 0

        files_by_type: Dict[str, int] = {}
        for (mime_type, count) in db.session.query(File.mime_type, func.count(File.id)).group_by(File.mime_type):
            major = major_mime_type(mime_type)
            files_by_type[major] = files_by_type.get(major, 0) + count

        return {
            'total_files': int(total_files),
            'total_users': int(total_users),
            'total_storage': int(total_storage),
            'pending_requests': int(pending_requests),
            'files_by_type': dict(sorted(files_by_type.items())),
        }

    @staticmethod
    def users_query(search: Optional[str] = None):
        query = User.query
        if search:
            pattern = _contains_pattern(search)
            query = query.filter(or_(
                User.email.ilike(pattern, escape='\\'),
                User.full_name.ilike(pattern, escape='\\'),
            ))
        return query.order_by(User.created_at.desc(), User.id.desc())

    @staticmethod
    def set_role(user_id: int, role, actor: User) -> User:
        """
        Change a user's role.

        Raises:
            NotFound: Unknown user
            ValidationFailed: Unknown role
            Conflict: An admin trying to demote themselves
        """
        try:
            new_role = AppRole(role)
        except ValueError:
            raise ValidationFailed(
                f'Invalid role: {role}',
                details=[{'field': 'role', 'message': 'Must be admin or user.', 'code': 'invalid_choice'}],
            )

        user = db.session.get(User, user_id)
        if user is None:
            raise NotFound('User not found.')

        if user.id == actor.id and new_role != AppRole.ADMIN:
            raise Conflict('You cannot remove your own admin role.', code='self_demotion')

        old_role = user.role
        user.role = new_role
        db.session.commit()
        current_app.logger.info(
            f'User {user.id} role changed from {old_role.value} to {new_role.value} by user {actor.id}'
        )
        return user
