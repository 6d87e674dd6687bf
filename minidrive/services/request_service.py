"""
Access request workflow: create, approve, deny, list.

Approve and deny are single transactions whose first statement is a
conditional ``UPDATE ... WHERE status = 'pending'``. When two responses race,
the database lets exactly one of them match the row; the other sees zero
affected rows and is rejected with ``request_not_pending``.
"""
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from minidrive.extensions import db
from minidrive.models.access_request import AccessRequest, RequestStatus, statuses_leading_to
from minidrive.models.file import File
from minidrive.models.permission import PermissionGrant, PermissionType
from minidrive.models.user import User
from minidrive.services.exceptions import AccessDenied, Conflict, NotFound, ValidationFailed
from minidrive.utils.timezone import utcnow

MAX_MESSAGE_LENGTH = 1000


def _coerce_permission(value, field='permission') -> PermissionType:
    try:
        return PermissionType(value)
    except ValueError:
        raise ValidationFailed(
            f'Invalid {field}: {value}',
            details=[{
                'field': field,
                'message': f'Must be one of: {", ".join(p.value for p in PermissionType)}.',
                'code': 'invalid_choice',
            }],
        )


class AccessRequestService:
    """Service for the pending -> approved | denied workflow."""

    @staticmethod
    def create_request(file_id: int, requester: User, requested_permission,
                       message: Optional[str] = None) -> AccessRequest:
        """
        Open a pending access request on someone else's file.

        Raises:
            NotFound: If the file does not exist
            Conflict: ``owner_request``, ``already_granted`` or ``request_pending``
            ValidationFailed: If the permission or message is invalid
        """
        permission = _coerce_permission(requested_permission)
        if message is not None:
            message = message.strip() or None
        if message and len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationFailed(
                f'Message must be at most {MAX_MESSAGE_LENGTH} characters.',
                details=[{'field': 'message', 'message': 'Too long.', 'code': 'max_length'}],
            )

        file = db.session.get(File, file_id)
        if file is None:
            raise NotFound('File not found.')

        if file.owner_id == requester.id:
            raise Conflict('You already own this file.', code='owner_request')

        grant = PermissionGrant.query.filter_by(file_id=file.id, user_id=requester.id).first()
        if grant is not None and grant.permission_type.satisfies(permission):
            raise Conflict(
                f'You already have {grant.permission_type.value} permission on this file.',
                code='already_granted',
            )

        pending = AccessRequestService._pending_request(file.id, requester.id)
        if pending is not None:
            raise AccessRequestService._duplicate_conflict(pending)

        access_request = AccessRequest(
            file_id=file.id,
            requested_by_id=requester.id,
            owner_id=file.owner_id,
            requested_permission=permission,
            message=message,
            status=RequestStatus.PENDING,
        )
        db.session.add(access_request)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request for the same (file, requester) was inserted first
            db.session.rollback()
            raise AccessRequestService._duplicate_conflict(
                AccessRequestService._pending_request(file_id, requester.id)
            )

        current_app.logger.info(
            f'Access request {access_request.id} created: user {requester.id} '
            f'asks {permission.value} on file {file.id}'
        )
        return access_request

    @staticmethod
    def _pending_request(file_id: int, requester_id: int) -> Optional[AccessRequest]:
        return AccessRequest.query.filter_by(
            file_id=file_id,
            requested_by_id=requester_id,
            status=RequestStatus.PENDING
        ).first()

    @staticmethod
    def _duplicate_conflict(pending: Optional[AccessRequest]) -> Conflict:
        return Conflict(
            'You already have a pending request for this file.',
            code='request_pending',
            details={'request_id': pending.id} if pending is not None else None,
        )

    @staticmethod
    def _load_for_response(request_id: int, actor: User) -> AccessRequest:
        access_request = db.session.get(AccessRequest, request_id)
        if access_request is None:
            raise NotFound('Access request not found.')
        if access_request.owner_id != actor.id and not actor.is_admin:
            raise AccessDenied('Only the file owner or an admin can respond to this request.')
        return access_request

    @staticmethod
    def _claim(access_request: AccessRequest, target: RequestStatus, actor: User) -> None:
        """
        Compare-and-set the status to ``target``.

        Only rows still in a status allowed to reach ``target`` are updated, so
        of two racing responses exactly one matches the row.
        """
        if access_request.can_transition_to(target):
            result = db.session.execute(
                update(AccessRequest)
                .where(AccessRequest.id == access_request.id)
                .where(AccessRequest.status.in_(statuses_leading_to(target)))
                .values(status=target, responded_at=utcnow(), responded_by_id=actor.id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return
            db.session.rollback()
            db.session.refresh(access_request)

        raise Conflict(
            f'This request has already been {access_request.status.value}.',
            code='request_not_pending',
            details={'status': access_request.status.value},
        )

    @staticmethod
    def approve_request(request_id: int, actor: User, granted_permission=None) -> AccessRequest:
        """
        Approve a pending request and grant the permission, atomically.

        ``granted_permission`` defaults to the level that was asked for. An
        existing grant for the requester is updated in place.

        Raises:
            NotFound, AccessDenied, Conflict (``request_not_pending``)
        """
        access_request = AccessRequestService._load_for_response(request_id, actor)
        permission = (
            _coerce_permission(granted_permission)
            if granted_permission is not None
            else access_request.requested_permission
        )

        try:
            AccessRequestService._claim(access_request, RequestStatus.APPROVED, actor)

            grant = PermissionGrant.query.filter_by(
                file_id=access_request.file_id,
                user_id=access_request.requested_by_id
            ).first()
            if grant is None:
                grant = PermissionGrant(
                    file_id=access_request.file_id,
                    user_id=access_request.requested_by_id,
                )
                db.session.add(grant)
            grant.permission_type = permission
            grant.granted_by_id = actor.id
            grant.granted_at = utcnow()

            db.session.commit()
        except IntegrityError as e:
            # Concurrent grant insert for the same (file, user)
            db.session.rollback()
            current_app.logger.warning(f'Approve of request {request_id} rolled back: {e.orig}')
            raise Conflict('The permission changed concurrently, please retry.', code='grant_conflict')

        db.session.refresh(access_request)
        current_app.logger.info(
            f'Access request {access_request.id} approved by user {actor.id}: '
            f'{permission.value} on file {access_request.file_id}'
        )
        return access_request

    @staticmethod
    def deny_request(request_id: int, actor: User) -> AccessRequest:
        """
        Deny a pending request. No permission is written.

        Raises:
            NotFound, AccessDenied, Conflict (``request_not_pending``)
        """
        access_request = AccessRequestService._load_for_response(request_id, actor)
        AccessRequestService._claim(access_request, RequestStatus.DENIED, actor)
        db.session.commit()

        db.session.refresh(access_request)
        current_app.logger.info(f'Access request {access_request.id} denied by user {actor.id}')
        return access_request

    # ============================================================
    # LISTING
    # ============================================================

    @staticmethod
    def _status_filter(query, status):
        if status:
            try:
                query = query.filter(AccessRequest.status == RequestStatus(status))
            except ValueError:
                raise ValidationFailed(f'Invalid status: {status}', code='invalid_filter')
        return query

    @staticmethod
    def outgoing_query(user: User, status: Optional[str] = None):
        """Requests the user has made, newest first."""
        query = AccessRequest.query.filter(AccessRequest.requested_by_id == user.id)
        query = AccessRequestService._status_filter(query, status)
        return query.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc())

    @staticmethod
    def incoming_query(owner: User, status: Optional[str] = None):
        """Requests on files the user owns, newest first."""
        query = AccessRequest.query.filter(AccessRequest.owner_id == owner.id)
        query = AccessRequestService._status_filter(query, status)
        return query.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc())

    @staticmethod
    def all_query(status: Optional[str] = None):
        """Every request in the system (admin view), newest first."""
        query = AccessRequestService._status_filter(AccessRequest.query, status)
        return query.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc())
