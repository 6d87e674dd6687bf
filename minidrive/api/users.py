"""
API user endpoints: profile and access requests.
"""
from flask import request, jsonify

from minidrive.api import api_bp
from minidrive.api.decorators import jwt_required
from minidrive.api.helpers import paginate_query, api_success, load_json
from minidrive.api.schemas import (
    AccessRequestApproveSchema, AccessRequestCreateSchema, AccessRequestSchema,
    ProfileUpdateSchema, UserSchema,
)
from minidrive.extensions import db, limiter
from minidrive.services.request_service import AccessRequestService
from minidrive.utils.audit import log_action


@api_bp.route('/users/profile', methods=['PUT'])
@jwt_required
def api_update_profile():
    """Update the current user's profile.

    Request body:
        {"full_name": "..."}
    """
    data = load_json(ProfileUpdateSchema())
    user = request.api_user
    user.full_name = data.get('full_name') or None
    db.session.commit()
    return api_success(UserSchema().dump(user))


# ── Access requests ─────────────────────────────────────────

@api_bp.route('/users/access-requests', methods=['GET'])
@jwt_required
def api_list_my_requests():
    """List the current user's outgoing access requests.

    Query params:
        status (str): pending, approved or denied
        page, per_page: Pagination
    """
    query = AccessRequestService.outgoing_query(request.api_user, request.args.get('status'))
    return jsonify(paginate_query(query, AccessRequestSchema())), 200


@api_bp.route('/users/access-requests', methods=['POST'])
@jwt_required
@limiter.limit('20 per minute')
def api_create_request():
    """Ask a file's owner for access.

    Request body:
        {"file_id": 1, "permission": "view", "message": "..."}
    """
    data = load_json(AccessRequestCreateSchema())
    user = request.api_user
    access_request = AccessRequestService.create_request(
        file_id=data['file_id'],
        requester=user,
        requested_permission=data['permission'],
        message=data.get('message'),
    )
    log_action('REQUEST_CREATE', entity_type='AccessRequest', entity_id=access_request.id,
               details={'file_id': access_request.file_id,
                        'permission': access_request.requested_permission.value},
               user=user)
    return api_success(AccessRequestSchema().dump(access_request), 201)


@api_bp.route('/users/access-requests/incoming', methods=['GET'])
@jwt_required
def api_list_incoming_requests():
    """List access requests on files the current user owns.

    Query params:
        status (str): pending, approved or denied
        page, per_page: Pagination
    """
    query = AccessRequestService.incoming_query(request.api_user, request.args.get('status'))
    return jsonify(paginate_query(query, AccessRequestSchema())), 200


@api_bp.route('/users/access-requests/<int:request_id>/approve', methods=['POST'])
@jwt_required
def api_approve_request(request_id):
    """Approve a pending request (file owner or admin).

    Request body (optional):
        {"permission": "edit"}   # defaults to the requested level
    """
    return approve_request_response(request_id)


@api_bp.route('/users/access-requests/<int:request_id>/deny', methods=['POST'])
@jwt_required
def api_deny_request(request_id):
    """Deny a pending request (file owner or admin)."""
    return deny_request_response(request_id)


def approve_request_response(request_id):
    data = load_json(AccessRequestApproveSchema())
    user = request.api_user
    access_request = AccessRequestService.approve_request(
        request_id, user, granted_permission=data.get('permission')
    )
    log_action('REQUEST_APPROVE', entity_type='AccessRequest', entity_id=access_request.id,
               details={'file_id': access_request.file_id,
                        'granted_permission': data.get('permission')
                        or access_request.requested_permission.value},
               user=user)
    return api_success(AccessRequestSchema().dump(access_request))


def deny_request_response(request_id):
    user = request.api_user
    access_request = AccessRequestService.deny_request(request_id, user)
    log_action('REQUEST_DENY', entity_type='AccessRequest', entity_id=access_request.id,
               details={'file_id': access_request.file_id}, user=user)
    return api_success(AccessRequestSchema().dump(access_request))
