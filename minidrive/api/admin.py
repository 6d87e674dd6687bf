"""
API admin endpoints: all files, statistics, users and access requests.
Every route requires the admin role.
"""
from flask import request, jsonify

from minidrive.api import api_bp
from minidrive.api.decorators import jwt_required
from minidrive.api.helpers import paginate_query, api_success, load_json
from minidrive.api.schemas import AccessRequestSchema, FileSchema, RoleUpdateSchema, UserSchema
from minidrive.api.users import approve_request_response, deny_request_response
from minidrive.decorators.auth import requires_admin
from minidrive.services.admin_service import AdminService
from minidrive.services.request_service import AccessRequestService
from minidrive.utils.audit import log_action


@api_bp.route('/admin/files', methods=['GET'])
@jwt_required
@requires_admin
def api_admin_files():
    """List every file across users.

    Query params:
        search (str): Substring of file name or owner e-mail
        user (int): Owner id
        type (str): Substring of MIME type
        sort_by (str): created_at, name, size_bytes
        sort_order (str): asc, desc
        page, per_page: Pagination
    """
    query = AdminService.files_query(
        search=request.args.get('search'),
        owner_id=request.args.get('user', type=int),
        mime_type=request.args.get('type'),
        sort_by=request.args.get('sort_by', 'created_at'),
        sort_order=request.args.get('sort_order', 'desc'),
    )
    return jsonify(paginate_query(query, FileSchema())), 200


@api_bp.route('/admin/stats', methods=['GET'])
@jwt_required
@requires_admin
def api_admin_stats():
    """Dashboard totals."""
    return api_success(AdminService.stats())


@api_bp.route('/admin/users', methods=['GET'])
@jwt_required
@requires_admin
def api_admin_users():
    """List users.

    Query params:
        search (str): Substring of e-mail or name
        page, per_page: Pagination
    """
    query = AdminService.users_query(request.args.get('search'))
    return jsonify(paginate_query(query, UserSchema())), 200


@api_bp.route('/admin/users/<int:user_id>/role', methods=['POST'])
@jwt_required
@requires_admin
def api_admin_set_role(user_id):
    """Change a user's role.

    Request body:
        {"role": "admin" | "user"}
    """
    data = load_json(RoleUpdateSchema())
    user = AdminService.set_role(user_id, data['role'], request.api_user)
    log_action('ROLE_CHANGE', entity_type='User', entity_id=user.id,
               details={'role': data['role']}, user=request.api_user)
    return api_success(UserSchema().dump(user))


@api_bp.route('/admin/access-requests', methods=['GET'])
@jwt_required
@requires_admin
def api_admin_requests():
    """List every access request.

    Query params:
        status (str): pending, approved or denied
        page, per_page: Pagination
    """
    query = AccessRequestService.all_query(request.args.get('status'))
    return jsonify(paginate_query(query, AccessRequestSchema())), 200


@api_bp.route('/admin/access-requests/<int:request_id>/approve', methods=['POST'])
@jwt_required
@requires_admin
def api_admin_approve_request(request_id):
    """Approve any pending request.

    Request body (optional):
        {"permission": "view" | "edit" | "admin"}
    """
    return approve_request_response(request_id)


@api_bp.route('/admin/access-requests/<int:request_id>/deny', methods=['POST'])
@jwt_required
@requires_admin
def api_admin_deny_request(request_id):
    """Deny any pending request."""
    return deny_request_response(request_id)
