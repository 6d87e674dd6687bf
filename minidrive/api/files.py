"""
API file endpoints: upload, list, rename, download, delete, share, permissions.
"""
from flask import request, jsonify

from minidrive.api import api_bp
from minidrive.api.decorators import jwt_required, jwt_optional
from minidrive.api.helpers import paginate_query, api_error, api_success, load_json
from minidrive.api.schemas import (
    AccessDecisionSchema, FileSchema, PermissionGrantSchema, RenameFileSchema,
    SharedFileSchema, ShareLinkSchema, ShareSettingsSchema,
)
from minidrive.decorators.auth import authorize_file
from minidrive.extensions import limiter
from minidrive.models.permission import PermissionType
from minidrive.services.access_service import AccessService
from minidrive.services.exceptions import AccessDenied
from minidrive.services.file_service import FileService
from minidrive.services.share_service import ShareService
from minidrive.utils.audit import log_action


def _file_payload(file, access):
    data = FileSchema().dump(file)
    data['access'] = AccessDecisionSchema().dump(access)
    return data


def _wants_inline():
    return request.args.get('inline', '').lower() in ('1', 'true', 'yes')


# ── Own files ───────────────────────────────────────────────

@api_bp.route('/files/upload', methods=['POST'])
@jwt_required
@limiter.limit('30 per minute')
def api_upload_file():
    """Upload a file (multipart/form-data, field ``file``)."""
    uploaded = request.files.get('file')
    if uploaded is None or not uploaded.filename:
        return api_error(
            'validation_error',
            'A file is required.',
            422,
            details=[{'field': 'file', 'message': 'file is required.', 'code': 'required'}],
        )

    user = request.api_user
    file = FileService.upload_file(
        owner=user,
        filename=uploaded.filename,
        data=uploaded.read(),
        content_type=uploaded.mimetype,
    )
    log_action('FILE_UPLOAD', entity_type='File', entity_id=file.id,
               details={'name': file.name, 'size_bytes': file.size_bytes}, user=user)

    return api_success(_file_payload(file, AccessService.resolve(file, user)), 201)


@api_bp.route('/files', methods=['GET'])
@jwt_required
def api_list_files():
    """List the current user's own files, newest first.

    Query params:
        page, per_page: Pagination
    """
    query = FileService.owned_query(request.api_user)
    return jsonify(paginate_query(query, FileSchema())), 200


@api_bp.route('/files/shared-with-me', methods=['GET'])
@jwt_required
def api_list_shared_with_me():
    """List files other users granted the current user access to."""
    query = FileService.shared_with_query(request.api_user)
    return jsonify(paginate_query(query, FileSchema())), 200


# ── Single file ─────────────────────────────────────────────

@api_bp.route('/files/<int:file_id>', methods=['GET'])
@jwt_required
@authorize_file(PermissionType.VIEW)
def api_get_file(file_id, file, access):
    """Get a file's metadata and the caller's access to it."""
    return api_success(_file_payload(file, access))


@api_bp.route('/files/<int:file_id>/access', methods=['GET'])
@jwt_required
def api_get_file_access(file_id):
    """Resolve the caller's access without failing, so clients can offer "request access"."""
    file = FileService.get_file(file_id)
    user = request.api_user
    decision = AccessService.resolve(file, user)
    data = AccessDecisionSchema().dump(decision)
    data['file_id'] = file.id
    data['can_request_access'] = not decision.allows(PermissionType.ADMIN)
    return api_success(data)


@api_bp.route('/files/<int:file_id>', methods=['PATCH'])
@jwt_required
@authorize_file(PermissionType.EDIT)
def api_rename_file(file_id, file, access):
    """Rename a file's display name (edit permission required).

    Request body:
        {"name": "report.pdf"}
    """
    data = load_json(RenameFileSchema())
    old_name = file.name
    FileService.rename_file(file, request.api_user, data['name'])
    log_action('FILE_RENAME', entity_type='File', entity_id=file.id,
               details={'old_name': old_name, 'new_name': file.name}, user=request.api_user)
    return api_success(_file_payload(file, access))


@api_bp.route('/files/<int:file_id>/download', methods=['GET'])
@jwt_required
@authorize_file(PermissionType.VIEW)
def api_download_file(file_id, file, access):
    """Get a short-lived signed download URL."""
    return api_success(FileService.download_url(file, inline=_wants_inline()))


@api_bp.route('/files/<int:file_id>', methods=['DELETE'])
@jwt_required
def api_delete_file(file_id):
    """Delete a file (owner or admin). Removes the metadata and the stored object."""
    file = FileService.get_file(file_id)
    user = request.api_user
    details = {'name': file.name, 'owner_id': file.owner_id}

    FileService.delete_file(file, user)
    log_action('FILE_DELETE', entity_type='File', entity_id=file_id, details=details, user=user)

    return api_success({'id': file_id, 'deleted': True})


# ── Sharing ─────────────────────────────────────────────────

@api_bp.route('/files/<int:file_id>/share', methods=['POST'])
@jwt_required
@authorize_file(PermissionType.VIEW)
def api_share_file(file_id, file, access):
    """Create (or update) the caller's share link for this file.

    Request body:
        {"is_public": true, "expires_at": "2026-12-31T00:00:00Z"}
    """
    data = load_json(ShareSettingsSchema())
    user = request.api_user
    link = ShareService.ensure_share_link(
        file,
        user,
        is_public=data.get('is_public', False),
        expires_at=data.get('expires_at'),
    )
    log_action('SHARE_LINK', entity_type='ShareLink', entity_id=link.id,
               details={'file_id': file.id, 'is_public': link.is_public}, user=user)
    return api_success(ShareLinkSchema().dump(link))


@api_bp.route('/files/<int:file_id>/share', methods=['DELETE'])
@jwt_required
@authorize_file(PermissionType.VIEW)
def api_revoke_share(file_id, file, access):
    """Revoke the caller's share link for this file."""
    ShareService.revoke_share_link(file, request.api_user)
    log_action('SHARE_REVOKE', entity_type='File', entity_id=file.id, user=request.api_user)
    return api_success({'file_id': file.id, 'revoked': True})


@api_bp.route('/files/shared/<string:token>', methods=['GET'])
@jwt_optional
@limiter.limit('60 per minute')
def api_get_shared_file(token):
    """Open a share link. A bearer token is optional."""
    link = ShareService.find_by_token(token)
    file = link.file
    access = AccessService.require(file, request.api_user, PermissionType.VIEW, share_token=token)
    data = SharedFileSchema().dump(file)
    data['access'] = AccessDecisionSchema().dump(access)
    return api_success(data)


@api_bp.route('/files/shared/<string:token>/download', methods=['GET'])
@jwt_optional
@limiter.limit('60 per minute')
def api_download_shared_file(token):
    """Signed download URL for a shared file."""
    link = ShareService.find_by_token(token)
    file = link.file
    AccessService.require(file, request.api_user, PermissionType.VIEW, share_token=token)
    return api_success(FileService.download_url(file, inline=_wants_inline()))


# ── Permissions ─────────────────────────────────────────────

@api_bp.route('/files/<int:file_id>/permissions', methods=['GET'])
@jwt_required
@authorize_file(PermissionType.ADMIN)
def api_list_permissions(file_id, file, access):
    """List who has been granted access to the file."""
    grants = FileService.grants_for(file)
    return api_success(PermissionGrantSchema().dump(grants, many=True))


@api_bp.route('/files/<int:file_id>/permissions/<int:user_id>', methods=['DELETE'])
@jwt_required
@authorize_file(PermissionType.ADMIN)
def api_revoke_permission(file_id, user_id, file, access):
    """Remove a user's grant on the file."""
    if user_id == file.owner_id:
        raise AccessDenied("The owner's access cannot be revoked.")
    FileService.revoke_grant(file, request.api_user, user_id)
    log_action('PERMISSION_REVOKE', entity_type='File', entity_id=file.id,
               details={'user_id': user_id}, user=request.api_user)
    return api_success({'file_id': file.id, 'user_id': user_id, 'revoked': True})
