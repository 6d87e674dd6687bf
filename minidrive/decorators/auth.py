"""
Authorization decorators for file-scoped and admin-only API routes.

They run after ``jwt_required`` and read the authenticated user from
``request.api_user``.
"""
from functools import wraps

from flask import request

from minidrive.models.permission import PermissionType
from minidrive.services.access_service import AccessService
from minidrive.services.exceptions import AccessDenied, NotFound
from minidrive.services.file_service import FileService


def authorize_file(level=PermissionType.VIEW):
    """
    Decorator to verify the caller reaches ``level`` on the file.
    Expects 'file_id' in route parameters.

    The loaded file and the AccessDecision are passed to the view as the
    ``file`` and ``access`` keyword arguments.

    Usage:
        @api_bp.route('/files/<int:file_id>')
        @jwt_required
        @authorize_file(PermissionType.VIEW)
        def api_get_file(file_id, file, access):
            ...
    """
    required = PermissionType(level)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            file_id = kwargs.get('file_id')
            if file_id is None:
                raise NotFound('File not found.')

            file = FileService.get_file(file_id)
            user = getattr(request, 'api_user', None)
            access = AccessService.require(file, user, required)

            kwargs['file'] = file
            kwargs['access'] = access
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def requires_admin(f):
    """
    Decorator to require the system admin role.

    Usage:
        @jwt_required
        @requires_admin
        def admin_stats():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(request, 'api_user', None)
        if user is None or not user.is_admin:
            raise AccessDenied('Admin role required.')
        return f(*args, **kwargs)
    return decorated_function
