"""
SQLAlchemy models for Mini Drive.
All models are imported here for easy access.
"""
from minidrive.models.user import User, AppRole, APP_ROLE_LABELS
from minidrive.models.file import File
from minidrive.models.permission import PermissionGrant, PermissionType, PERMISSION_HIERARCHY
from minidrive.models.access_request import (
    AccessRequest,
    RequestStatus,
    REQUEST_STATUS_TRANSITIONS,
)
from minidrive.models.share_link import ShareLink, generate_share_token
from minidrive.utils.audit import AuditLog

__all__ = [
    'User',
    'AppRole',
    'APP_ROLE_LABELS',
    'File',
    'PermissionGrant',
    'PermissionType',
    'PERMISSION_HIERARCHY',
    'AccessRequest',
    'RequestStatus',
    'REQUEST_STATUS_TRANSITIONS',
    'ShareLink',
    'generate_share_token',
    'AuditLog',
]
