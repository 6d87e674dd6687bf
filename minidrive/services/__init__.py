"""
Services package for Mini Drive.
Contains business logic separated from routes.
"""

from minidrive.services.access_service import AccessService, AccessDecision
from minidrive.services.admin_service import AdminService
from minidrive.services.file_service import FileService
from minidrive.services.request_service import AccessRequestService
from minidrive.services.share_service import ShareService

__all__ = [
    'AccessService',
    'AccessDecision',
    'AdminService',
    'FileService',
    'AccessRequestService',
    'ShareService',
]
