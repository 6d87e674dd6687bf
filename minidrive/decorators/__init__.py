"""
Decorators package.
"""
from minidrive.decorators.auth import (
    authorize_file,
    requires_admin,
)

__all__ = [
    'authorize_file',
    'requires_admin',
]
