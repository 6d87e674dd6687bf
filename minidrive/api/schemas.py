"""
Marshmallow schemas for API serialization.
Converts SQLAlchemy models to JSON-safe dictionaries, and validates request bodies.
"""
from marshmallow import Schema, fields, validate, pre_load, EXCLUDE

from minidrive.models.permission import PermissionType
from minidrive.models.user import AppRole


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        ordered = True


class BaseInputSchema(Schema):
    """Base schema for request bodies; unknown keys are ignored."""
    class Meta:
        unknown = EXCLUDE


def _enum_value(value):
    return value.value if hasattr(value, 'value') else value


PERMISSION_CHOICES = [p.value for p in PermissionType]


# ── User ────────────────────────────────────────────────────

class UserMinimalSchema(BaseSchema):
    """Minimal user representation (for nested references)."""
    id = fields.Int(dump_only=True)
    email = fields.Email()
    full_name = fields.Str()


class UserSchema(BaseSchema):
    """Full user representation (for /me endpoint)."""
    id = fields.Int(dump_only=True)
    email = fields.Email()
    full_name = fields.Str()
    display_name = fields.Str(dump_only=True)
    role = fields.Method('get_role')
    role_label = fields.Str(dump_only=True)
    is_admin = fields.Bool(dump_only=True)
    is_active = fields.Bool()
    created_at = fields.DateTime(format='iso')
    last_login = fields.DateTime(format='iso')

    def get_role(self, obj):
        return _enum_value(obj.role)


# ── File ────────────────────────────────────────────────────

class FileSchema(BaseSchema):
    """File metadata representation."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    extension = fields.Str(dump_only=True)
    size_bytes = fields.Int()
    size_formatted = fields.Str(attribute='file_size_formatted', dump_only=True)
    mime_type = fields.Str()
    owner = fields.Nested(UserMinimalSchema, dump_only=True)
    created_at = fields.DateTime(format='iso')


class FileMinimalSchema(BaseSchema):
    """Minimal file reference."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    mime_type = fields.Str()


# ── Permissions ─────────────────────────────────────────────

class PermissionGrantSchema(BaseSchema):
    """A user's grant on a file."""
    id = fields.Int(dump_only=True)
    file_id = fields.Int()
    user = fields.Nested(UserMinimalSchema, dump_only=True)
    permission_type = fields.Method('get_permission_type')
    granted_by = fields.Nested(UserMinimalSchema, dump_only=True)
    granted_at = fields.DateTime(format='iso')

    def get_permission_type(self, obj):
        return _enum_value(obj.permission_type)


class AccessDecisionSchema(BaseSchema):
    """The caller's resolved access to a file."""
    permission = fields.Method('get_permission')
    source = fields.Str()
    can_view = fields.Method('get_can_view')
    can_edit = fields.Method('get_can_edit')
    can_share = fields.Method('get_can_share')

    def get_permission(self, obj):
        return _enum_value(obj.level) if obj.level else None

    def get_can_view(self, obj):
        return obj.allows(PermissionType.VIEW)

    def get_can_edit(self, obj):
        return obj.allows(PermissionType.EDIT)

    def get_can_share(self, obj):
        return obj.allows(PermissionType.ADMIN)


# ── Access requests ─────────────────────────────────────────

class AccessRequestSchema(BaseSchema):
    """Access request representation."""
    id = fields.Int(dump_only=True)
    file = fields.Nested(FileMinimalSchema, dump_only=True)
    requested_by = fields.Nested(UserMinimalSchema, dump_only=True)
    owner = fields.Nested(UserMinimalSchema, dump_only=True)
    requested_permission = fields.Method('get_requested_permission')
    message = fields.Str()
    status = fields.Method('get_status')
    created_at = fields.DateTime(format='iso')
    responded_at = fields.DateTime(format='iso')
    responded_by = fields.Nested(UserMinimalSchema, dump_only=True)

    def get_requested_permission(self, obj):
        return _enum_value(obj.requested_permission)

    def get_status(self, obj):
        return _enum_value(obj.status)


# ── Share links ─────────────────────────────────────────────

class ShareLinkSchema(BaseSchema):
    """Share link representation (only ever returned to its creator)."""
    id = fields.Int(dump_only=True)
    file_id = fields.Int()
    share_token = fields.Str()
    url = fields.Str(dump_only=True)
    is_public = fields.Bool()
    expires_at = fields.DateTime(format='iso')
    is_valid = fields.Bool(dump_only=True)
    created_at = fields.DateTime(format='iso')
    updated_at = fields.DateTime(format='iso')


class SharedFileSchema(BaseSchema):
    """What a share link holder sees about the file."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    size_bytes = fields.Int()
    size_formatted = fields.Str(attribute='file_size_formatted', dump_only=True)
    mime_type = fields.Str()
    created_at = fields.DateTime(format='iso')


# ── Request bodies ──────────────────────────────────────────

class _StripStringsMixin:
    @pre_load
    def strip_strings(self, data, **kwargs):
        if isinstance(data, dict):
            return {k: v.strip() if isinstance(v, str) else v for k, v in data.items()}
        return data


class RegisterSchema(_StripStringsMixin, BaseInputSchema):
    email = fields.Email(required=True, validate=validate.Length(max=120))
    password = fields.Str(required=True, validate=validate.Length(min=8, max=128))
    full_name = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=120))


class ProfileUpdateSchema(_StripStringsMixin, BaseInputSchema):
    full_name = fields.Str(required=True, allow_none=True, validate=validate.Length(max=120))


class RenameFileSchema(_StripStringsMixin, BaseInputSchema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))


class ShareSettingsSchema(BaseInputSchema):
    is_public = fields.Bool(load_default=False)
    expires_at = fields.DateTime(load_default=None, allow_none=True)


class AccessRequestCreateSchema(_StripStringsMixin, BaseInputSchema):
    file_id = fields.Int(required=True, strict=True)
    permission = fields.Str(load_default=PermissionType.VIEW.value, validate=validate.OneOf(PERMISSION_CHOICES))
    message = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=1000))


class AccessRequestApproveSchema(BaseInputSchema):
    permission = fields.Str(load_default=None, allow_none=True, validate=validate.OneOf(PERMISSION_CHOICES))


class RoleUpdateSchema(BaseInputSchema):
    role = fields.Str(required=True, validate=validate.OneOf([r.value for r in AppRole]))
