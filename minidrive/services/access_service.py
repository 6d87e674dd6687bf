"""
Permission resolution for files.

Given a file, an optional user and an optional share token, decide what the
caller may do. First match wins, in a fixed order:

1. owner of the file        -> admin level, source ``owner``
2. system admin role        -> admin level, source ``role``
3. a PermissionGrant        -> the granted level, source ``grant``
4. a valid public share link -> view level, source ``share_link``
5. nothing                  -> no access (callers offer an access request)
"""
from typing import NamedTuple, Optional

from minidrive.models.file import File
from minidrive.models.permission import PermissionGrant, PermissionType
from minidrive.models.share_link import ShareLink
from minidrive.models.user import User
from minidrive.services.exceptions import AccessDenied


class AccessDecision(NamedTuple):
    """Outcome of a permission resolution."""
    level: Optional[PermissionType]
    source: Optional[str]

    @property
    def granted(self) -> bool:
        return self.level is not None

    def allows(self, required) -> bool:
        """True if the resolved level is at least ``required``."""
        return self.level is not None and self.level.satisfies(required)


NO_ACCESS = AccessDecision(None, None)


class AccessService:
    """Service resolving and enforcing per-file permissions."""

    @staticmethod
    def resolve(file: File, user: Optional[User] = None,
                share_token: Optional[str] = None) -> AccessDecision:
        """
        Resolve the caller's access to ``file``.

        Each step is a separate lookup so the result never depends on the
        order rows come back from the database. A grant row that happens to
        exist for the owner is ignored because the owner check runs first.
        """
        if user is not None:
            if file.is_owned_by(user):
                return AccessDecision(PermissionType.ADMIN, 'owner')

            if user.is_admin:
                return AccessDecision(PermissionType.ADMIN, 'role')

            grant = PermissionGrant.query.filter_by(
                file_id=file.id,
                user_id=user.id
            ).first()
            if grant is not None:
                return AccessDecision(grant.permission_type, 'grant')

        if share_token:
            link = AccessService.find_public_link(file, share_token)
            if link is not None:
                return AccessDecision(PermissionType.VIEW, 'share_link')

        return NO_ACCESS

    @staticmethod
    def find_public_link(file: File, share_token: str) -> Optional[ShareLink]:
        """Return the link if ``share_token`` is a valid public link for ``file``."""
        link = ShareLink.query.filter_by(share_token=share_token, file_id=file.id).first()
        if link is None or not link.is_public or not link.is_valid:
            return None
        return link

    @staticmethod
    def require(file: File, user: Optional[User], level,
                share_token: Optional[str] = None) -> AccessDecision:
        """
        Resolve access and raise unless it reaches ``level``.

        Raises:
            AccessDenied: ``access_request_available`` when the caller has no
                access at all (a signed-in user may ask the owner), or
                ``insufficient_permission`` when the level is too low.
        """
        required = PermissionType(level)
        decision = AccessService.resolve(file, user, share_token)

        if not decision.granted:
            raise AccessDenied(
                'You do not have access to this file.',
                code='access_request_available',
                details={'file_id': file.id, 'can_request_access': user is not None},
            )
        if not decision.allows(required):
            raise AccessDenied(
                f'This action requires {required.value} permission.',
                code='insufficient_permission',
                details={
                    'file_id': file.id,
                    'current_permission': decision.level.value,
                    'required_permission': required.value,
                    'can_request_access': user is not None,
                },
            )
        return decision
