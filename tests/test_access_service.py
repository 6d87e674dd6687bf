"""
Tests for permission resolution: owner, admin role, grant, public share link, none.
"""
from datetime import timedelta

import pytest

from minidrive.extensions import db
from minidrive.models import PermissionType, ShareLink
from minidrive.services.access_service import AccessService, NO_ACCESS
from minidrive.services.exceptions import AccessDenied
from minidrive.utils.timezone import utcnow
from tests.conftest import grant


def _link(file, creator, is_public=True, expires_at=None):
    link = ShareLink(file_id=file.id, created_by_id=creator.id, is_public=is_public, expires_at=expires_at)
    db.session.add(link)
    db.session.commit()
    return link


# =============================================================================
# Resolution order
# =============================================================================

class TestResolveAccess:
    """First match wins: owner, role, grant, share link, none."""

    def test_owner_has_full_access(self, sample_file, owner_user):
        decision = AccessService.resolve(sample_file, owner_user)
        assert decision.level == PermissionType.ADMIN
        assert decision.source == 'owner'

    def test_stray_owner_grant_never_downgrades_owner(self, sample_file, owner_user):
        grant(sample_file, owner_user, 'view')
        decision = AccessService.resolve(sample_file, owner_user)
        assert decision.source == 'owner'
        assert decision.level == PermissionType.ADMIN

    def test_system_admin_role(self, sample_file, admin_user):
        decision = AccessService.resolve(sample_file, admin_user)
        assert decision.level == PermissionType.ADMIN
        assert decision.source == 'role'

    @pytest.mark.parametrize('level', ['view', 'edit', 'admin'])
    def test_grant_level(self, sample_file, other_user, level):
        grant(sample_file, other_user, level)
        decision = AccessService.resolve(sample_file, other_user)
        assert decision.level == PermissionType(level)
        assert decision.source == 'grant'

    def test_grant_wins_over_share_link(self, sample_file, owner_user, other_user):
        grant(sample_file, other_user, 'edit')
        link = _link(sample_file, owner_user)
        decision = AccessService.resolve(sample_file, other_user, share_token=link.share_token)
        assert decision.source == 'grant'
        assert decision.level == PermissionType.EDIT

    def test_public_link_gives_view(self, sample_file, owner_user, other_user):
        link = _link(sample_file, owner_user)
        decision = AccessService.resolve(sample_file, other_user, share_token=link.share_token)
        assert decision.level == PermissionType.VIEW
        assert decision.source == 'share_link'

    def test_public_link_without_account(self, sample_file, owner_user):
        link = _link(sample_file, owner_user)
        decision = AccessService.resolve(sample_file, None, share_token=link.share_token)
        assert decision.level == PermissionType.VIEW

    def test_private_link_gives_nothing(self, sample_file, owner_user, other_user):
        link = _link(sample_file, owner_user, is_public=False)
        assert AccessService.resolve(sample_file, other_user, share_token=link.share_token) == NO_ACCESS

    def test_expired_link_gives_nothing(self, sample_file, owner_user, other_user):
        link = _link(sample_file, owner_user, expires_at=utcnow() - timedelta(minutes=1))
        assert AccessService.resolve(sample_file, other_user, share_token=link.share_token) == NO_ACCESS

    def test_link_for_another_file_gives_nothing(self, sample_file, image_file, owner_user, other_user):
        link = _link(image_file, owner_user)
        assert AccessService.resolve(sample_file, other_user, share_token=link.share_token) == NO_ACCESS

    def test_no_access(self, sample_file, other_user):
        decision = AccessService.resolve(sample_file, other_user)
        assert decision == NO_ACCESS
        assert not decision.granted
        assert not decision.allows('view')


# =============================================================================
# Enforcement
# =============================================================================

class TestRequireAccess:
    """require() raises with a code clients can act on."""

    def test_no_access_offers_request(self, sample_file, other_user):
        with pytest.raises(AccessDenied) as exc_info:
            AccessService.require(sample_file, other_user, 'view')
        assert exc_info.value.code == 'access_request_available'
        assert exc_info.value.details['can_request_access'] is True

    def test_anonymous_cannot_request(self, sample_file):
        with pytest.raises(AccessDenied) as exc_info:
            AccessService.require(sample_file, None, 'view')
        assert exc_info.value.details['can_request_access'] is False

    def test_insufficient_level(self, sample_file, other_user):
        grant(sample_file, other_user, 'view')
        with pytest.raises(AccessDenied) as exc_info:
            AccessService.require(sample_file, other_user, 'edit')
        assert exc_info.value.code == 'insufficient_permission'
        assert exc_info.value.details['current_permission'] == 'view'

    def test_sufficient_level_returns_decision(self, sample_file, other_user):
        grant(sample_file, other_user, 'admin')
        decision = AccessService.require(sample_file, other_user, PermissionType.EDIT)
        assert decision.source == 'grant'
