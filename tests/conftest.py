# =============================================================================
# Mini Drive - Pytest Fixtures Configuration
# =============================================================================

import pytest

from minidrive import create_app
from minidrive.extensions import db
from minidrive.models.user import User, AppRole
from minidrive.models.permission import PermissionGrant, PermissionType
from minidrive.services.file_service import FileService


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app(tmp_path):
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing', config_overrides={
        'STORAGE_ROOT': str(tmp_path / 'storage'),
    })

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


# =============================================================================
# User Fixtures
# =============================================================================

def _create_user(email, password='TestPass123!', full_name=None, role=AppRole.USER, is_active=True):
    user = User(email=email, full_name=full_name, role=role, is_active=is_active)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    user_id = user.id
    db.session.expire_all()
    return db.session.get(User, user_id)


@pytest.fixture
def owner_user(app):
    """A regular user who owns files."""
    return _create_user('owner@test.com', full_name='Olivia Owner')


@pytest.fixture
def other_user(app):
    """A regular user with no access to the owner's files."""
    return _create_user('other@test.com', full_name='Oscar Other')


@pytest.fixture
def third_user(app):
    """Another regular user."""
    return _create_user('third@test.com', full_name='Theo Third')


@pytest.fixture
def admin_user(app):
    """A user with the system admin role."""
    return _create_user('admin@test.com', full_name='Ada Admin', role=AppRole.ADMIN)


@pytest.fixture
def inactive_user(app):
    return _create_user('inactive@test.com', is_active=False)


# =============================================================================
# File Fixtures
# =============================================================================

def make_file(owner, name='report.pdf', data=b'%PDF-1.4 test content', content_type=None):
    """Upload a file through the service (object + metadata row)."""
    return FileService.upload_file(owner, name, data, content_type=content_type)


def grant(file, user, level, granted_by=None):
    """Create a permission grant directly."""
    permission = PermissionGrant(
        file_id=file.id,
        user_id=user.id,
        permission_type=PermissionType(level),
        granted_by_id=granted_by.id if granted_by else file.owner_id,
    )
    db.session.add(permission)
    db.session.commit()
    return permission


@pytest.fixture
def sample_file(app, owner_user):
    """A PDF owned by owner_user."""
    return make_file(owner_user)


@pytest.fixture
def image_file(app, owner_user):
    return make_file(owner_user, name='holiday.png', data=b'\x89PNG fake image bytes')


# =============================================================================
# API Helpers
# =============================================================================

def get_auth_token(client, email='owner@test.com', password='TestPass123!'):
    """Helper: login and return access token."""
    resp = client.post('/api/v1/auth/login', json={
        'email': email,
        'password': password,
    })
    data = resp.get_json()
    return data['data']['access_token']


def auth_header(token):
    """Helper: build Authorization header."""
    return {'Authorization': f'Bearer {token}'}


def auth_for(client, user, password='TestPass123!'):
    """Helper: Authorization header for a fixture user."""
    return auth_header(get_auth_token(client, user.email, password))
