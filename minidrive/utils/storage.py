"""
Object storage backends.

Files are stored as opaque objects addressed by a relative path
(``<owner_id>/<uuid>.<ext>``). The metadata row in the ``files`` table and
the object have independent lifecycles; services coordinate the two.
"""
import contextlib
import os
import tempfile
from datetime import datetime, timedelta, timezone

import jwt

# Partially written uploads; never listed as objects
TEMP_PREFIX = '.upload-'


class StorageError(Exception):
    """Raised when the object store cannot complete an operation."""


class ObjectNotFound(StorageError):
    """Raised when a requested object does not exist."""


class StorageBackend:
    """Interface every storage backend implements."""

    def upload(self, path, data):
        raise NotImplementedError

    def download(self, path):
        raise NotImplementedError

    def remove(self, paths):
        """Remove objects. Returns the list of paths that were already missing."""
        raise NotImplementedError

    def exists(self, path):
        raise NotImplementedError

    def list_paths(self):
        raise NotImplementedError

    def create_signed_url(self, path, ttl_seconds, download_name=None, inline=False):
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Filesystem-backed object store with JWT-signed download URLs."""

    SIGNED_URL_TYPE = 'storage_download'

    def __init__(self, root, secret, base_url):
        self.root = os.path.abspath(root)
        self.secret = secret
        self.base_url = base_url.rstrip('/')
        os.makedirs(self.root, exist_ok=True)

    def _full_path(self, path):
        if not path or os.path.isabs(path):
            raise StorageError(f'Invalid object path: {path!r}')
        full_path = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([self.root, full_path]) != self.root or full_path == self.root:
            raise StorageError(f'Object path escapes storage root: {path!r}')
        return full_path

    def upload(self, path, data):
        full_path = self._full_path(path)
        if os.path.exists(full_path):
            raise StorageError(f'Object already exists: {path}')
        directory = os.path.dirname(full_path)
        try:
            os.makedirs(directory, exist_ok=True)
            # Write to a temp file first so readers never see a partial object
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=TEMP_PREFIX)
        except OSError as e:
            raise StorageError(f'Upload failed for {path}: {e}') from e

        try:
            with os.fdopen(fd, 'wb') as fh:
                fh.write(data)
            os.replace(tmp_path, full_path)
        except OSError as e:
            with contextlib.suppress(FileNotFoundError):
                os.remove(tmp_path)
            raise StorageError(f'Upload failed for {path}: {e}') from e

    def download(self, path):
        full_path = self._full_path(path)
        if not os.path.isfile(full_path):
            raise ObjectNotFound(path)
        try:
            with open(full_path, 'rb') as fh:
                return fh.read()
        except OSError as e:
            raise StorageError(f'Download failed for {path}: {e}') from e

    def remove(self, paths):
        missing = []
        for path in paths:
            full_path = self._full_path(path)
            if not os.path.exists(full_path):
                missing.append(path)
                continue
            try:
                os.remove(full_path)
            except OSError as e:
                raise StorageError(f'Removal failed for {path}: {e}') from e
        return missing

    def exists(self, path):
        return os.path.isfile(self._full_path(path))

    def list_paths(self):
        paths = []
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for filename in filenames:
                if filename.startswith(TEMP_PREFIX):
                    continue
                full_path = os.path.join(dirpath, filename)
                paths.append(os.path.relpath(full_path, self.root).replace(os.sep, '/'))
        return sorted(paths)

    def create_signed_url(self, path, ttl_seconds, download_name=None, inline=False):
        self._full_path(path)
        now = datetime.now(timezone.utc)
        payload = {
            'type': self.SIGNED_URL_TYPE,
            'path': path,
            'iat': now,
            'exp': now + timedelta(seconds=ttl_seconds),
        }
        if download_name:
            payload['name'] = download_name
        if inline:
            payload['inline'] = True
        token = jwt.encode(payload, self.secret, algorithm='HS256')
        return f'{self.base_url}/api/v1/storage/{token}'

    def verify_signed_token(self, token):
        """Return the payload of a signed download token, or None if invalid/expired."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=['HS256'])
        except jwt.InvalidTokenError:
            return None
        if payload.get('type') != self.SIGNED_URL_TYPE or not payload.get('path'):
            return None
        return payload


class StorageManager:
    """Binds a storage backend to the Flask app, extension style."""

    def __init__(self, app=None):
        self.backend = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        secret = app.config.get('JWT_SECRET_KEY') or app.config['SECRET_KEY']
        self.backend = LocalStorage(
            root=app.config['STORAGE_ROOT'],
            secret=secret,
            base_url=app.config['APP_URL'],
        )
        app.extensions['minidrive_storage'] = self

    def __getattr__(self, name):
        backend = self.__dict__.get('backend')
        if backend is None:
            raise RuntimeError('Storage is not initialised; call init_app() first.')
        return getattr(backend, name)
