"""
Signed download endpoint for the local storage backend.

The signed token is the only credential; it is minted by
``FileService.download_url`` after the caller's access was checked.
"""
import io

from flask import current_app, send_file

from minidrive.api import api_bp
from minidrive.api.helpers import api_error
from minidrive.extensions import limiter, storage
from minidrive.models.file import File
from minidrive.services.exceptions import UpstreamError
from minidrive.utils.storage import ObjectNotFound, StorageError


@api_bp.route('/storage/<string:signed_token>', methods=['GET'])
@limiter.limit('120 per minute')
def api_storage_download(signed_token):
    """Stream a stored object for a valid, unexpired signed token."""
    payload = storage.verify_signed_token(signed_token)
    if payload is None:
        return api_error('invalid_signature', 'Download link is invalid or expired.', 403)

    # The row must still exist: links stop working once the file is deleted
    file = File.query.filter_by(storage_path=payload['path']).first()
    if file is None:
        return api_error('not_found', 'File not found.', 404)

    try:
        data = storage.download(file.storage_path)
    except ObjectNotFound:
        current_app.logger.warning(f'File {file.id}: storage object missing on download')
        return api_error('not_found', 'File content not found.', 404)
    except StorageError as e:
        current_app.logger.error(f'Download failed for file {file.id}: {e}')
        raise UpstreamError('Storage is unavailable.')

    return send_file(
        io.BytesIO(data),
        mimetype=file.mime_type,
        as_attachment=not payload.get('inline', False),
        download_name=payload.get('name') or file.name,
        max_age=0,
    )
