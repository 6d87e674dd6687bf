"""
API helper functions: pagination, error formatting, request parsing.
"""
from urllib.parse import urlencode

from flask import request, jsonify, current_app
from marshmallow import ValidationError

from minidrive.services.exceptions import ValidationFailed


def paginate_query(query, schema, default_per_page=None, max_per_page=100):
    """Apply offset-based pagination to a SQLAlchemy query.

    Query params:
        page (int): Page number (1-indexed, default 1)
        per_page (int): Items per page (default ITEMS_PER_PAGE, max 100)

    Returns:
        JSON-ready dict with data, meta, and links.
    """
    if default_per_page is None:
        default_per_page = current_app.config['ITEMS_PER_PAGE']
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', default_per_page, type=int)

    # Clamp values
    page = max(1, page)
    per_page = max(1, min(per_page, max_per_page))

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    total_pages = pagination.pages if pagination.pages else 1

    # Keep the caller's filters in the links
    extra = [
        (key, value) for key, value in request.args.items(multi=True)
        if key not in ('page', 'per_page')
    ]
    base_url = request.base_url

    def page_url(number):
        params = [('page', number), ('per_page', per_page)] + extra
        return f'{base_url}?{urlencode(params)}'

    links = {
        'self': page_url(page),
    }
    if pagination.has_next:
        links['next'] = page_url(page + 1)
    if pagination.has_prev:
        links['prev'] = page_url(page - 1)
    links['first'] = page_url(1)
    links['last'] = page_url(total_pages)

    return {
        'data': schema.dump(pagination.items, many=True),
        'meta': {
            'total': pagination.total,
            'page': page,
            'per_page': per_page,
            'total_pages': total_pages,
        },
        'links': links,
    }


def api_error(code, message, status=400, details=None):
    """Build a standard API error response."""
    error_body = {
        'error': {
            'code': code,
            'message': message,
        }
    }
    if details:
        error_body['error']['details'] = details
    return jsonify(error_body), status


def api_success(data, status=200):
    """Build a standard API success response."""
    return jsonify({'data': data}), status


def load_json(schema, partial=False):
    """Validate the JSON body with a marshmallow schema.

    Raises:
        ValidationFailed: Body is not JSON (``invalid_json``) or fails the schema.
    """
    data = request.get_json(silent=True)
    if data is None:
        if request.content_length:
            raise ValidationFailed('Request body must be valid JSON.', code='invalid_json')
        data = {}
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object.', code='invalid_json')

    try:
        return schema.load(data, partial=partial)
    except ValidationError as e:
        raise ValidationFailed(
            'Invalid request data.',
            details=[
                {'field': field, 'message': ' '.join(messages) if isinstance(messages, list) else str(messages),
                 'code': 'invalid'}
                for field, messages in sorted(e.messages.items())
            ],
        )
