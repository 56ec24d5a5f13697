"""JSON envelope shared by every API route: ``success``, ``message``, then payload."""
from flask import jsonify


def ok(data=None, message='', status=200):
    body = {'success': True, 'message': message}
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def fail(message, status=400, errors=None, **extra):
    body = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    body.update(extra)
    return jsonify(body), status


def json_payload(request):
    """Return the request JSON object, or None when the body is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def page_payload(pagination, serialize):
    return {
        'items': [serialize(item) for item in pagination.items],
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    }
