from flask import jsonify


def api_ok(message, data=None):
    return {
        "success": True,
        "message": message,
        "data": data,
    }


def api_error(message, data=None):
    return {
        "success": False,
        "message": message,
        "data": data,
    }


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def _parse_int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def paginate(query, page, per_page, serialize):
    page = max(_parse_int(page, 1), 1)
    per_page = min(max(_parse_int(per_page, 20), 1), 100)
    items = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        "meta": {
            "page": items.page,
            "pages": items.pages or 1,
            "per_page": per_page,
            "total": items.total,
        },
        "items": [serialize(i) for i in items.items],
    }
