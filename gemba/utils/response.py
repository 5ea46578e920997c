"""Success envelopes shared by every blueprint.

    {"data": ..., "meta": ... | null, "errors": null}
"""

import math

from flask import jsonify


def success(data, meta=None, status=200):
    """Wrap ``data`` in the success envelope. Returns ``(response, status)``."""
    return jsonify({"data": data, "meta": meta, "errors": None}), status


def paginated(items, page, per_page, total):
    """Success envelope with page metadata."""
    meta = {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": math.ceil(total / per_page) if per_page else 0,
    }
    return success(items, meta=meta)
