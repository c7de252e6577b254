# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, g


ACTING_USER_HEADER = "X-User-Id"


def with_acting_user(f):
    """
    Establish the acting user for the request.

    Sets g.acting_user_id from the X-User-Id header (None when absent or
    blank). Authentication happens upstream; the id is passed through to
    services as an opaque attribute, and services decide when it is required.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTING_USER_HEADER, "")
        g.acting_user_id = raw.strip() or None
        return f(*args, **kwargs)

    return decorated_function
