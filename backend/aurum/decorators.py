# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, request

from .services import session_service
from .services.audit_service import Actor


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "0.0.0.0"


def with_identity(f):
    """
    Resolve the optional bearer token into g.actor.

    Never rejects a request: a missing, unknown or expired token yields
    the SYSTEM/GUEST actor. Resolution happens once, before the route
    opens any transaction scope.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = None
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user = session_service.validate_session(auth_header.split(" ", 1)[1].strip())

        if user is not None:
            g.actor = Actor(user_id=user.id, username=user.username, ip_address=_client_ip())
        else:
            g.actor = Actor(ip_address=_client_ip())

        return f(*args, **kwargs)

    return decorated_function
