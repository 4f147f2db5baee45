"""Routing policy applied to every request by the session guard."""

LOGIN_PATH = "/login"
HOME_PATH = "/"

# Paths reachable without a session. /auth covers the callback and sign-in endpoints.
PUBLIC_PREFIXES = (LOGIN_PATH, "/auth")
PUBLIC_PATHS = frozenset({"/health"})


def _is_under(path: str, prefix: str) -> bool:
    """Match whole path segments, so /login/help is under /login and /login-help is not."""
    return path == prefix or path.startswith(prefix + "/")


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or any(_is_under(path, prefix) for prefix in PUBLIC_PREFIXES)


def resolve_route(path: str, authenticated: bool) -> str | None:
    """Return the path to redirect to, or None to let the request through."""
    if not authenticated and not is_public_path(path):
        return LOGIN_PATH
    if authenticated and _is_under(path, LOGIN_PATH):
        return HOME_PATH
    return None
