from typing import Annotated, cast

from fastapi import Depends, Request

from smartmarks.app import App
from smartmarks.core.modules.session.models import AuthUser
from smartmarks.errors import AuthenticationError


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_optional_user(request: Request) -> AuthUser | None:
    """User verified by the session guard for this request, if any."""
    return cast(AuthUser | None, getattr(request.state, "user", None))


async def get_current_user(user: Annotated[AuthUser | None, Depends(get_optional_user)]) -> AuthUser:
    if user is None:
        raise AuthenticationError
    return user


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
OptionalUserDep = Annotated[AuthUser | None, Depends(get_optional_user)]
CurrentUserDep = Annotated[AuthUser, Depends(get_current_user)]
