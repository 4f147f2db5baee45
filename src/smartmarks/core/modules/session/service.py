import structlog

from smartmarks.core.core import Service
from smartmarks.core.modules.session.models import SessionCheck, SessionCredentials
from smartmarks.errors import AuthServiceError

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Verifies browser sessions against the identity provider on every request.

    Nothing is cached: each call asks the provider, so a revoked session stops
    working on the next request.
    """

    async def verify_session(self, credentials: SessionCredentials) -> SessionCheck:
        """Resolve the user behind the presented tokens, refreshing them if needed.

        Provider outages fail closed (no user) but keep the cookies in place.
        """
        if credentials.is_empty:
            return SessionCheck()

        auth = self.core.services.auth
        try:
            if credentials.access_token:
                user = await auth.get_user(credentials.access_token)
                if user is not None:
                    return SessionCheck(user=user)

            if credentials.refresh_token:
                tokens = await auth.refresh_session(credentials.refresh_token)
                if tokens is not None:
                    logger.debug("session_refreshed", user_id=tokens.user.id)
                    return SessionCheck(user=tokens.user, refreshed=tokens)
        except AuthServiceError as e:
            logger.warning("session_verification_unavailable", error=str(e))
            return SessionCheck()

        logger.debug("session_rejected")
        return SessionCheck(clear=True)
