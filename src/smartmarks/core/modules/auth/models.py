from pydantic import BaseModel, Field

from smartmarks.core.modules.session.models import SessionTokens


class CallbackParams(BaseModel):
    """Query parameters an identity provider may send back to /auth/callback."""

    code: str | None = Field(None, description="OAuth authorization code (PKCE flow)")
    token_hash: str | None = Field(None, description="Hashed one-time token from an email link")
    type: str | None = Field(None, description="OTP type, e.g. magiclink, signup, recovery")
    error_code: str | None = Field(None, description="Error code reported by the provider")
    error_description: str | None = Field(None, description="Error message reported by the provider")
    next: str | None = Field(None, description="Local path to land on after sign-in")


class CallbackOutcome(BaseModel):
    """Where to redirect after a callback, plus the session to store on success."""

    location: str
    session: SessionTokens | None = None


class SignInStart(BaseModel):
    """Provider authorize URL and the PKCE verifier the browser must keep."""

    authorize_url: str
    code_verifier: str
