"""Tests for the session guard middleware and its cookie handling."""

from conftest import FakeAuthService, make_tokens
from smartmarks.web.cookies import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE


def set_cookie_headers(response, name: str) -> list[str]:
    return [header for header in response.headers.get_list("set-cookie") if header.startswith(f"{name}=")]


class TestRouting:
    async def test_anonymous_home_redirects_to_login(self, client):
        response = await client.get("/")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    async def test_anonymous_redirect_keeps_query(self, client):
        """Test that the query string survives the redirect to the login page."""
        response = await client.get("/?tab=recent&q=a%20b")

        assert response.status_code == 307
        assert response.headers["location"] == "/login?tab=recent&q=a%20b"

    async def test_anonymous_api_is_redirected(self, client):
        response = await client.get("/api/v1/bookmarks")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    async def test_anonymous_login_page_is_served(self, client):
        response = await client.get("/login")

        assert response.status_code == 200
        assert "Continue with Google" in response.text

    async def test_health_is_public(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_health_lookalike_is_guarded(self, client):
        response = await client.get("/healthz")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    async def test_signed_in_home_is_served(self, client):
        client.cookies.set(ACCESS_TOKEN_COOKIE, "valid-access")

        response = await client.get("/")

        assert response.status_code == 200
        assert "owner@example.com" in response.text

    async def test_signed_in_login_redirects_home(self, client):
        client.cookies.set(ACCESS_TOKEN_COOKIE, "valid-access")

        response = await client.get("/login?error=auth")

        assert response.status_code == 307
        assert response.headers["location"] == "/?error=auth"


class TestCookies:
    async def test_valid_session_sets_no_cookies(self, client):
        client.cookies.set(ACCESS_TOKEN_COOKIE, "valid-access")

        response = await client.get("/")

        assert response.headers.get_list("set-cookie") == []

    async def test_refreshed_tokens_are_written(self, client, fake_auth: FakeAuthService, user):
        """Test that an expired access token is refreshed and the new pair stored."""
        fake_auth.refreshable["refresh-old"] = make_tokens(user, "new")
        client.cookies.set(ACCESS_TOKEN_COOKIE, "expired")
        client.cookies.set(REFRESH_TOKEN_COOKIE, "refresh-old")

        response = await client.get("/")

        assert response.status_code == 200
        assert set_cookie_headers(response, ACCESS_TOKEN_COOKIE)[0].startswith(f"{ACCESS_TOKEN_COOKIE}=access-new;")
        assert set_cookie_headers(response, REFRESH_TOKEN_COOKIE)[0].startswith(f"{REFRESH_TOKEN_COOKIE}=refresh-new;")
        assert "httponly" in set_cookie_headers(response, ACCESS_TOKEN_COOKIE)[0].lower()

    async def test_refreshed_tokens_survive_redirect(self, client, fake_auth: FakeAuthService, user):
        """Test that cookies refreshed by the guard are carried on its own redirect."""
        fake_auth.refreshable["refresh-old"] = make_tokens(user, "new")
        client.cookies.set(REFRESH_TOKEN_COOKIE, "refresh-old")

        response = await client.get("/login")

        assert response.status_code == 307
        assert response.headers["location"] == "/"
        assert len(set_cookie_headers(response, ACCESS_TOKEN_COOKIE)) == 1
        assert response.cookies[ACCESS_TOKEN_COOKIE] == "access-new"

    async def test_rejected_tokens_are_cleared(self, client):
        client.cookies.set(ACCESS_TOKEN_COOKIE, "expired")
        client.cookies.set(REFRESH_TOKEN_COOKIE, "revoked")

        response = await client.get("/")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"
        for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
            (header,) = set_cookie_headers(response, name)
            assert "max-age=0" in header.lower()

    async def test_provider_outage_fails_closed_and_keeps_cookies(self, client, fake_auth: FakeAuthService):
        """Test that an unreachable provider denies access without signing the browser out."""
        fake_auth.unavailable = True
        client.cookies.set(ACCESS_TOKEN_COOKIE, "valid-access")

        response = await client.get("/")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"
        assert response.headers.get_list("set-cookie") == []
