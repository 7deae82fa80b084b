"""
Portal login.

Performs the ticket exchange and credential POST that yield the session
cookie required by every authenticated request.
"""

import logging
from typing import List, Optional

import httpx

from ..config.loader import PortalSettings
from ..log import get_logger, mask_secret
from ..storage.models import Credentials, SessionContext
from .errors import AuthError, NetworkError, ParseError
from .http import send
from .parser import find_hidden_field


def session_cookie_from(response: httpx.Response) -> str:
    """Join the name=value part of every Set-Cookie header into a Cookie value.

    Cookies set to an empty value (deletions) are skipped.
    """
    pairs: List[str] = []
    for header in response.headers.get_list("set-cookie"):
        pair = header.split(";", 1)[0].strip()
        name, sep, value = pair.partition("=")
        if sep and name.strip() and value.strip():
            pairs.append(f"{name.strip()}={value.strip()}")
    return "; ".join(pairs)


class SessionAuthenticator:
    """Logs in to the portal and returns a SessionContext.

    No retries: any failure is terminal for the current fetch attempt.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: PortalSettings,
        logger: Optional[logging.Logger] = None
    ):
        self.client = client
        self.settings = settings
        self.logger = logger or get_logger(__name__)

    async def authenticate(self, credentials: Credentials) -> SessionContext:
        """Exchange credentials for a session cookie.

        Args:
            credentials: Portal identifier and password

        Returns:
            SessionContext carrying the ticket and session cookie

        Raises:
            ParseError: If the login-entry page has no ticket field
            AuthError: If the login is rejected or no session cookie is set
            NetworkError: On transport failure, timeout or server error
        """
        self.logger.info(f"Logging in as {mask_secret(credentials.identifier)}")

        entry = await send(self.client, "GET", self.settings.login_entry_url, self.logger)
        ticket = find_hidden_field(entry.text, "ticket")
        if not ticket:
            raise ParseError("ticket", "login entry page has no ticket field")

        response = await send(
            self.client,
            "POST",
            self.settings.login_url,
            self.logger,
            check_status=False,
            data={
                "telnum": credentials.identifier,
                "password": credentials.secret,
                "ticket": ticket,
            },
            follow_redirects=False,
        )

        if response.status_code >= 500:
            raise NetworkError(
                f"POST {self.settings.login_url} returned HTTP {response.status_code}",
                status_code=response.status_code
            )
        if response.status_code >= 400:
            raise AuthError("login-rejected", f"Login rejected with HTTP {response.status_code}")
        if response.status_code == 200 and find_hidden_field(response.text, "ticket"):
            # The login form came back instead of a redirect.
            raise AuthError("login-rejected", "Login rejected: check the phone number and password")

        cookie = session_cookie_from(response)
        if not cookie:
            raise AuthError("no-session-cookie", "Login response did not set a session cookie")

        self.logger.info("Login succeeded")
        return SessionContext(ticket=ticket, session_cookie=cookie)
