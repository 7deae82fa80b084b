"""
Authenticated usage page retrieval.

Drives the entry page -> hidden token -> data POST sequence. The hand-off
to the second host and the mfiv/mfym token pair are fixed by the portal.
"""

import logging
from typing import Optional

import httpx

from ..config.loader import PortalSettings
from ..log import get_logger
from ..storage.models import SessionContext
from .errors import NetworkError, TokenExtractionError
from .http import send
from .parser import find_hidden_field

TOKEN_A_FIELD = "mfiv"
TOKEN_B_FIELD = "mfym"


class PortalDataClient:
    """Fetches the raw usage page HTML for an authenticated session."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: PortalSettings,
        logger: Optional[logging.Logger] = None
    ):
        self.client = client
        self.settings = settings
        self.logger = logger or get_logger(__name__)

    async def fetch_tokens(self, session: SessionContext) -> SessionContext:
        """Read the hidden tokens from the authenticated entry page.

        Raises:
            TokenExtractionError: If either token is absent
            NetworkError: On transport failure or non-2xx status
        """
        response = await send(
            self.client,
            "GET",
            self.settings.data_entry_url,
            self.logger,
            headers={"Cookie": session.session_cookie},
        )
        token_a = find_hidden_field(response.text, TOKEN_A_FIELD)
        token_b = find_hidden_field(response.text, TOKEN_B_FIELD)

        missing = [
            name for name, value in ((TOKEN_A_FIELD, token_a), (TOKEN_B_FIELD, token_b))
            if not value
        ]
        if missing:
            raise TokenExtractionError(missing)
        return session.with_tokens(token_a, token_b)

    async def fetch_usage_html(self, session: SessionContext) -> str:
        """Return the HTML page that carries the usage tables.

        Args:
            session: Context from SessionAuthenticator

        Returns:
            Raw HTML of the final usage page

        Raises:
            TokenExtractionError: If the entry page lacks mfiv or mfym
            NetworkError: On transport failure, timeout, non-2xx or empty body
        """
        self.logger.info("Fetching usage page")
        session = await self.fetch_tokens(session)

        response = await send(
            self.client,
            "POST",
            self.settings.data_url,
            self.logger,
            headers={"Cookie": session.session_cookie},
            data={
                TOKEN_A_FIELD: session.token_a,
                TOKEN_B_FIELD: session.token_b,
            },
        )
        if not response.text.strip():
            raise NetworkError(f"POST {self.settings.data_url} returned an empty body",
                               status_code=response.status_code)
        return response.text
