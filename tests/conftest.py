"""
Shared fixtures: a scripted fake portal served through httpx.MockTransport.
"""

from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import pytest
from cryptography.fernet import Fernet

from ymobile_usage.config.loader import AppSettings, PortalSettings

ENTRY_HTML = '<form><input type="hidden" name="ticket" value="TICKET123"></form>'
DATA_ENTRY_HTML = (
    '<form action="https://re61.my.ymobile.jp/resfe/top/" method="post">'
    '<input type="hidden" name="mfiv" value="IV-abc">'
    '<input type="hidden" name="mfym" value="YM-xyz">'
    '</form>'
)


def usage_html(carryover="2.0", basic="10.0", paid="1.5", used="5.0") -> str:
    """Usage page with the four figures at their expected table/row positions."""
    return f"""
    <html><body>
    <table class="carry"><tr><td>{carryover}GB</td><td>ignored</td></tr></table>
    <table class="basic">
      <tr><td>Basic plan</td></tr>
      <tr><td>
        {basic} GB
      </td></tr>
    </table>
    <table><tr><td><b>{paid}</b>GB</td></tr></table>
    <table><tr><td><span class="num">{used}</span>GB</td></tr></table>
    </body></html>
    """


class FakePortal:
    """Scripted responses for the four portal steps, recording every request."""

    def __init__(self, settings: PortalSettings):
        self.settings = settings
        self.requests: List[httpx.Request] = []
        self.entry_html = ENTRY_HTML
        self.login_status = 302
        self.login_cookies = ["JSESSIONID=sess-1; Path=/; HttpOnly", "AUTH=tok-2; Path=/"]
        self.login_body = ""
        self.data_entry_html = DATA_ENTRY_HTML
        self.data_status = 200
        self.data_html = usage_html()
        self.raise_on: Optional[str] = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def urls(self) -> List[str]:
        return [str(request.url) for request in self.requests]

    def count(self, url: str) -> int:
        return self.urls().count(url)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if self.raise_on == url:
            raise httpx.ConnectTimeout("timed out", request=request)

        if url == self.settings.login_entry_url:
            return httpx.Response(200, text=self.entry_html)
        if url == self.settings.login_url:
            headers = [("set-cookie", cookie) for cookie in self.login_cookies]
            if self.login_status == 302:
                headers.append(("location", "https://my.ymobile.jp/"))
            return httpx.Response(self.login_status, headers=headers, text=self.login_body)
        if url == self.settings.data_entry_url:
            return httpx.Response(200, text=self.data_entry_html)
        if url == self.settings.data_url:
            return httpx.Response(self.data_status, text=self.data_html)
        return httpx.Response(404, text="not found")


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 10, 17, 9, 30, 0)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings()


@pytest.fixture
def portal(settings) -> FakePortal:
    return FakePortal(settings.portal)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def fernet_key() -> bytes:
    return Fernet.generate_key()


def form_fields(request: httpx.Request) -> Dict[str, str]:
    """Decode an url-encoded request body."""
    return dict(parse_qsl(request.content.decode("utf-8")))
