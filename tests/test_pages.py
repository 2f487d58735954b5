"""
Tests for the pairing HTML pages.
"""

from __future__ import annotations

import html
import json
import re

from mcp_oblique.pages import auth_form_page, auth_success_page, mcp_client_config


class TestMcpClientConfig:
    """Tests for the client configuration snippet."""

    def test_shape(self) -> None:
        assert mcp_client_config("tok", "https://oblique.example.com/mcp") == {
            "mcpServers": {
                "oblique-strategies": {
                    "url": "https://oblique.example.com/mcp",
                    "headers": {"Authorization": "Bearer tok"},
                }
            }
        }


class TestAuthFormPage:
    """Tests for the PIN entry form."""

    def test_posts_pin_to_auth(self) -> None:
        page = auth_form_page()

        assert '<form method="POST" action="/auth">' in page
        assert 'name="pin"' in page
        assert 'pattern="[0-9]{6}"' in page
        assert 'maxlength="6"' in page
        assert 'type="submit"' in page


class TestAuthSuccessPage:
    """Tests for the post-exchange page."""

    def test_shows_token_and_config(self) -> None:
        page = auth_success_page("abc123", "http://localhost:8787/mcp")

        assert '<code id="token">abc123</code>' in page
        assert "copyText('token')" in page
        assert "copyText('config')" in page

        config_text = re.search(r'<pre id="config">(.*?)</pre>', page, re.S).group(1)
        config = json.loads(html.unescape(config_text))
        server = config["mcpServers"]["oblique-strategies"]
        assert server["url"] == "http://localhost:8787/mcp"
        assert server["headers"]["Authorization"] == "Bearer abc123"

    def test_escapes_markup(self) -> None:
        page = auth_success_page("<b>", "http://x/mcp?a=1&b=2")

        assert "<b>" not in page.split("<body>", 1)[1]
        assert "&amp;b=2" in page
