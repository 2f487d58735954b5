"""
HTML pages served by the pairing endpoints.

- auth_form_page(): the PIN entry form served by GET /auth
- auth_success_page(): the page shown after a successful PIN exchange,
  holding the bearer token and a ready-to-paste MCP client configuration
"""

from __future__ import annotations

import html
import json

from mcp_oblique.dispatcher import SERVER_NAME

_STYLE = """
body { font-family: system-ui, sans-serif; max-width: 480px; margin: 48px auto; padding: 0 16px; }
input { font-size: 1.5em; letter-spacing: 0.3em; width: 8em; padding: 8px; }
button { padding: 8px 16px; margin-top: 12px; cursor: pointer; }
pre { background: #f4f4f4; padding: 12px; overflow-x: auto; }
code { word-break: break-all; }
"""

_FORM_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Oblique Strategies - Connect</title>
<style>{style}</style>
</head>
<body>
<h1>Connect to Oblique Strategies</h1>
<p>Enter the 6-digit PIN shown in the app.</p>
<form method="POST" action="/auth">
<label for="pin">PIN</label><br>
<input type="text" id="pin" name="pin" pattern="[0-9]{{6}}" maxlength="6" inputmode="numeric" autocomplete="one-time-code" required><br>
<button type="submit">Connect</button>
</form>
</body>
</html>
"""

_SUCCESS_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Oblique Strategies - Connected</title>
<style>{style}</style>
</head>
<body>
<h1>Device connected</h1>
<p>Your access token:</p>
<p><code id="token">{token}</code></p>
<button type="button" onclick="copyText('token')">Copy token</button>
<h2>MCP client configuration</h2>
<pre id="config">{config}</pre>
<button type="button" onclick="copyText('config')">Copy configuration</button>
<script>
function copyText(id) {{
  navigator.clipboard.writeText(document.getElementById(id).textContent);
}}
</script>
</body>
</html>
"""


def mcp_client_config(token: str, mcp_url: str) -> dict:
    """MCP client configuration for a paired device."""
    return {
        "mcpServers": {
            SERVER_NAME: {
                "url": mcp_url,
                "headers": {"Authorization": f"Bearer {token}"},
            }
        }
    }


def auth_form_page() -> str:
    return _FORM_TEMPLATE.format(style=_STYLE)


def auth_success_page(token: str, mcp_url: str) -> str:
    """
    Render the post-exchange page.

    Args:
        token: The freshly minted bearer token.
        mcp_url: Absolute URL of the /mcp endpoint.

    Returns:
        HTML document text.
    """
    config = json.dumps(mcp_client_config(token, mcp_url), indent=2)
    return _SUCCESS_TEMPLATE.format(
        style=_STYLE,
        token=html.escape(token),
        config=html.escape(config, quote=False),
    )
