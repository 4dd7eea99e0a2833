import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Union

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google_auth_oauthlib.flow import Flow, InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from rich.console import Console
from rich.prompt import Prompt

from inboxparse import tokens
from inboxparse.config import SCOPES
from inboxparse.errors import AuthError, ConfigError, RemoteError, TokenNotFound
from inboxparse.models import Token

console = Console()
log = logging.getLogger(__name__)

STATE_TOKEN = "state-token"
FALLBACK_REDIRECT_URI = "http://localhost"

# Takes the authorization URL, returns the code the user pasted back.
CodeProvider = Callable[[str], str]


def prompt_for_code(auth_url: str) -> str:
    console.print(
        "Go to the following link in your browser then type the authorization code:"
    )
    console.print(auth_url, soft_wrap=True, markup=False)
    return Prompt.ask("Authorization code", console=console)


def load_client_config(path: Union[str, Path]) -> Dict[str, Any]:
    """Read an OAuth client secrets file (installed or web app format)."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Credentials file not found at {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read client secret file {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"Unable to parse client secret file {path}: {e}") from e

    if not isinstance(config, dict) or not (
        "installed" in config or "web" in config
    ):
        raise ConfigError(
            f"Client secrets in {path} must be for a web or installed app."
        )
    return config


def create_flow(client_config: Dict[str, Any], scopes: Sequence[str] = SCOPES) -> Flow:
    try:
        flow = InstalledAppFlow.from_client_config(client_config, scopes=list(scopes))
    except ValueError as e:
        raise ConfigError(f"Unable to parse client secret file to config: {e}") from e

    client = client_config.get("installed") or client_config.get("web") or {}
    redirect_uris = client.get("redirect_uris") or [FALLBACK_REDIRECT_URI]
    flow.redirect_uri = redirect_uris[0]
    return flow


def build_auth_url(flow: Flow) -> str:
    auth_url, _ = flow.authorization_url(access_type="offline", state=STATE_TOKEN)
    return str(auth_url)


def obtain_token(flow: Flow, auth_code: str) -> Token:
    """Exchange an authorization code for a token."""
    auth_code = (auth_code or "").strip()
    if not auth_code:
        raise AuthError("Unable to read authorization code: nothing was entered")
    try:
        flow.fetch_token(code=auth_code)
    except OAuth2Error as e:
        reason = e.description or e.error
        raise AuthError(f"Unable to retrieve token from web: {reason}") from e
    except requests.RequestException as e:
        raise AuthError(f"Unable to retrieve token from web: {e}") from e
    return flow.credentials


def authorize(
    client_config: Dict[str, Any],
    scopes: Sequence[str] = SCOPES,
    code_provider: CodeProvider = prompt_for_code,
) -> Token:
    flow = create_flow(client_config, scopes)
    auth_url = build_auth_url(flow)
    log.debug("Requesting authorization via %s", auth_url)
    return obtain_token(flow, code_provider(auth_url))


def get_credentials(
    token_path: Union[str, Path],
    credentials_path: Union[str, Path],
    scopes: Sequence[str] = SCOPES,
    code_provider: CodeProvider = prompt_for_code,
) -> Token:
    """Return usable credentials, refreshing or re-authorizing as needed.

    A cached token is used as-is when valid and refreshed when it has expired
    and carries a refresh token. Otherwise (no file, malformed file, or a
    refresh the server rejects) the interactive authorization flow runs and
    the new token is written back to ``token_path``.
    """
    creds: Optional[Token] = None
    try:
        creds = tokens.load(token_path, scopes)
    except TokenNotFound as e:
        log.info("%s", e)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())  # type: ignore
            tokens.save(token_path, creds)
            return creds
        except RefreshError as e:
            log.warning("Token refresh rejected, re-authorizing: %s", e)
        except TransportError as e:
            raise RemoteError(f"Unable to refresh token: {e}") from e

    creds = authorize(load_client_config(credentials_path), scopes, code_provider)
    tokens.save(token_path, creds)
    return creds
