"""Flat-file cache for the OAuth token.

The file stores the user's access and refresh tokens and is created
automatically when the authorization flow completes for the first time.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Sequence, Union

from google.oauth2.credentials import Credentials

from inboxparse.errors import TokenNotFound
from inboxparse.models import Token

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load(path: PathLike, scopes: Optional[Sequence[str]] = None) -> Token:
    try:
        with open(path, "r", encoding="utf-8") as f:
            info = json.load(f)
    except OSError as e:
        raise TokenNotFound(f"No token file at {path}: {e}") from e
    except ValueError as e:
        raise TokenNotFound(f"Malformed token file {path}: {e}") from e

    if not isinstance(info, dict):
        raise TokenNotFound(f"Malformed token file {path}: expected a JSON object")
    try:
        creds = Credentials.from_authorized_user_info(info, scopes)  # type: ignore
    except (ValueError, TypeError, AttributeError) as e:
        raise TokenNotFound(f"Malformed token file {path}: {e}") from e
    log.debug("Loaded token from %s", path)
    return creds


def save(path: PathLike, token: Token) -> None:
    """Overwrite ``path`` with ``token``, readable by the owning user only."""
    path = Path(path)
    log.info("Saving credential file to: %s", path)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        # O_CREAT leaves an existing file's mode alone
        os.chmod(path, 0o600)
        f.write(token.to_json())
