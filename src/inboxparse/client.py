import logging
from typing import Any, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error
from rich.console import Console

from inboxparse.config import DEFAULT_USER
from inboxparse.errors import DecodeError, NotFound, RemoteError
from inboxparse.models import MessageEnvelope, Token

console = Console()
log = logging.getLogger(__name__)

# Anything the API client can raise while a request is in flight
REMOTE_ERRORS = (HttpError, GoogleAuthError, HttpLib2Error, OSError)


def _remote_error(e: Exception, action: str) -> RemoteError:
    if isinstance(e, HttpError):
        status = e.resp.status
        if status == 404:
            return NotFound(f"{action}: not found", status=status)
        if status == 403:
            console.print(
                "[red]Permission denied. You may need to delete your token.json to re-authorize with new scopes.[/red]"
            )
        return RemoteError(f"{action}: {e}", status=status)
    return RemoteError(f"{action}: {e}")


class GmailClient:
    """Thin adapter over the Gmail v1 ``users.messages`` resource.

    Every call is a single synchronous request; failures are raised as
    ``RemoteError`` with no retry.
    """

    def __init__(
        self,
        creds: Optional[Token] = None,
        user_id: str = DEFAULT_USER,
        service: Any = None,
    ):
        if service is None:
            service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        self.service = service
        self.user_id = user_id

    def list_messages(self, query: str, max_results: Optional[int] = None) -> List[str]:
        """Return the message ids on the first result page for ``query``."""
        kwargs: Dict[str, Any] = {"userId": self.user_id, "q": query}
        if max_results is not None:
            if max_results < 1:
                raise ValueError(f"max_results must be at least 1, got {max_results}")
            kwargs["maxResults"] = max_results
        try:
            results = self.service.users().messages().list(**kwargs).execute()
        except REMOTE_ERRORS as e:
            raise _remote_error(e, f"Unable to list messages for {query!r}") from e

        ids = [m["id"] for m in results.get("messages", [])]
        log.debug("Query %r matched %d message(s) on the first page", query, len(ids))
        return ids

    def get_message(
        self, message_id: str, format: str = "full", user_id: Optional[str] = None
    ) -> MessageEnvelope:
        try:
            msg = (
                self.service.users()
                .messages()
                .get(userId=user_id or self.user_id, id=message_id, format=format)
                .execute()
            )
        except REMOTE_ERRORS as e:
            raise _remote_error(e, f"Unable to retrieve message {message_id}") from e
        return MessageEnvelope.from_api(msg)

    def get_attachment(
        self, message_id: str, attachment_id: str, user_id: Optional[str] = None
    ) -> str:
        """Return the base64url payload of an out-of-line message part."""
        try:
            body = (
                self.service.users()
                .messages()
                .attachments()
                .get(
                    userId=user_id or self.user_id,
                    messageId=message_id,
                    id=attachment_id,
                )
                .execute()
            )
        except REMOTE_ERRORS as e:
            raise _remote_error(
                e, f"Unable to retrieve attachment {attachment_id} of {message_id}"
            ) from e

        data = body.get("data")
        if data is None:
            raise DecodeError(
                f"Attachment {attachment_id} of {message_id} has no data"
            )
        return str(data)
