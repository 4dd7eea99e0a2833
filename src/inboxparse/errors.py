from typing import Optional


class InboxParseError(Exception):
    """Base class for every error raised by inboxparse."""


class ConfigError(InboxParseError):
    """The OAuth client credential file is missing or unusable."""


class AuthError(InboxParseError):
    """The authorization code exchange was rejected."""


class TokenNotFound(InboxParseError):
    """No usable token is cached on disk."""


class RemoteError(InboxParseError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFound(RemoteError):
    pass


class DecodeError(InboxParseError):
    """A message part body could not be decoded."""


class MissingPayloadError(InboxParseError):
    pass
