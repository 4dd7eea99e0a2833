from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from google.oauth2.credentials import Credentials
from pydantic import BaseModel, ConfigDict, Field

# OAuth access/refresh credential pair, persisted by inboxparse.tokens
Token = Credentials


class Header(BaseModel):
    name: str
    value: str = ""


class InlineBody(BaseModel):
    kind: Literal["inline"] = "inline"
    data: str = ""
    size: int = 0


class AttachmentRef(BaseModel):
    kind: Literal["attachment"] = "attachment"
    attachment_id: str
    size: int = 0


class MultipartChildren(BaseModel):
    kind: Literal["multipart"] = "multipart"
    parts: List["MessagePart"] = Field(default_factory=list)


PartContent = Annotated[
    Union[InlineBody, AttachmentRef, MultipartChildren],
    Field(discriminator="kind"),
]


class MessagePart(BaseModel):
    """One node of a message body tree.

    ``content`` says what the node holds: inline data, a reference to an
    attachment fetched separately, or an ordered list of child parts.
    """

    part_id: str = ""
    mime_type: str = ""
    filename: str = ""
    headers: List[Header] = Field(default_factory=list)
    content: PartContent = Field(default_factory=InlineBody)

    @classmethod
    def from_api(cls, part: Dict[str, Any]) -> "MessagePart":
        """Convert a Gmail API ``MessagePart`` dict."""
        mime_type = part.get("mimeType", "") or ""
        body = part.get("body") or {}

        # Only multipart containers expose children; parts of anything else
        # (message/rfc822 included) are not searched.
        content: Union[InlineBody, AttachmentRef, MultipartChildren]
        if mime_type.startswith("multipart"):
            content = MultipartChildren(
                parts=[cls.from_api(p) for p in part.get("parts") or []]
            )
        elif body.get("attachmentId"):
            content = AttachmentRef(
                attachment_id=body["attachmentId"], size=body.get("size", 0)
            )
        else:
            content = InlineBody(data=body.get("data", "") or "", size=body.get("size", 0))

        return cls(
            part_id=part.get("partId", "") or "",
            mime_type=mime_type,
            filename=part.get("filename", "") or "",
            headers=[
                Header(name=h.get("name", ""), value=h.get("value", "") or "")
                for h in part.get("headers") or []
            ],
            content=content,
        )


MultipartChildren.model_rebuild()
MessagePart.model_rebuild()


class MessageEnvelope(BaseModel):
    id: str
    thread_id: str = ""
    snippet: str = ""
    label_ids: List[str] = Field(default_factory=list)
    payload: Optional[MessagePart] = None

    @classmethod
    def from_api(cls, msg: Dict[str, Any]) -> "MessageEnvelope":
        payload = msg.get("payload")
        return cls(
            id=msg.get("id", ""),
            thread_id=msg.get("threadId", "") or "",
            snippet=msg.get("snippet", "") or "",
            label_ids=list(msg.get("labelIds") or []),
            payload=MessagePart.from_api(payload) if payload else None,
        )


class Message(BaseModel):
    id: str = ""
    sender: str = Field(default="", alias="From")
    recipient: str = Field(default="", alias="To")
    subject: str = Field(default="", alias="Subject")
    body_plain: str = Field(default="", alias="BodyPlain")
    body_html: str = Field(default="", alias="BodyHtml")

    model_config = ConfigDict(populate_by_name=True, frozen=True)
