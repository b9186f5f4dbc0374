"""
Pydantic models for the send endpoint.
"""

from pydantic import BaseModel, Field, model_validator


class SendMessageRequest(BaseModel):
    to: list[str] = Field(..., min_length=1, description="Recipients, `Name <address>` or bare addresses")
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)
    subject: str = ""
    body_text: str = ""
    body_html: str = ""

    @model_validator(mode="after")
    def check_body(self) -> "SendMessageRequest":
        if not self.body_text and not self.body_html:
            raise ValueError("body_text or body_html is required")
        return self


class SendMessageData(BaseModel):
    # None for providers that don't report an id for sent mail (Outlook).
    provider_message_id: str | None = None


class SendMessageResponse(BaseModel):
    request_id: str
    data: SendMessageData
