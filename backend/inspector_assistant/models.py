from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# Inbound Wassenger webhook payload (only the fields the pipeline reads)
class WebhookMedia(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: Optional[str] = None
    filename: Optional[str] = None
    mimetype: Optional[str] = None


class WebhookMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    phone: Optional[str] = None
    fromNumber: Optional[str] = None
    type: Optional[str] = None
    body: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    media: Optional[WebhookMedia] = None

    @property
    def sender(self) -> Optional[str]:
        return self.phone or self.fromNumber

    @property
    def text_content(self) -> str:
        return self.body or self.text or ""

    @property
    def media_url(self) -> Optional[str]:
        if self.url:
            return self.url
        return self.media.url if self.media else None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: Optional[str] = None
    data: WebhookMessage = Field(default_factory=WebhookMessage)


# Responses
class WebhookResponse(BaseModel):
    status: str
    message: str


class JobRunResponse(BaseModel):
    status: str
    message: str
    sent: int = 0
    failed: int = 0
