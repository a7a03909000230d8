from pydantic import BaseModel
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class WebhookAck(BaseModel):
    """Body of every webhook answer; Telegram only looks at the status code."""
    status: str = "ok"


class WebhookStatus(WebhookAck):
    message: str = "Webhook endpoint is active"
    secret_required: bool = False
