"""Customer notification models: templates, preferences and history."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from utils.timezone import now_utc


class TemplateType(str, Enum):
    """Kind of message a template renders."""

    STATUS_UPDATE = "status_update"
    PAYMENT_REMINDER = "payment_reminder"
    PAYMENT_CONFIRMATION = "payment_confirmation"
    COMPLETION_NOTICE = "completion_notice"
    WELCOME = "welcome"


class Channel(str, Enum):
    """Delivery channel of a single notification."""

    EMAIL = "email"
    SMS = "sms"


class TemplateChannel(str, Enum):
    """Channels a template may be delivered on."""

    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"


class NotificationStatus(str, Enum):
    """Delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"  # Gateway error - attempted but failed


class NotificationTemplate(BaseModel):
    """Message template with {{variable}} placeholders."""

    id: str
    name: str = Field(..., max_length=100)
    type: TemplateType
    channel: TemplateChannel = TemplateChannel.BOTH
    subject: str | None = Field(None, max_length=255)
    template: str = Field(..., max_length=5000)
    variables: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    def allows(self, channel: Channel) -> bool:
        """Whether this template may be sent on the given channel."""
        return self.channel == TemplateChannel.BOTH or self.channel.value == channel.value


class NotificationPreferences(BaseModel):
    """What a customer agreed to receive. Everything but marketing is on by default."""

    user_id: str
    email_notifications: bool = True
    sms_notifications: bool = True
    status_updates: bool = True
    payment_reminders: bool = True
    payment_confirmations: bool = True
    completion_notices: bool = True
    marketing_emails: bool = False
    updated_at: datetime = Field(default_factory=now_utc)

    def allows_type(self, template_type: TemplateType) -> bool:
        """Whether the customer opted in to this kind of message."""
        if template_type == TemplateType.STATUS_UPDATE:
            return self.status_updates
        if template_type == TemplateType.PAYMENT_REMINDER:
            return self.payment_reminders
        if template_type == TemplateType.PAYMENT_CONFIRMATION:
            return self.payment_confirmations
        if template_type == TemplateType.COMPLETION_NOTICE:
            return self.completion_notices
        return True  # welcome messages are always allowed

    def allows_channel(self, channel: Channel) -> bool:
        if channel == Channel.EMAIL:
            return self.email_notifications
        return self.sms_notifications


class Notification(BaseModel):
    """One rendered message on one channel, as stored in history."""

    id: UUID
    user_id: str
    channel: Channel
    template_type: TemplateType
    recipient: str
    subject: str | None = None
    message: str
    status: NotificationStatus
    sent_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
