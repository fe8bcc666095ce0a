"""
Notification service for customer messages.

Renders templates with {{variable}} placeholders, honours each customer's
preferences, keeps a history of everything sent and hands delivery to the
email/SMS gateway when one is configured.
"""

import logging
import re
import threading
from uuid import uuid4

from clients.gateway_client import GatewayClient, GatewayError
from core.models import (
    Notification, NotificationTemplate, NotificationPreferences, NotificationStatus,
    TemplateType, TemplateChannel, Channel,
)
from core.persistence import Collection
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

DEFAULT_TEMPLATES = [
    NotificationTemplate(
        id="1",
        name="Status Update",
        type=TemplateType.STATUS_UPDATE,
        channel=TemplateChannel.BOTH,
        subject="Repair Status Update - {{trackingId}}",
        template=(
            "Hi {{customerFirstname}} {{customerSurname}}, your device repair ({{trackingId}}) "
            "status has been updated to: {{status}}. {{additionalInfo}}"
        ),
        variables=["customerFirstname", "customerSurname", "trackingId", "status", "additionalInfo"],
    ),
    NotificationTemplate(
        id="2",
        name="Payment Reminder",
        type=TemplateType.PAYMENT_REMINDER,
        channel=TemplateChannel.BOTH,
        subject="Payment Due - {{trackingId}}",
        template=(
            "Hi {{customerFirstname}} {{customerSurname}}, your repair invoice for {{trackingId}} "
            "is due. Amount: £{{amount}}. Please pay at your earliest convenience."
        ),
        variables=["customerFirstname", "customerSurname", "trackingId", "amount"],
    ),
    NotificationTemplate(
        id="3",
        name="Completion Notice",
        type=TemplateType.COMPLETION_NOTICE,
        channel=TemplateChannel.BOTH,
        subject="Repair Complete - {{trackingId}}",
        template=(
            "Great news {{customerFirstname}} {{customerSurname}}! Your device repair "
            "({{trackingId}}) is complete and ready for pickup. Please visit our store "
            "during business hours."
        ),
        variables=["customerFirstname", "customerSurname", "trackingId"],
    ),
    NotificationTemplate(
        id="4",
        name="Payment Confirmation",
        type=TemplateType.PAYMENT_CONFIRMATION,
        channel=TemplateChannel.EMAIL,
        subject="Payment Received - {{trackingId}}",
        template=(
            "Hi {{customerFirstname}} {{customerSurname}}, we received your payment of "
            "£{{amount}} for repair {{trackingId}}. Balance remaining: £{{balanceDue}}."
        ),
        variables=["customerFirstname", "customerSurname", "trackingId", "amount", "balanceDue"],
    ),
    NotificationTemplate(
        id="5",
        name="Welcome",
        type=TemplateType.WELCOME,
        channel=TemplateChannel.EMAIL,
        subject="Welcome to RepairHub",
        template=(
            "Hi {{customerFirstname}} {{customerSurname}}, thanks for choosing us for your repair. "
            "We'll keep you posted by email and text as your device moves through the workshop."
        ),
        variables=["customerFirstname", "customerSurname"],
    ),
]


def render(text: str, variables: dict[str, str]) -> str:
    """Substitute {{name}} placeholders. Unknown placeholders are left as they are."""
    return _PLACEHOLDER.sub(lambda m: str(variables.get(m.group(1), m.group(0))), text)


class NotificationService:
    """Templates, preferences, history and delivery of customer notifications."""

    def __init__(
        self,
        notifications: Collection,
        templates: Collection,
        preferences: Collection,
        gateway: GatewayClient | None = None,
    ):
        self.notifications = notifications
        self.templates = templates
        self.preferences = preferences
        self.gateway = gateway
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def initialize_templates(self) -> bool:
        """
        Store the default template for every type that has none stored.

        Stored templates, edited or deactivated ones included, are kept.

        Returns:
            True if any defaults were written
        """
        with self._lock:
            stored = [NotificationTemplate.model_validate(r) for r in self.templates.load()]
            stored_types = {t.type for t in stored}
            missing = [t for t in DEFAULT_TEMPLATES if t.type not in stored_types]
            if not missing:
                return False
            self.save_templates([*stored, *missing])
        logger.info(f"Initialized {len(missing)} default notification template(s)")
        return True

    def get_templates(self) -> list[NotificationTemplate]:
        """Stored templates, or the defaults when nothing is stored."""
        records = self.templates.load()
        if not records:
            return list(DEFAULT_TEMPLATES)
        return [NotificationTemplate.model_validate(r) for r in records]

    def save_templates(self, templates: list[NotificationTemplate]) -> None:
        with self._lock:
            self.templates.save([t.model_dump(mode="json") for t in templates])

    def get_active_template(self, template_type: TemplateType) -> NotificationTemplate | None:
        for template in self.get_templates():
            if template.type == template_type and template.is_active:
                return template
        return None

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    def get_preferences(self, user_id: str) -> NotificationPreferences:
        """
        Preferences for a customer.

        Returns:
            Stored preferences, or the defaults (everything but marketing on)
        """
        for record in self.preferences.load():
            if record.get("user_id") == user_id:
                return NotificationPreferences.model_validate(record)
        return NotificationPreferences(user_id=user_id)

    def save_preferences(self, preferences: NotificationPreferences) -> NotificationPreferences:
        """Insert or replace a customer's preferences."""
        saved = preferences.model_copy(update={"updated_at": now_utc()})

        with self._lock:
            records = [r for r in self.preferences.load() if r.get("user_id") != saved.user_id]
            records.append(saved.model_dump(mode="json"))
            self.preferences.save(records)

        return saved

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def get_notifications(self) -> list[Notification]:
        return [Notification.model_validate(r) for r in self.notifications.load()]

    def list_for_user(self, user_id: str) -> list[Notification]:
        """A customer's notifications, newest first."""
        mine = [n for n in self.get_notifications() if n.user_id == user_id]
        return sorted(mine, key=lambda n: n.created_at, reverse=True)

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send(
        self,
        user_id: str,
        template_type: TemplateType,
        variables: dict[str, str],
        channels: list[Channel] | None = None,
    ) -> list[Notification]:
        """
        Render and deliver a notification on every allowed channel.

        Nothing is sent when there is no active template of the type, or the
        customer opted out of the type. Each channel also needs the
        template, the customer's channel preference and a recipient.

        Args:
            user_id: Customer the message is for
            template_type: Kind of message
            variables: Placeholder values; customerEmail / customerPhone
                are used as recipients
            channels: Channels to try (default email and SMS)

        Returns:
            History records written, one per channel attempted
        """
        channels = channels or [Channel.EMAIL, Channel.SMS]

        template = self.get_active_template(template_type)
        if template is None:
            logger.debug(f"No active {template_type.value} template, nothing sent")
            return []

        preferences = self.get_preferences(user_id)
        if not preferences.allows_type(template_type):
            logger.info(f"User {user_id} opted out of {template_type.value} notifications")
            return []

        subject = render(template.subject or "", variables)
        message = render(template.template, variables)

        sent = []
        for channel in channels:
            if not (template.allows(channel) and preferences.allows_channel(channel)):
                continue

            recipient = self._recipient(channel, variables)
            if not recipient:
                logger.debug(f"No {channel.value} recipient for user {user_id}, skipping")
                continue

            status = self._deliver(channel, recipient, subject, message)
            now = now_utc()
            sent.append(Notification(
                id=uuid4(),
                user_id=user_id,
                channel=channel,
                template_type=template_type,
                recipient=recipient,
                subject=subject if channel == Channel.EMAIL else None,
                message=message,
                status=status,
                sent_at=now if status == NotificationStatus.SENT else None,
                created_at=now,
            ))

        if sent:
            with self._lock:
                records = self.notifications.load()
                records.extend(n.model_dump(mode="json") for n in sent)
                self.notifications.save(records)

        return sent

    @staticmethod
    def _recipient(channel: Channel, variables: dict[str, str]) -> str:
        if channel == Channel.EMAIL:
            return variables.get("customerEmail") or variables.get("email") or ""
        return variables.get("customerPhone") or variables.get("phone") or ""

    def _deliver(self, channel: Channel, recipient: str, subject: str, message: str) -> NotificationStatus:
        if self.gateway is None:
            # No gateway configured: history only
            return NotificationStatus.SENT

        try:
            if channel == Channel.EMAIL:
                self.gateway.send_email(recipient, subject, message)
            else:
                self.gateway.send_sms(recipient, message)
        except GatewayError as e:
            logger.error(f"Failed to deliver {channel.value} to {recipient}: {e}")
            return NotificationStatus.FAILED

        return NotificationStatus.SENT
