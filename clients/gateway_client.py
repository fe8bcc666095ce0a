"""
Message gateway client for customer email and SMS delivery.

Both channels go through one HTTP gateway; every request body is signed with
HMAC-SHA256 so the gateway can reject forged sends.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Raised when a gateway request fails."""


class GatewayClient:
    """Send customer emails and text messages via the HTTP gateway."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout = timeout

    def sign(self, payload_json: str) -> str:
        """Hex HMAC-SHA256 of a serialized payload."""
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Raises:
            GatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self.sign(payload_json),
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Gateway connection failed: {e}")
            raise GatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except (json.JSONDecodeError, requests.exceptions.JSONDecodeError):
            logger.error(f"Gateway returned invalid JSON: {response.text}")
            raise GatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Gateway error: {error_msg}")
            raise GatewayError(f"Gateway error: {error_msg}")

    def send_email(self, to: str, subject: str, body: str) -> None:
        """
        Send a plain text email.

        Raises:
            ValueError: If the recipient is empty
            GatewayError: On gateway failure
        """
        if not to:
            raise ValueError("Email recipient is required")

        self._sign_and_send({
            "type": "email",
            "email": to,
            "subject": subject,
            "body": body,
        })
        logger.info(f"Email sent to {to}: {subject}")

    def send_sms(self, to: str, body: str) -> None:
        """
        Send a text message.

        Raises:
            ValueError: If the phone number is empty
            GatewayError: On gateway failure
        """
        if not to:
            raise ValueError("SMS recipient is required")

        self._sign_and_send({
            "type": "sms",
            "phone": to,
            "body": body,
        })
        logger.info(f"SMS sent to {to}")
