"""
Message gateway client for customer notifications (SMS / WhatsApp).

Posts to an HTTP gateway, authenticated with an API key and an HMAC-SHA256
signature over the exact JSON body.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

CHANNELS = ("sms", "whatsapp")


class MessageGatewayError(Exception):
    """Raised when the message gateway request fails."""


class MessageGatewayClient:
    """Send customer messages via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the message gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature
            timeout: Request timeout in seconds

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
        """Hex HMAC-SHA256 of the serialized payload."""
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _sign_and_send(self, payload: dict) -> dict:
        """
        Sign payload with HMAC and send to gateway.

        Returns:
            Parsed gateway response

        Raises:
            MessageGatewayError: On any failure
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
        except requests.exceptions.RequestException as e:
            logger.error(f"Message gateway connection failed: {e}")
            raise MessageGatewayError(f"Connection failed: {e}") from e

        try:
            response_data = response.json()
        except ValueError:
            logger.error(f"Message gateway returned invalid JSON: {response.text}")
            raise MessageGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Message gateway error: {error_msg}")
            raise MessageGatewayError(f"Gateway error: {error_msg}")

        return response_data

    def send_message(self, to: str, body: str, channel: str = "whatsapp") -> None:
        """
        Send a text message to a customer.

        Args:
            to: Recipient phone number
            body: Plain text message
            channel: "sms" or "whatsapp" (default: "whatsapp")

        Raises:
            ValueError: If phone is empty or channel is invalid
            MessageGatewayError: On gateway failure
        """
        if not to or not to.strip():
            raise ValueError("recipient phone is required")
        if channel not in CHANNELS:
            raise ValueError(f"channel must be one of {', '.join(CHANNELS)}, got '{channel}'")

        self._sign_and_send({
            "channel": channel,
            "to": to.strip(),
            "body": body,
        })
        logger.info(f"{channel} message sent to {to}")
