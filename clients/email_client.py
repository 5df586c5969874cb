"""
Email gateway client for sending emails via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Verify your email address"


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


def render_verification_email(email: str, verification_url: str, app_name: str) -> str:
    """Plain-text body for the verification email."""
    greeting = email.split("@")[0]
    return (
        f"Hi {greeting},\n\n"
        f"Please confirm your email address to activate your {app_name} account:\n\n"
        f"{verification_url}\n\n"
        "This link expires soon. If you didn't create an account, "
        "you can ignore this email.\n"
    )


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: int = 10):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
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

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_verification_email(self, email: str, verification_url: str, app_name: str) -> None:
        """
        Send the email-verification link.

        Raises:
            EmailGatewayError: On any failure
        """
        payload = {
            "type": "verification",
            "email": email,
            "subject": VERIFICATION_SUBJECT,
            "body": render_verification_email(email, verification_url, app_name),
            "verification_url": verification_url,
            "app_name": app_name,
            "sender": "auth",
        }
        self._sign_and_send(payload)
        logger.info(f"Verification email sent to {email}")
