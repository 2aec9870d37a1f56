"""
CAPTCHA verification against a third-party siteverify endpoint.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class CaptchaVerifier(ABC):
    """CAPTCHA verification interface - application layer"""

    @abstractmethod
    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """Return True only for a token the provider confirms as solved"""
        pass


class RecaptchaVerifier(CaptchaVerifier):
    """
    reCAPTCHA-compatible verifier.

    Without a configured secret every token is rejected: the gate then keeps
    denying, which is the safe side for a challenge that could not be checked.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        verify_url: str = DEFAULT_VERIFY_URL,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.verify_url = verify_url
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        if not token:
            return False
        if not self.secret_key:
            logger.warning("RECAPTCHA_SECRET_KEY not configured - rejecting CAPTCHA token")
            return False

        data = {"secret": self.secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.post(self.verify_url, data=data)
                response.raise_for_status()
                return response.json().get("success") is True
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"CAPTCHA verification error: {type(exc).__name__}: {exc}")
            return False
