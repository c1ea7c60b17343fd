import logging
from dataclasses import dataclass
from typing import Optional

import requests

from . import settings
from .errors import UpstreamFailure

log = logging.getLogger(__name__)

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
DEV_BYPASS_TOKEN = "dev-bypass"


@dataclass
class CaptchaResult:
    success: bool
    score: Optional[float] = None
    message: Optional[str] = None


class RecaptchaVerifier:
    """reCAPTCHA v3 check: provider success, minimum score and expected action."""

    def __init__(self, secret: str, min_score: float = 0.5, timeout: float = 10):
        self.secret = secret
        self.min_score = min_score
        self.timeout = timeout

    def verify(self, token: str, expected_action: str) -> CaptchaResult:
        if settings.APP_ENV == "development" or (settings.ALLOW_DEV_BYPASS and token == DEV_BYPASS_TOKEN):
            log.info("reCAPTCHA bypassed")
            return CaptchaResult(success=True)

        try:
            response = requests.post(
                VERIFY_URL,
                params={"secret": self.secret, "response": token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            log.error("reCAPTCHA verification error: %s", exc)
            raise UpstreamFailure("Server error during reCAPTCHA verification")

        if not data.get("success"):
            log.warning("reCAPTCHA verification failed: %s", data.get("error-codes"))
            return CaptchaResult(success=False, message="reCAPTCHA verification failed")

        score = data.get("score")
        if score is not None and score < self.min_score:
            log.warning("Low reCAPTCHA score: %s", score)
            return CaptchaResult(success=False, score=score, message="Bot-like activity detected")

        action = data.get("action")
        if action and action != expected_action:
            log.warning("Action mismatch: expected %r, got %r", expected_action, action)
            return CaptchaResult(success=False, score=score, message="Invalid reCAPTCHA action")

        return CaptchaResult(success=True, score=score)


_verifier: Optional[RecaptchaVerifier] = None


def get_captcha_verifier() -> RecaptchaVerifier:
    global _verifier
    if _verifier is None:
        _verifier = RecaptchaVerifier(settings.RECAPTCHA_SECRET_KEY, settings.RECAPTCHA_MIN_SCORE)
    return _verifier
