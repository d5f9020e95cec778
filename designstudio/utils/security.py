# designstudio/utils/security.py
import hashlib
import hmac
import time
from typing import Optional, Tuple
from ..config import Config

GUEST_TOKEN = "guest"
ACCESS_TOKEN = "access"

def sign_payment(gateway_order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 over "<gateway order id>|<payment id>", hex encoded"""
    body = f"{gateway_order_id}|{payment_id}"
    return hmac.new(
        secret.encode(),
        body.encode(),
        hashlib.sha256
    ).hexdigest()

def verify_payment_signature(gateway_order_id: str, payment_id: str,
                             signature: str, secret: str) -> bool:
    """Constant-time comparison against the expected signature"""
    expected_signature = sign_payment(gateway_order_id, payment_id, secret)
    return hmac.compare_digest(expected_signature, signature or "")

def generate_token(user_id: int, kind: str, lifetime_seconds: int,
                   now: Optional[float] = None) -> str:
    """Signed "<user>:<kind>:<expiry>:<signature>" token"""
    expiry = int((now if now is not None else time.time()) + lifetime_seconds)
    message = f"{user_id}:{kind}:{expiry}"

    signature = hmac.new(
        Config.SECRET_KEY.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()

    return f"{message}:{signature}"

def verify_token(token: str, kind: Optional[str] = None,
                 now: Optional[float] = None) -> Optional[Tuple[int, str]]:
    """Return (user_id, kind) for a valid, unexpired token"""
    try:
        message, signature = token.rsplit(':', 1)
        user_id, token_kind, expiry = message.split(':')

        expected_signature = hmac.new(
            Config.SECRET_KEY.encode(),
            message.encode(),
            hashlib.sha256
        ).hexdigest()

        if not hmac.compare_digest(signature, expected_signature):
            return None

        if kind is not None and token_kind != kind:
            return None

        if (now if now is not None else time.time()) > int(expiry):
            return None

        return int(user_id), token_kind

    except (ValueError, AttributeError):
        return None

def token_expiry(token: str) -> Optional[int]:
    try:
        return int(token.rsplit(':', 1)[0].split(':')[2])
    except (ValueError, IndexError, AttributeError):
        return None
