import hashlib
import hmac

SIGNATURE_HEADER = "X-Webhook-Signature"


def sign_request(url: str, timestamp: int, secret: str) -> str:
    """HMAC-SHA256 (hex) over the destination URL followed by the unix timestamp."""
    message = f"{url}{timestamp}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(url: str, timestamp: int, signature: str, secret: str) -> bool:
    """Receiver-side check of a build webhook signature."""
    return hmac.compare_digest(sign_request(url, timestamp, secret), signature)


def verify_body_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify an HMAC-SHA256 signature over a raw request body."""
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)
