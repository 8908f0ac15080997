"""Gateway callback signature (Razorpay checkout).

signature = hex(HMAC-SHA256(key_secret, f"{order_id}|{payment_id}"))
"""

import hashlib
import hmac


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Exact (case-sensitive) match, compared in constant time."""
    expected = compute_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())
