import secrets
import time

# Préfixe horodaté (base36, ms) + suffixe aléatoire: triable, court, sûr en URL/email
ORDER_ID_PREFIX = "ORD"

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_ALPHABET[r])
    return "".join(reversed(out))

def generate_order_id(now_ms: int | None = None) -> str:
    """Ex: ORD-LXK3Q9ZA-9F2C41B7"""
    ts = int(time.time() * 1000) if now_ms is None else now_ms
    return f"{ORDER_ID_PREFIX}-{_base36(ts)}-{secrets.token_hex(4).upper()}"
