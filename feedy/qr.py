import io
from urllib.parse import urlencode

import qrcode

# Public pages of the web client, keyed by QR target
PUBLIC_PATHS = {
    "landing": "/public",
    "feedback": "/qr-feedback",
    "survey": "/survey",
    "menu": "/public/menu",
}


def public_feedback_url(base_url: str, owner_id: str, target: str = "landing") -> str:
    if target not in PUBLIC_PATHS:
        raise ValueError(f"Unknown QR target '{target}'")
    return f"{base_url.rstrip('/')}{PUBLIC_PATHS[target]}?{urlencode({'uid': owner_id})}"


def qr_png(content: str) -> bytes:
    image = qrcode.make(content)
    buf = io.BytesIO()
    image.save(buf)
    return buf.getvalue()
