import base64
import json
from io import BytesIO
from typing import Any, Dict

import qrcode
from qrcode.image.pil import PilImage

from core.errors import ValidationError

DATA_URL_PREFIX = "data:image/png;base64,"


def encode_item_payload(data: Dict[str, Any]) -> str:
    """
    Render an item's identifying fields as a QR code.

    Args:
        data: JSON-serialisable mapping, typically {"id", "sku", "name", "userId"}

    Returns:
        PNG image as a data URL ("data:image/png;base64,...")
    """
    payload = json.dumps(data, default=str, separators=(",", ":"))
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
        image_factory=PilImage,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image()

    buf = BytesIO()
    img.save(buf)
    return DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def decode_payload(text: str) -> str:
    """Extract the SKU from scanned QR text: either the JSON written above or a bare SKU."""
    raw = (text or "").strip()
    if not raw:
        raise ValidationError.single("payload", "QR payload is empty")

    if raw.startswith("{"):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError.single("payload", "QR payload is not valid JSON")
        sku = data.get("sku") if isinstance(data, dict) else None
        if not isinstance(sku, str) or not sku.strip():
            raise ValidationError.single("payload", "QR payload does not contain a SKU")
        return sku.strip().upper()

    return raw.upper()
