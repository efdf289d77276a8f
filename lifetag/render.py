"""
QR symbol rendering and backup text
"""

import io
import base64
import logging
from pathlib import Path
from typing import Optional

import qrcode
from qrcode.exceptions import DataOverflowError

from .config import Config
from .models import EmergencyQRData, RenderError, parse_timestamp

logger = logging.getLogger(__name__)


def make_qr_image(qr_data: str, box_size: Optional[int] = None, border: Optional[int] = None):
    """Build the QR symbol image for an encoded emergency string"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size or Config.QR_BOX_SIZE,
        border=border if border is not None else Config.QR_BORDER,
    )
    qr.add_data(qr_data)
    try:
        qr.make(fit=True)
    except DataOverflowError as e:
        raise RenderError(f"QR data too large to render ({len(qr_data)} chars)") from e
    return qr.make_image(fill_color="black", back_color="white")


def save_qr_png(qr_data: str, filename: str) -> str:
    """Render and save the QR symbol as PNG"""
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        make_qr_image(qr_data).save(path)
    except OSError as e:
        raise RenderError(f"Failed to save QR image: {e}") from e
    logger.info("Saved emergency QR to %s", path)
    return str(path)


def qr_as_base64(qr_data: str) -> str:
    """Get QR code as base64 PNG for display in app"""
    buf = io.BytesIO()
    make_qr_image(qr_data).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode('utf-8')


def format_backup_text(data: EmergencyQRData, qr_data: Optional[str] = None) -> str:
    """Readable emergency information for when QR scanning fails"""
    lines = [
        "=== EMERGENCY MEDICAL INFORMATION ===",
        "",
        f"NAME: {data.name}",
    ]

    if data.blood_type:
        lines.append(f"BLOOD TYPE: {data.blood_type}")
    if data.allergies:
        lines.append(f"ALLERGIES: {', '.join(data.allergies)}")

    if data.emergency_contact:
        contact = data.emergency_contact
        lines.extend([
            "",
            "EMERGENCY CONTACT:",
            f"  Name: {contact.name}",
            f"  Phone: {contact.phone}",
            f"  Relationship: {contact.relationship}",
        ])

    if data.emergency_note:
        lines.extend(["", "MEDICAL NOTES:", data.emergency_note])

    if qr_data:
        lines.extend(["", "QR CODE DATA:", qr_data])

    generated = parse_timestamp(data.timestamp)
    lines.extend([
        "",
        f"Generated: {generated.strftime('%Y-%m-%d %H:%M') if generated else data.timestamp}",
        "",
        "This information is for emergency medical use only.",
    ])
    return "\n".join(lines)
