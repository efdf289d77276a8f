"""
QR String Codec
Encodes emergency data into a professional medical ID style string: a
human-readable block any QR scanner can show, followed by an APP_DATA line
the LifeTag app parses back. Decodes that format as well as the older
key-value only format.
"""

import re
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    QR_VERSION, MAX_QR_LENGTH,
    BloodType, EmergencyQRData, FormatKind, QRContact, ValidationResult,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


HEADER = '═══ EMERGENCY MEDICAL ID ═══'
HEADER_MARKER = 'EMERGENCY MEDICAL ID'
DATA_PREFIX = 'APP_DATA:'
LEGACY_DATA_PREFIX = 'DATA:'
PATIENT_LABEL = 'PATIENT:'
BLOOD_TYPE_LABEL = 'BLOOD TYPE:'
SEPARATOR_LINE = '───────────────────────────'
FULL_PROFILE_LINE = '📱 Full medical profile available in LifeTag app'
FOOTER_LINE = '🔒 Generated by LifeTag Medical ID'

# Kept when an oversized payload is reduced to its machine section
CRITICAL_KEYS = ('V', 'N', 'BT', 'ALG', 'EC')

NOTE_DISPLAY_LIMIT = 150
NOTE_DATA_LIMIT = 100
WRAP_WIDTH = 50
INDENT = '   '

PHONE_PATTERN = re.compile(r'^[\d\s+().-]+$')


# ═══════════════════════════════════════════════════════════════
# FIELD HELPERS
# ═══════════════════════════════════════════════════════════════

def obfuscate(value: str) -> str:
    """Base64 a field so phone detectors and casual readers skip it. Not encryption."""
    return base64.b64encode(value.encode('utf-8')).decode('ascii')


def deobfuscate(value: str) -> Optional[str]:
    """Reverse `obfuscate`, or None when `value` is not obfuscated text"""
    try:
        decoded = base64.b64decode(value, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    # Plain digit strings can be valid base64 too; they decode to non-ASCII bytes
    return decoded if decoded.isascii() and decoded.isprintable() else None


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + '...' if len(text) > limit else text


def _clean(value: str, reserved: str = '') -> str:
    """Blank out characters that would break the KEY:VALUE;KEY:VALUE grammar"""
    for ch in ';\r\n' + reserved:
        value = value.replace(ch, ' ')
    return value.strip()


def _format_phone(phone: str) -> str:
    # Grouped digits are not picked up as a tappable phone link
    return re.sub(r'(\d{3})(\d{4})(\d{4})', r'\1 \2 \3', phone, count=1)


def _wrap_note(note: str) -> List[str]:
    lines = []
    current = INDENT
    for word in note.split():
        if current != INDENT and len(current) + len(word) + 1 > WRAP_WIDTH:
            lines.append(current)
            current = INDENT + word
        else:
            current += ('' if current == INDENT else ' ') + word
    if current != INDENT:
        lines.append(current)
    return lines


def _display_date(timestamp: str) -> str:
    moment = parse_timestamp(timestamp)
    if moment is None:
        return timestamp
    return f"{moment:%b} {moment.day}, {moment.year}"


# ═══════════════════════════════════════════════════════════════
# ENCODER
# ═══════════════════════════════════════════════════════════════

def build_machine_pairs(data: EmergencyQRData) -> List[Tuple[str, str]]:
    """Ordered KEY/VALUE pairs of the APP_DATA section"""
    pairs = [('V', data.version), ('N', _clean(data.name))]
    if data.blood_type:
        pairs.append(('BT', _clean(data.blood_type)))
    allergies = [_clean(a, ',') for a in data.allergies]
    allergies = [a for a in allergies if a]
    if allergies:
        pairs.append(('ALG', ','.join(allergies)))
    if data.emergency_contact:
        contact = data.emergency_contact
        pairs.append(('EC', '-'.join([
            _clean(contact.name, '-'),
            obfuscate(contact.phone),
            _clean(contact.relationship, '-'),
        ])))
    if data.emergency_note:
        pairs.append(('NOTE', _clean(_truncate(data.emergency_note, NOTE_DATA_LIMIT))))
    if data.profile_id:
        pairs.append(('LT', obfuscate(data.profile_id)))
    pairs.append(('TS', data.timestamp))
    return pairs


def _join_pairs(pairs: List[Tuple[str, str]]) -> str:
    return ';'.join(f'{key}:{value}' for key, value in pairs)


def build_human_readable(data: EmergencyQRData) -> List[str]:
    """Lines of the medical ID block shown by generic scanner apps"""
    lines = [HEADER, '', f'{PATIENT_LABEL} {data.name.upper()}', '']

    if data.blood_type:
        lines.append(f'🩸 {BLOOD_TYPE_LABEL} {data.blood_type}')

    if data.allergies:
        lines.append('⚠️  ALLERGIES:')
        lines.extend(f'{INDENT}• {allergy}' for allergy in data.allergies)

    if data.emergency_contact:
        contact = data.emergency_contact
        lines.extend([
            '',
            '📞 EMERGENCY CONTACT:',
            f'{INDENT}{contact.name} ({contact.relationship})',
            f'{INDENT}Phone: {_format_phone(contact.phone)}',
        ])

    if data.emergency_note:
        lines.extend(['', '🏥 MEDICAL NOTES:'])
        lines.extend(_wrap_note(_truncate(data.emergency_note, NOTE_DISPLAY_LIMIT)))

    lines.extend(['', SEPARATOR_LINE])
    if data.has_full_profile:
        lines.append(FULL_PROFILE_LINE)
    lines.append(f'📅 Updated: {_display_date(data.timestamp)}')
    lines.append(FOOTER_LINE)
    return lines


def _reduce_to_machine_section(pairs: List[Tuple[str, str]], max_length: int) -> str:
    critical = [p for p in pairs if p[0] in CRITICAL_KEYS]
    optional = [p for p in pairs if p[0] not in CRITICAL_KEYS]

    result = _join_pairs(critical)
    for key, value in optional:
        candidate = f'{result};{key}:{value}'
        if len(candidate) <= max_length:
            result = candidate
        else:
            logger.info("Dropped %s from oversized QR payload", key)

    if len(result) > max_length:
        logger.warning("QR payload still %d chars after reduction (limit %d)", len(result), max_length)
    return result


def encode_qr_string(data: EmergencyQRData, max_length: int = MAX_QR_LENGTH) -> str:
    """
    Encode emergency data into the QR string.

    Falls back to the bare APP_DATA pairs when the full medical ID block
    would exceed `max_length`.
    """
    pairs = build_machine_pairs(data)
    lines = build_human_readable(data)
    lines.extend(['', f'{DATA_PREFIX} {_join_pairs(pairs)}'])
    qr_string = '\n'.join(lines)

    if len(qr_string) > max_length:
        logger.debug("QR string is %d chars, reducing to machine section", len(qr_string))
        return _reduce_to_machine_section(pairs, max_length)
    return qr_string


# ═══════════════════════════════════════════════════════════════
# DECODER
# ═══════════════════════════════════════════════════════════════

def _is_data_line(line: str) -> bool:
    # Wrapped note lines are indented, the machine section never is
    return line.startswith(DATA_PREFIX) or line.startswith(LEGACY_DATA_PREFIX)


def classify_format(text: str) -> FormatKind:
    if any(HEADER_MARKER in line and ';' not in line for line in text.splitlines()):
        return FormatKind.HUMAN_READABLE
    if any(_is_data_line(line) for line in text.splitlines()):
        return FormatKind.MACHINE_ONLY
    return FormatKind.LEGACY


def _parse_contact(value: str) -> Optional[QRContact]:
    parts = value.split('-')
    if len(parts) < 3:
        logger.warning("Malformed emergency contact field: %r", value)
        return None

    name, relationship = parts[0], parts[-1]
    raw_phone = '-'.join(parts[1:-1])
    phone = deobfuscate(raw_phone) if len(parts) == 3 else None
    if phone is None or not PHONE_PATTERN.match(phone):
        # Older codes carried the phone number as plain text
        phone = raw_phone
    return QRContact(name=name.strip(), phone=phone.strip(), relationship=relationship.strip())


def parse_pairs(segment: str) -> Dict[str, Any]:
    """Parse `KEY:VALUE;KEY:VALUE` into EmergencyQRData fields. Unknown keys are ignored."""
    fields: Dict[str, Any] = {}
    for part in segment.split(';'):
        if ':' not in part:
            continue
        key, value = part.split(':', 1)
        key, value = key.strip(), value.strip()

        if key == 'FULL':
            fields['has_full_profile'] = value == '1'
            continue
        if not value:
            continue

        if key == 'V':
            fields['version'] = value
        elif key == 'N':
            fields['name'] = value
        elif key == 'BT':
            if not BloodType.is_valid(value):
                logger.debug("Unrecognized blood type %r", value)
            fields['blood_type'] = value
        elif key == 'ALG':
            fields['allergies'] = tuple(a.strip() for a in value.split(',') if a.strip())
        elif key == 'EC':
            contact = _parse_contact(value)
            if contact:
                fields['emergency_contact'] = contact
        elif key == 'NOTE':
            fields['emergency_note'] = value
        elif key == 'APP':
            fields['profile_id'] = value
        elif key == 'LT':
            profile_id = deobfuscate(value)
            if profile_id is None:
                logger.warning("Failed to decode LifeTag internal ID %r", value)
            else:
                fields['profile_id'] = profile_id
        elif key == 'TS':
            fields['timestamp'] = value
    return fields


def _decode_current_format(text: str) -> Dict[str, Any]:
    lines = text.splitlines()
    fields: Dict[str, Any] = {}

    data_line = next((line.strip() for line in lines if _is_data_line(line)), None)
    if data_line:
        prefix = DATA_PREFIX if data_line.startswith(DATA_PREFIX) else LEGACY_DATA_PREFIX
        fields.update(parse_pairs(data_line[len(prefix):]))

    # Readable block as fallback when APP_DATA is damaged or missing
    for line in lines:
        trimmed = line.strip()
        if line.startswith(PATIENT_LABEL):
            name = trimmed[len(PATIENT_LABEL):].strip()
            if name and not fields.get('name'):
                fields['name'] = name
        elif trimmed.startswith('🩸') and BLOOD_TYPE_LABEL in trimmed:
            blood_type = trimmed.split(BLOOD_TYPE_LABEL, 1)[1].strip()
            if BloodType.is_valid(blood_type) and not fields.get('blood_type'):
                fields['blood_type'] = blood_type
        elif trimmed.startswith('📱') and 'LifeTag app' in trimmed:
            fields['has_full_profile'] = True
    return fields


def decode_qr_string(text: str) -> Optional[EmergencyQRData]:
    """
    Decode a scanned or pasted QR string.

    Returns None when the string is not a LifeTag code or lacks a name or
    version. Never raises.
    """
    if not text or not text.strip():
        return None

    try:
        kind = classify_format(text)
        if kind is FormatKind.LEGACY:
            fields = parse_pairs(text.strip())
        else:
            fields = _decode_current_format(text)

        if not fields.get('name') or not fields.get('version'):
            logger.debug("QR string (%s) missing name or version", kind.value)
            return None
        return EmergencyQRData(**fields)
    except Exception:
        logger.exception("Error decoding QR string")
        return None


def extract_profile_id(text: str) -> Optional[str]:
    """Profile ID embedded in a QR string, from LT (obfuscated) or legacy APP"""
    match = re.search(r'(?:^|[;\s])LT:([^;\s]+)', text)
    if match:
        profile_id = deobfuscate(match.group(1))
        if profile_id:
            return profile_id
    match = re.search(r'(?:^|[;\s])APP:([^;\s]+)', text)
    return match.group(1) if match else None


def is_app_generated_qr(text: str) -> bool:
    """Check if QR code was generated by the LifeTag app for a stored profile"""
    return 'V:' in text and extract_profile_id(text) is not None


# ═══════════════════════════════════════════════════════════════
# VALIDATOR
# ═══════════════════════════════════════════════════════════════

def validate_qr_code(text: str, strict: bool = False) -> ValidationResult:
    """
    Validate QR code format and version compatibility.

    By default a compatible version is reported valid even when warnings
    were collected. `strict=True` requires an empty error list.
    """
    decoded = decode_qr_string(text)
    if decoded is None:
        return ValidationResult(is_valid=False, is_compatible=False,
                                errors=['Invalid QR code format'])

    errors = []
    is_compatible = decoded.version == QR_VERSION
    if not is_compatible:
        errors.append(f'QR code version {decoded.version} may not be fully compatible '
                      f'with current version {QR_VERSION}')
    if not decoded.name:
        errors.append('Missing name information')
    if decoded.emergency_contact is None:
        errors.append('Missing emergency contact information')

    is_valid = not errors if strict else (not errors or is_compatible)
    return ValidationResult(is_valid=is_valid, is_compatible=is_compatible,
                            errors=errors, version=decoded.version)
