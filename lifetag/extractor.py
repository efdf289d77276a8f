"""
Emergency data extraction
Projects a full profile down to what belongs in an emergency QR payload
"""

import re
from datetime import datetime
from typing import List, Optional

from .models import (
    QR_VERSION, MAX_ALLERGIES, MAX_EMERGENCY_NOTE_LENGTH,
    EmergencyContact, EmergencyQRData, QRContact, QREncodingOptions, UserProfile,
    iso_timestamp,
)


# Allergies matching any of these are always listed first
CRITICAL_ALLERGY_KEYWORDS = (
    'penicillin', 'latex', 'shellfish', 'peanuts', 'tree nuts',
    'bee', 'wasp', 'sulfa', 'iodine', 'aspirin',
)


def is_critical_allergy(allergy: str) -> bool:
    name = allergy.lower()
    return any(keyword in name for keyword in CRITICAL_ALLERGY_KEYWORDS)


def extract_critical_allergies(allergies: List[str], limit: int = MAX_ALLERGIES) -> List[str]:
    """Critical allergies first, then the rest, capped at `limit`"""
    critical = []
    normal = []
    for allergy in allergies:
        if not allergy or not allergy.strip():
            continue
        if is_critical_allergy(allergy):
            critical.append(allergy)
        else:
            normal.append(allergy)
    return (critical + normal)[:limit]


def get_primary_emergency_contact(contacts: List[EmergencyContact]) -> Optional[QRContact]:
    if not contacts:
        return None
    contact = next((c for c in contacts if c.is_primary), contacts[0])
    return QRContact(name=contact.name, phone=contact.phone, relationship=contact.relationship)


def bound_note(note: Optional[str], limit: int, compress: bool = False) -> Optional[str]:
    if not note or not note.strip():
        return None
    if compress:
        note = re.sub(r'\s+', ' ', note).strip()
    if len(note) > limit:
        return note[:limit] + '...'
    return note


def get_optimal_qr_options(profile: UserProfile) -> QREncodingOptions:
    """Pick encoding options based on how complete the profile is"""
    if not profile.is_complete:
        # Uncertain data quality: expose as little as possible
        return QREncodingOptions(emergency_only=True, include_profile_id=False, compress_data=True)

    has_emergency_info = bool(profile.medical_info.emergency_medical_info)
    return QREncodingOptions(emergency_only=False, include_profile_id=True,
                             compress_data=has_emergency_info)


def generate_emergency_data(profile: UserProfile, options: Optional[QREncodingOptions] = None,
                            now: Optional[datetime] = None) -> EmergencyQRData:
    """Build the emergency QR payload for a profile snapshot"""
    options = options or QREncodingOptions()
    medical = profile.medical_info
    blood_type = medical.blood_type.value if medical.blood_type else None

    return EmergencyQRData(
        version=QR_VERSION,
        name=profile.personal_info.full_name,
        blood_type=blood_type,
        allergies=tuple(extract_critical_allergies(medical.allergies or [])),
        emergency_contact=get_primary_emergency_contact(profile.emergency_contacts),
        emergency_note=bound_note(medical.emergency_medical_info, MAX_EMERGENCY_NOTE_LENGTH,
                                  compress=options.compress_data),
        has_full_profile=not options.emergency_only,
        profile_id=profile.id if options.include_profile_id else None,
        timestamp=iso_timestamp(now),
    )
