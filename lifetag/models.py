"""
LifeTag data model
Profile records, the emergency QR payload and the small result types shared
by the codec, cache and scan service
"""

from datetime import datetime, timezone
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Optional, Any, Tuple
from enum import Enum


# Current QR format revision
QR_VERSION = "1.0"

# Maximum QR code content length for reliable scanning
MAX_QR_LENGTH = 1000

MAX_ALLERGIES = 5
MAX_EMERGENCY_NOTE_LENGTH = 500


class BloodType(Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"

    @classmethod
    def is_valid(cls, value: Optional[str]) -> bool:
        return value in {bt.value for bt in cls}


class FormatKind(Enum):
    """Shape of a scanned string, decided before any parsing happens"""
    HUMAN_READABLE = "human_readable"  # medical ID block + APP_DATA line
    MACHINE_ONLY = "machine_only"      # APP_DATA:/DATA: line without the block
    LEGACY = "legacy"                  # bare KEY:VALUE pairs


# Custom Exceptions
class LifeTagError(Exception):
    """Base exception for LifeTag operations"""
    pass


class ProfileStoreError(LifeTagError):
    """Profile storage/retrieval issues"""
    pass


class RenderError(LifeTagError):
    """QR symbol rendering failures"""
    pass


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC timestamp with millisecond precision and a Z suffix"""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Profile records
# ---------------------------------------------------------------------------

@dataclass
class PersonalInfo:
    first_name: str
    last_name: str
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class MedicalInfo:
    blood_type: Optional[BloodType] = None
    allergies: List[str] = field(default_factory=list)
    medications: List[str] = field(default_factory=list)
    emergency_medical_info: Optional[str] = None  # Critical info for first responders


@dataclass
class EmergencyContact:
    name: str
    phone: str
    relationship: str
    is_primary: bool = False
    id: Optional[str] = None


@dataclass
class PrivacySettings:
    allow_emergency_access: bool = True
    require_password_for_full_access: bool = False
    enable_audit_logging: bool = True


@dataclass
class UserProfile:
    """Complete user profile as held by the profile store"""
    id: str
    user_id: str
    personal_info: PersonalInfo
    medical_info: MedicalInfo = field(default_factory=MedicalInfo)
    emergency_contacts: List[EmergencyContact] = field(default_factory=list)
    privacy_settings: PrivacySettings = field(default_factory=PrivacySettings)
    is_complete: bool = False
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = asdict(self)
        blood_type = self.medical_info.blood_type
        data['medical_info']['blood_type'] = blood_type.value if blood_type else None
        dob = self.personal_info.date_of_birth
        data['personal_info']['date_of_birth'] = dob.isoformat() if dob else None
        data['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        """Create from dictionary"""
        personal = dict(data['personal_info'])
        if personal.get('date_of_birth'):
            personal['date_of_birth'] = datetime.fromisoformat(personal['date_of_birth'])
        medical = dict(data.get('medical_info') or {})
        if medical.get('blood_type'):
            medical['blood_type'] = BloodType(medical['blood_type'])
        updated_at = data.get('updated_at')
        return cls(
            id=data['id'],
            user_id=data['user_id'],
            personal_info=PersonalInfo(**personal),
            medical_info=MedicalInfo(**medical),
            emergency_contacts=[EmergencyContact(**c) for c in data.get('emergency_contacts', [])],
            privacy_settings=PrivacySettings(**(data.get('privacy_settings') or {})),
            is_complete=bool(data.get('is_complete', False)),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )


# ---------------------------------------------------------------------------
# QR payload
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QRContact:
    """The single emergency contact embedded in a QR payload"""
    name: str
    phone: str
    relationship: str


@dataclass(frozen=True)
class EmergencyQRData:
    """Emergency data carried by a QR code (offline readable)"""
    version: str
    name: str
    timestamp: str = ''  # empty when dropped from an oversized payload
    blood_type: Optional[str] = None
    allergies: Tuple[str, ...] = ()
    emergency_contact: Optional[QRContact] = None
    emergency_note: Optional[str] = None
    has_full_profile: bool = False  # full profile available in the app
    profile_id: Optional[str] = None  # for app-based scanning

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['allergies'] = list(self.allergies)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmergencyQRData':
        contact = data.get('emergency_contact')
        return cls(
            version=data['version'],
            name=data['name'],
            timestamp=data.get('timestamp', ''),
            blood_type=data.get('blood_type'),
            allergies=tuple(data.get('allergies') or ()),
            emergency_contact=QRContact(**contact) if contact else None,
            emergency_note=data.get('emergency_note'),
            has_full_profile=bool(data.get('has_full_profile', False)),
            profile_id=data.get('profile_id'),
        )


@dataclass
class QREncodingOptions:
    include_profile_id: bool = True   # include profile ID for app scanning
    emergency_only: bool = False      # only include critical emergency data
    compress_data: bool = False       # squeeze whitespace out of the note


@dataclass
class ValidationResult:
    is_valid: bool
    is_compatible: bool
    errors: List[str] = field(default_factory=list)
    version: Optional[str] = None


@dataclass
class AccessEvent:
    """A single profile access, as handed to the audit log"""
    profile_id: Optional[str]
    access_type: str  # "qr_scan", "full_profile", "emergency_access"
    accessed_by: str = "anonymous"
    accessor_type: str = "anonymous"  # "individual", "medical_professional", "emergency_responder"
    access_method: str = "qr_code"
    status: str = "success"
    notes: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
