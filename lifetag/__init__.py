"""
LifeTag Emergency QR
Emergency medical information encoded into scannable QR codes
"""

from .models import (
    QR_VERSION, MAX_QR_LENGTH,
    BloodType, FormatKind, EmergencyQRData, QRContact, QREncodingOptions, ValidationResult,
    UserProfile, PersonalInfo, MedicalInfo, EmergencyContact, PrivacySettings, AccessEvent,
    LifeTagError, ProfileStoreError, RenderError,
)
from .codec import (
    encode_qr_string, decode_qr_string, classify_format, validate_qr_code,
    extract_profile_id, is_app_generated_qr,
)
from .extractor import generate_emergency_data, get_optimal_qr_options, extract_critical_allergies
from .cache import QRCache, generate_data_hash
from .generator import QRCodeGenerator, QRCodeGenerationResult

__version__ = "1.0.0"
