"""
QR Code Generation
Ties extraction, encoding and the change-detection cache together for a profile
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .cache import QRCache, generate_data_hash
from .codec import decode_qr_string, encode_qr_string
from .config import Config
from .extractor import generate_emergency_data, get_optimal_qr_options
from .models import MAX_QR_LENGTH, EmergencyQRData, QREncodingOptions, UserProfile

logger = logging.getLogger(__name__)


@dataclass
class CachedQR:
    qr_data: str
    emergency_data: EmergencyQRData
    from_cache: bool


@dataclass
class QRCodeGenerationResult:
    qr_data: str
    emergency_data: EmergencyQRData
    is_optimized: bool
    from_cache: bool
    warnings: List[str] = field(default_factory=list)


class QRCodeGenerator:
    """Generates emergency QR strings for profiles, reusing unchanged encodings"""

    def __init__(self, cache: Optional[QRCache] = None, max_length: int = MAX_QR_LENGTH):
        self.cache = cache if cache is not None else QRCache(Config.QR_CACHE_SIZE)
        self.max_length = max_length

    def generate_qr_data(self, profile: UserProfile,
                         options: Optional[QREncodingOptions] = None) -> str:
        """Encode a profile without touching the cache"""
        return encode_qr_string(generate_emergency_data(profile, options), self.max_length)

    def get_cached_or_generate(self, profile: UserProfile,
                               options: Optional[QREncodingOptions] = None,
                               force_refresh: bool = False) -> CachedQR:
        """Get cached QR data or generate new if relevant fields changed"""
        options = options or QREncodingOptions()
        data_hash = generate_data_hash(profile, options)
        cached = self.cache.get(profile.id)

        if not force_refresh and cached is not None and cached.data_hash == data_hash:
            logger.debug("QR: using cached data for profile %s", profile.id)
            return CachedQR(cached.qr_data, cached.emergency_data, from_cache=True)

        logger.info("QR: generating new data for profile %s %s", profile.id,
                    "(forced)" if force_refresh else "(data changed)")
        emergency_data = generate_emergency_data(profile, options)
        qr_data = encode_qr_string(emergency_data, self.max_length)
        self.cache.put(profile.id, qr_data, emergency_data, data_hash)
        return CachedQR(qr_data, emergency_data, from_cache=False)

    def generate_for_profile(self, profile: UserProfile,
                             custom_options: Optional[Dict[str, Any]] = None,
                             force_refresh: bool = False) -> QRCodeGenerationResult:
        """
        Generate complete QR code data with optimization and caching.

        Options start from `get_optimal_qr_options` and are overridden by
        `custom_options` (QREncodingOptions field names).
        """
        options = get_optimal_qr_options(profile)
        if custom_options:
            options = replace(options, **custom_options)

        result = self.get_cached_or_generate(profile, options, force_refresh)
        data = result.emergency_data

        warnings = []
        if not profile.is_complete:
            warnings.append('Profile is incomplete - QR code contains limited information')
        if data.emergency_contact is None:
            warnings.append('No emergency contact available - consider adding one')
        if not data.blood_type:
            warnings.append('Blood type not specified - important for emergency care')
        if not data.allergies:
            warnings.append('No allergies listed - verify if this is accurate')

        return QRCodeGenerationResult(
            qr_data=result.qr_data,
            emergency_data=data,
            is_optimized=len(result.qr_data) <= self.max_length,
            from_cache=result.from_cache,
            warnings=warnings,
        )

    def should_regenerate_qr(self, current_qr_data: str, profile: UserProfile) -> bool:
        """Check if the displayed QR code no longer matches the profile"""
        current = decode_qr_string(current_qr_data)
        if current is None:
            return True

        # Round the fresh view through the codec so truncation applies equally
        fresh = decode_qr_string(self.generate_qr_data(profile, get_optimal_qr_options(profile)))
        if fresh is None:
            return True

        return (
            current.name != fresh.name
            or current.blood_type != fresh.blood_type
            or current.allergies != fresh.allergies
            or current.emergency_contact != fresh.emergency_contact
            or current.emergency_note != fresh.emergency_note
        )

    def clear_cache(self, profile_id: Optional[str] = None):
        self.cache.clear(profile_id)
