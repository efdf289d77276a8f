"""
QR change-detection cache
Remembers the last encoding per profile, keyed by a hash of exactly the
fields that feed the QR string
"""

import json
import time
import hashlib
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, asdict
from typing import Optional

from .models import EmergencyQRData, QREncodingOptions, UserProfile

logger = logging.getLogger(__name__)


@dataclass
class QRCacheEntry:
    qr_data: str
    emergency_data: EmergencyQRData
    data_hash: str
    generated_at: float


def generate_data_hash(profile: UserProfile, options: QREncodingOptions) -> str:
    """Hash only the profile data that affects QR content"""
    medical = profile.medical_info
    hash_data = {
        "name": profile.personal_info.full_name,
        "blood_type": medical.blood_type.value if medical.blood_type else None,
        "allergies": list(medical.allergies or []),
        "emergency_medical_info": medical.emergency_medical_info,
        "emergency_contacts": [asdict(c) for c in profile.emergency_contacts],
        "require_password": profile.privacy_settings.require_password_for_full_access,
        "profile_id": profile.id if options.include_profile_id else None,
        "options": {
            "include_profile_id": options.include_profile_id,
            "emergency_only": options.emergency_only,
            "compress_data": options.compress_data,
        },
    }
    canonical = json.dumps(hash_data, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class QRCache:
    """
    LRU map of profile id -> last QR encoding.

    Guarded by a lock; two encodes racing on the same profile both compute
    and the later `put` wins.
    """

    def __init__(self, max_entries: int = 128):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, QRCacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, profile_id: str) -> Optional[QRCacheEntry]:
        with self._lock:
            entry = self._entries.get(profile_id)
            if entry is not None:
                self._entries.move_to_end(profile_id)
            return entry

    def put(self, profile_id: str, qr_data: str, emergency_data: EmergencyQRData,
            data_hash: str) -> QRCacheEntry:
        entry = QRCacheEntry(qr_data=qr_data, emergency_data=emergency_data,
                             data_hash=data_hash, generated_at=time.time())
        with self._lock:
            self._entries[profile_id] = entry
            self._entries.move_to_end(profile_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("QR cache evicted profile %s", evicted)
        return entry

    def clear(self, profile_id: Optional[str] = None):
        """Clear cache for one profile or all profiles"""
        with self._lock:
            if profile_id:
                self._entries.pop(profile_id, None)
                logger.info("Cleared QR cache for profile %s", profile_id)
            else:
                self._entries.clear()
                logger.info("Cleared all QR cache")

    def __contains__(self, profile_id: str) -> bool:
        with self._lock:
            return profile_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
