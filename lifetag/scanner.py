"""
Scan handling
Validates and decodes a scanned QR string, looks up the full profile for
app-generated codes and records the access
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .audit import AuditLog
from .codec import decode_qr_string, validate_qr_code
from .models import AccessEvent, EmergencyQRData, UserProfile, ValidationResult
from .storage import ProfileStore

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    raw: str
    validation: ValidationResult
    emergency_data: Optional[EmergencyQRData] = None
    full_profile: Optional[UserProfile] = None
    kind: str = "regular_qr"  # "emergency_qr" or "regular_qr"
    notes: list = field(default_factory=list)

    @property
    def is_emergency_qr(self) -> bool:
        return self.emergency_data is not None


class ScanService:
    """Processes scanned or manually entered QR codes"""

    def __init__(self, store: Optional[ProfileStore] = None, audit_log: Optional[AuditLog] = None):
        self.store = store
        self.audit_log = audit_log

    def handle_scan(self, raw: str, accessed_by: str = "anonymous",
                    accessor_type: str = "anonymous", method: str = "qr_code") -> ScanResult:
        logger.debug("QR code scanned: %s...", raw[:100])
        result = ScanResult(raw=raw, validation=validate_qr_code(raw))
        result.emergency_data = decode_qr_string(raw)

        if result.emergency_data is None:
            # Not a LifeTag emergency code; caller offers raw display
            self._record(None, accessed_by, accessor_type, method, "regular_qr")
            return result

        result.kind = "emergency_qr"
        profile_id = result.emergency_data.profile_id
        audit_enabled = True

        if profile_id and self.store is not None:
            profile = self.store.get_profile(profile_id)
            if profile is None:
                result.notes.append("Full profile not found")
            else:
                privacy = profile.privacy_settings
                audit_enabled = privacy.enable_audit_logging
                if not privacy.allow_emergency_access:
                    result.notes.append("Profile owner has disabled emergency access")
                elif privacy.require_password_for_full_access:
                    result.notes.append("Full profile requires password")
                else:
                    result.full_profile = profile

        if audit_enabled:
            self._record(profile_id, accessed_by, accessor_type, method, "emergency_qr")
        return result

    def _record(self, profile_id, accessed_by, accessor_type, method, kind):
        if self.audit_log is None:
            return
        self.audit_log.record(AccessEvent(
            profile_id=profile_id,
            access_type="qr_scan",
            accessed_by=accessed_by,
            accessor_type=accessor_type,
            access_method=method,
            notes=kind,
        ))
