"""
Pytest configuration and fixtures for LifeTag tests
"""
import pytest
from datetime import datetime, timezone

from lifetag.audit import AuditLog
from lifetag.cache import QRCache
from lifetag.generator import QRCodeGenerator
from lifetag.models import (
    BloodType, EmergencyContact, EmergencyQRData, MedicalInfo, PersonalInfo,
    PrivacySettings, QRContact, UserProfile,
)
from lifetag.storage import ProfileStore


@pytest.fixture
def profile():
    """A complete profile with every QR-relevant field filled in"""
    return UserProfile(
        id="profile-123",
        user_id="user-123",
        personal_info=PersonalInfo(first_name="Jane", last_name="Doe"),
        medical_info=MedicalInfo(
            blood_type=BloodType.A_NEGATIVE,
            allergies=["mild rash", "Penicillin", "dust"],
            medications=["Metformin"],
            emergency_medical_info="Type 1 diabetic. Carries an EpiPen.",
        ),
        emergency_contacts=[
            EmergencyContact(name="Mary Doe", phone="15550001111", relationship="sister"),
            EmergencyContact(name="John Smith", phone="15551234567", relationship="spouse",
                             is_primary=True),
        ],
        privacy_settings=PrivacySettings(),
        is_complete=True,
        updated_at=datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def bare_profile():
    """An incomplete profile with only a name"""
    return UserProfile(
        id="profile-bare",
        user_id="user-bare",
        personal_info=PersonalInfo(first_name="Sam", last_name="Lee"),
    )


@pytest.fixture
def emergency_data():
    return EmergencyQRData(
        version="1.0",
        name="Jane Doe",
        timestamp="2024-03-05T10:20:30.123Z",
        blood_type="A-",
        allergies=("Penicillin", "dust"),
        emergency_contact=QRContact(name="John Smith", phone="15551234567", relationship="spouse"),
        emergency_note="Carries an EpiPen.",
        has_full_profile=True,
        profile_id="abc123",
    )


@pytest.fixture
def generator():
    return QRCodeGenerator(cache=QRCache(max_entries=16))


@pytest.fixture
def store(tmp_path):
    return ProfileStore(db_file=str(tmp_path / "lifetag.db"))


@pytest.fixture
def audit_log(tmp_path):
    return AuditLog(db_file=str(tmp_path / "lifetag.db"), log_file=str(tmp_path / "audit.log"))
