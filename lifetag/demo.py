# demo.py
from pathlib import Path

from .audit import AuditLog
from .config import Config, configure_logging
from .generator import QRCodeGenerator
from .models import BloodType, EmergencyContact, MedicalInfo, PersonalInfo, UserProfile
from .render import format_backup_text, save_qr_png
from .scanner import ScanService
from .storage import ProfileStore


def sample_profile() -> UserProfile:
    return UserProfile(
        id="profile-alice",
        user_id="user-alice",
        personal_info=PersonalInfo(first_name="Alice", last_name="Example"),
        medical_info=MedicalInfo(
            blood_type=BloodType.O_POSITIVE,
            allergies=["dust", "Penicillin", "latex gloves"],
            medications=["Metformin 500mg"],
            emergency_medical_info="Type 1 diabetic. Insulin pump on left side.",
        ),
        emergency_contacts=[
            EmergencyContact(name="Jane Doe", phone="15550100123", relationship="spouse", is_primary=True),
        ],
        is_complete=True,
    )


def main():
    configure_logging()
    store = ProfileStore()
    audit_log = AuditLog()
    generator = QRCodeGenerator()

    profile = store.get_profile("profile-alice")
    if profile is None:
        print("No profile found. Creating sample profile...")
        profile = sample_profile()
        store.save_profile(profile)
    else:
        print("Using existing profile", profile.id)

    print("Generating emergency QR...")
    result = generator.generate_for_profile(profile)
    for warning in result.warnings:
        print("  warning:", warning)

    filename = Path(Config.QR_DIR) / f"{profile.id}_emergency.png"
    save_qr_png(result.qr_data, str(filename))

    print("\nScanning it back...")
    scan = ScanService(store, audit_log).handle_scan(result.qr_data)
    print(format_backup_text(scan.emergency_data))
    print(f"\nDemo complete. Check the '{Config.QR_DIR}/' folder for the QR image.")


if __name__ == "__main__":
    main()
