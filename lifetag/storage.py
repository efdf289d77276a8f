"""
Profile storage
sqlite-backed profile store; one table per profile section
"""

import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .config import Config
from .models import (
    BloodType, EmergencyContact, MedicalInfo, PersonalInfo, PrivacySettings,
    ProfileStoreError, UserProfile,
)

logger = logging.getLogger(__name__)


class ProfileStore:
    """Manages profile data used for QR generation and full-profile lookups"""

    def __init__(self, db_file: Optional[str] = None):
        self.db_path = Path(db_file or Config.DB_FILE)
        if self.db_path.parent != Path('.'):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise ProfileStoreError(f"Profile store error: {e}") from e
        finally:
            conn.close()

    def _init_database(self):
        """Create tables if they don't exist"""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    date_of_birth TEXT,
                    gender TEXT,
                    blood_type TEXT,
                    emergency_medical_info TEXT,
                    allow_emergency_access BOOLEAN DEFAULT TRUE,
                    require_password BOOLEAN DEFAULT FALSE,
                    enable_audit_logging BOOLEAN DEFAULT TRUE,
                    is_complete BOOLEAN DEFAULT FALSE,
                    updated_at TEXT
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS allergies (
                    id INTEGER PRIMARY KEY,
                    profile_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    FOREIGN KEY (profile_id) REFERENCES profiles (id) ON DELETE CASCADE
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS medications (
                    id INTEGER PRIMARY KEY,
                    profile_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    FOREIGN KEY (profile_id) REFERENCES profiles (id) ON DELETE CASCADE
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS emergency_contacts (
                    id INTEGER PRIMARY KEY,
                    profile_id TEXT NOT NULL,
                    contact_id TEXT,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    relationship TEXT NOT NULL,
                    is_primary BOOLEAN DEFAULT FALSE,
                    FOREIGN KEY (profile_id) REFERENCES profiles (id) ON DELETE CASCADE
                )
            ''')

    def save_profile(self, profile: UserProfile):
        """Insert or replace a profile and all of its sections"""
        personal = profile.personal_info
        medical = profile.medical_info
        privacy = profile.privacy_settings
        updated_at = profile.updated_at or datetime.now(timezone.utc)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO profiles
                (id, user_id, first_name, last_name, date_of_birth, gender, blood_type,
                 emergency_medical_info, allow_emergency_access, require_password,
                 enable_audit_logging, is_complete, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    user_id = excluded.user_id,
                    first_name = excluded.first_name,
                    last_name = excluded.last_name,
                    date_of_birth = excluded.date_of_birth,
                    gender = excluded.gender,
                    blood_type = excluded.blood_type,
                    emergency_medical_info = excluded.emergency_medical_info,
                    allow_emergency_access = excluded.allow_emergency_access,
                    require_password = excluded.require_password,
                    enable_audit_logging = excluded.enable_audit_logging,
                    is_complete = excluded.is_complete,
                    updated_at = excluded.updated_at
            ''', (
                profile.id, profile.user_id, personal.first_name, personal.last_name,
                personal.date_of_birth.isoformat() if personal.date_of_birth else None,
                personal.gender,
                medical.blood_type.value if medical.blood_type else None,
                medical.emergency_medical_info,
                privacy.allow_emergency_access, privacy.require_password_for_full_access,
                privacy.enable_audit_logging, profile.is_complete, updated_at.isoformat(),
            ))

            for table in ('allergies', 'medications', 'emergency_contacts'):
                cursor.execute(f'DELETE FROM {table} WHERE profile_id = ?', (profile.id,))

            cursor.executemany(
                'INSERT INTO allergies (profile_id, position, name) VALUES (?, ?, ?)',
                [(profile.id, i, name) for i, name in enumerate(medical.allergies)]
            )
            cursor.executemany(
                'INSERT INTO medications (profile_id, position, name) VALUES (?, ?, ?)',
                [(profile.id, i, name) for i, name in enumerate(medical.medications)]
            )
            cursor.executemany('''
                INSERT INTO emergency_contacts
                (profile_id, contact_id, position, name, phone, relationship, is_primary)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', [
                (profile.id, c.id, i, c.name, c.phone, c.relationship, c.is_primary)
                for i, c in enumerate(profile.emergency_contacts)
            ])

        logger.info("Saved profile %s", profile.id)

    def get_profile(self, profile_id: str) -> Optional[UserProfile]:
        """Load a profile, or None when it does not exist"""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM profiles WHERE id = ?', (profile_id,))
            row = cursor.fetchone()
            if not row:
                return None

            cursor.execute('SELECT name FROM allergies WHERE profile_id = ? ORDER BY position',
                           (profile_id,))
            allergies = [r['name'] for r in cursor.fetchall()]

            cursor.execute('SELECT name FROM medications WHERE profile_id = ? ORDER BY position',
                           (profile_id,))
            medications = [r['name'] for r in cursor.fetchall()]

            cursor.execute('SELECT * FROM emergency_contacts WHERE profile_id = ? ORDER BY position',
                           (profile_id,))
            contacts = [
                EmergencyContact(
                    name=r['name'],
                    phone=r['phone'],
                    relationship=r['relationship'],
                    is_primary=bool(r['is_primary']),
                    id=r['contact_id'],
                )
                for r in cursor.fetchall()
            ]

        return UserProfile(
            id=row['id'],
            user_id=row['user_id'],
            personal_info=PersonalInfo(
                first_name=row['first_name'],
                last_name=row['last_name'],
                date_of_birth=datetime.fromisoformat(row['date_of_birth']) if row['date_of_birth'] else None,
                gender=row['gender'],
            ),
            medical_info=MedicalInfo(
                blood_type=BloodType(row['blood_type']) if row['blood_type'] else None,
                allergies=allergies,
                medications=medications,
                emergency_medical_info=row['emergency_medical_info'],
            ),
            emergency_contacts=contacts,
            privacy_settings=PrivacySettings(
                allow_emergency_access=bool(row['allow_emergency_access']),
                require_password_for_full_access=bool(row['require_password']),
                enable_audit_logging=bool(row['enable_audit_logging']),
            ),
            is_complete=bool(row['is_complete']),
            updated_at=datetime.fromisoformat(row['updated_at']) if row['updated_at'] else None,
        )

    def list_profile_ids(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute('SELECT id FROM profiles ORDER BY id').fetchall()
        return [r['id'] for r in rows]

    def delete_profile(self, profile_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute('DELETE FROM profiles WHERE id = ?', (profile_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted profile %s", profile_id)
        return deleted
