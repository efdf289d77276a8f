"""
Profile access audit log
Records who viewed which profile and how. Recording is fire-and-forget:
a failure is logged and never blocks the access being recorded.
"""

import os
import sqlite3
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .config import Config
from .models import AccessEvent


class AuditLog:
    """Persists access events to sqlite and mirrors them to an audit log file"""

    def __init__(self, db_file: Optional[str] = None, log_file: Optional[str] = None):
        self.db_path = Path(db_file or Config.DB_FILE)
        self.log_path = Path(log_file or Config.AUDIT_LOG_FILE)
        self.audit_logger = self._setup_audit_logger()
        self._init_database()

    def _setup_audit_logger(self):
        """Setup audit logging for compliance"""
        logger = logging.getLogger('lifetag.audit')
        logger.setLevel(logging.INFO)

        # Remove existing handlers to prevent duplicates
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()

        handler = logging.FileHandler(self.log_path)
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        # Secure log file permissions
        if self.log_path.exists():
            os.chmod(self.log_path, 0o600)

        return logger

    def _init_database(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS access_logs (
                    id INTEGER PRIMARY KEY,
                    profile_id TEXT,
                    accessed_by TEXT NOT NULL,
                    accessor_type TEXT NOT NULL,
                    access_type TEXT NOT NULL,
                    access_method TEXT NOT NULL,
                    status TEXT NOT NULL,
                    notes TEXT,
                    timestamp TEXT NOT NULL
                )
            ''')
            conn.execute('CREATE INDEX IF NOT EXISTS idx_access_profile_time '
                         'ON access_logs(profile_id, timestamp)')
            conn.commit()
        finally:
            conn.close()

    def record(self, event: AccessEvent) -> bool:
        """Record an access event. Returns False instead of raising on failure."""
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute('''
                    INSERT INTO access_logs
                    (profile_id, accessed_by, accessor_type, access_type,
                     access_method, status, notes, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    event.profile_id,
                    event.accessed_by,
                    event.accessor_type,
                    event.access_type,
                    event.access_method,
                    event.status,
                    event.notes,
                    event.timestamp.isoformat(),
                ))
                conn.commit()
            finally:
                conn.close()
        except Exception as e:
            self.audit_logger.error(f"Failed to record {event.access_type} for "
                                    f"profile {event.profile_id}: {e}")
            return False

        self.audit_logger.info(f"Profile access: {event.profile_id or '-'} "
                               f"{event.access_type} by {event.accessed_by} "
                               f"({event.accessor_type}, {event.status})")
        return True

    def recent(self, profile_id: str, limit: int = 50) -> List[AccessEvent]:
        """Most recent access events for a profile, newest first"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute('''
                SELECT * FROM access_logs
                WHERE profile_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            ''', (profile_id, limit)).fetchall()
        finally:
            conn.close()

        return [
            AccessEvent(
                profile_id=r['profile_id'],
                access_type=r['access_type'],
                accessed_by=r['accessed_by'],
                accessor_type=r['accessor_type'],
                access_method=r['access_method'],
                status=r['status'],
                notes=r['notes'],
                timestamp=datetime.fromisoformat(r['timestamp']),
            )
            for r in rows
        ]
