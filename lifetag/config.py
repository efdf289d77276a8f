"""
Configuration for LifeTag
Values come from the environment, optionally seeded from a .env file
"""

import os
import logging
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration"""

    # Storage
    DB_FILE = os.environ.get("LIFETAG_DB_FILE", "lifetag.db")
    AUDIT_LOG_FILE = os.environ.get("LIFETAG_AUDIT_LOG", "lifetag_audit.log")

    # QR generation
    QR_CACHE_SIZE = int(os.environ.get("LIFETAG_QR_CACHE_SIZE", "128"))
    QR_DIR = os.environ.get("LIFETAG_QR_DIR", "qr_profiles")
    QR_BOX_SIZE = int(os.environ.get("LIFETAG_QR_BOX_SIZE", "10"))
    QR_BORDER = int(os.environ.get("LIFETAG_QR_BORDER", "4"))

    LOG_LEVEL = os.environ.get("LIFETAG_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = None):
    """Basic console logging for scripts; library code only creates loggers"""
    logging.basicConfig(
        level=getattr(logging, level or Config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
