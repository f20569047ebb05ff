"""
Fund document composition configuration
Centralized settings loaded from the environment and an optional .env file
"""
import os
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional

# Load from .env file with UTF-8 encoding (Windows compatibility)
env_path = Path(__file__).parent.parent.parent / '.env'
load_dotenv(dotenv_path=env_path, encoding='utf-8')

# =============================================================================
# Database Configuration
# =============================================================================
DB_USER = os.getenv("DB_USER", "fund_docs")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "5432"))
DB_NAME = os.getenv("DB_NAME", "fund_docs")
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# Retry configuration
BACKOFF_BASE_DELAY = int(os.getenv("BACKOFF_BASE_DELAY", "1"))  # 1 second
BACKOFF_MULTIPLIER = int(os.getenv("BACKOFF_MULTIPLIER", "2"))
BACKOFF_MAX_DELAY = int(os.getenv("BACKOFF_MAX_DELAY", "60"))  # 60 seconds

# =============================================================================
# PDF Layout Configuration (points, A4 = 595.27 x 841.89)
# =============================================================================
PAGE_MARGIN = float(os.getenv("PAGE_MARGIN", "50"))
PAGE_BOTTOM_MARGIN = float(os.getenv("PAGE_BOTTOM_MARGIN", "80"))
FOOTER_OFFSET = float(os.getenv("FOOTER_OFFSET", "50"))
BODY_FONT_SIZE = float(os.getenv("BODY_FONT_SIZE", "11"))
CHAPTER_FONT_SIZE = float(os.getenv("CHAPTER_FONT_SIZE", "16"))
ARTICLE_FONT_SIZE = float(os.getenv("ARTICLE_FONT_SIZE", "12"))
LINE_SPACING = float(os.getenv("LINE_SPACING", "1.5"))
INDENT_SIZE = float(os.getenv("INDENT_SIZE", "10"))

# PDF_INVARIANT strips timestamps and random ids so identical input gives identical bytes
PDF_INVARIANT = os.getenv("PDF_INVARIANT", "true").lower() == "true"

# =============================================================================
# Font Configuration
# =============================================================================
FONT_DIR = os.getenv("FUND_DOCS_FONT_DIR", "")
FONT_REGULAR_FILE = os.getenv("FONT_REGULAR_FILE", "NanumGothic.ttf")
FONT_BOLD_FILE = os.getenv("FONT_BOLD_FILE", "NanumGothicBold.ttf")
CID_FONT_NAME = os.getenv("CID_FONT_NAME", "HYGothic-Medium")

# =============================================================================
# Diff Configuration
# =============================================================================
DIFF_MAX_VALUE_LENGTH = int(os.getenv("DIFF_MAX_VALUE_LENGTH", "200"))

# =============================================================================
# Blob Storage Configuration
# =============================================================================
BLOB_WRITE_MAX_RETRIES = int(os.getenv("BLOB_WRITE_MAX_RETRIES", "3"))

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # 'text' or 'json'
LOG_FILE = os.getenv("LOG_FILE", "")
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

# =============================================================================
# Progress Configuration
# =============================================================================
PROGRESS_BAR_ENABLED = os.getenv("PROGRESS_BAR_ENABLED", "true").lower() == "true"

# =============================================================================
# Paths
# =============================================================================
DATA_DIR = Path(os.getenv("FUND_DOCS_DATA_DIR", str(Path(__file__).parent.parent / "data")))
BLOB_STORAGE_DIR = Path(os.getenv("BLOB_STORAGE_DIR", str(DATA_DIR / "blobs")))


def get_database_url() -> str:
    """Get the database connection URL."""
    return DATABASE_URL


def get_font_dir() -> Optional[Path]:
    """Get the configured TTF font directory, or None to use the built-in CID font."""
    return Path(FONT_DIR) if FONT_DIR else None


def calculate_backoff_delay(attempt: int) -> int:
    """
    Calculate exponential backoff delay.

    Args:
        attempt: The retry attempt number (0-indexed)

    Returns:
        Delay in seconds
    """
    delay = min(BACKOFF_BASE_DELAY * (BACKOFF_MULTIPLIER ** attempt), BACKOFF_MAX_DELAY)
    return delay


# Configuration class for type safety
class Config:
    """Configuration class for type-safe access to settings."""

    # Database
    db_user: str = DB_USER
    db_host: str = DB_HOST
    db_port: int = DB_PORT
    db_name: str = DB_NAME
    database_url: str = DATABASE_URL

    # Retry
    backoff_base_delay: int = BACKOFF_BASE_DELAY
    backoff_multiplier: int = BACKOFF_MULTIPLIER
    backoff_max_delay: int = BACKOFF_MAX_DELAY

    # Layout
    page_margin: float = PAGE_MARGIN
    page_bottom_margin: float = PAGE_BOTTOM_MARGIN
    footer_offset: float = FOOTER_OFFSET
    body_font_size: float = BODY_FONT_SIZE
    chapter_font_size: float = CHAPTER_FONT_SIZE
    article_font_size: float = ARTICLE_FONT_SIZE
    line_spacing: float = LINE_SPACING
    indent_size: float = INDENT_SIZE
    pdf_invariant: bool = PDF_INVARIANT

    # Fonts
    font_dir: str = FONT_DIR
    font_regular_file: str = FONT_REGULAR_FILE
    font_bold_file: str = FONT_BOLD_FILE
    cid_font_name: str = CID_FONT_NAME

    # Diff
    diff_max_value_length: int = DIFF_MAX_VALUE_LENGTH

    # Storage
    blob_storage_dir: Path = BLOB_STORAGE_DIR
    blob_write_max_retries: int = BLOB_WRITE_MAX_RETRIES

    # Logging
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT
    log_file: str = LOG_FILE
    log_dir: Path = LOG_DIR

    # Progress
    progress_bar_enabled: bool = PROGRESS_BAR_ENABLED


# Export configuration instance
config = Config()
