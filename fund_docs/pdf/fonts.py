"""
Korean font registration for reportlab.

TTF fonts are used when FUND_DOCS_FONT_DIR is configured; otherwise the
built-in CID font (HYGothic-Medium) is registered and bold is synthesized
with a fill-and-stroke text render mode.
"""
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFont

from fund_docs.core.config import (
    CID_FONT_NAME,
    FONT_BOLD_FILE,
    FONT_REGULAR_FILE,
    get_font_dir,
)
from fund_docs.core.exceptions import LayoutError

logger = logging.getLogger(__name__)

REGULAR_FONT_NAME = "FundDocs-Regular"
BOLD_FONT_NAME = "FundDocs-Bold"

# Skew angle (degrees) for synthetic italics
ITALIC_SKEW = 12

_lock = threading.Lock()
_font_sets: dict[str, "FontSet"] = {}


@dataclass(frozen=True)
class FontSet:
    """Registered font names plus which styles have to be synthesized."""
    regular: str
    bold: str
    synthetic_bold: bool = False

    def face(self, bold: bool = False) -> str:
        return self.bold if bold else self.regular

    def string_width(self, text: str, size: float, bold: bool = False) -> float:
        return pdfmetrics.stringWidth(text, self.face(bold), size)


def _register_ttf_font(font_name: str, font_path: Path) -> None:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return
    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
    except Exception as e:
        raise LayoutError(
            "Failed to register font",
            details={"font": font_name, "path": str(font_path), "reason": str(e)},
        )
    logger.debug(f"Registered TTF font {font_name} from {font_path}")


def _load_ttf_fonts(font_dir: Path) -> FontSet:
    regular_path = font_dir / FONT_REGULAR_FILE
    bold_path = font_dir / FONT_BOLD_FILE

    if not regular_path.exists():
        raise LayoutError("Font asset not found", details={"path": str(regular_path)})

    _register_ttf_font(REGULAR_FONT_NAME, regular_path)
    if bold_path.exists():
        _register_ttf_font(BOLD_FONT_NAME, bold_path)
        return FontSet(regular=REGULAR_FONT_NAME, bold=BOLD_FONT_NAME)

    logger.warning(f"Bold font {bold_path} missing, synthesizing bold")
    return FontSet(regular=REGULAR_FONT_NAME, bold=REGULAR_FONT_NAME, synthetic_bold=True)


def _load_cid_font(font_name: str) -> FontSet:
    if font_name not in pdfmetrics.getRegisteredFontNames():
        try:
            pdfmetrics.registerFont(UnicodeCIDFont(font_name))
        except Exception as e:
            raise LayoutError(
                "Failed to register CID font",
                details={"font": font_name, "reason": str(e)},
            )
        logger.debug(f"Registered CID font {font_name}")
    return FontSet(regular=font_name, bold=font_name, synthetic_bold=True)


def load_fonts(font_dir: Optional[Path] = None) -> FontSet:
    """
    Register fonts once per process and return the font set.

    Args:
        font_dir: Directory holding the TTF files (defaults to FUND_DOCS_FONT_DIR)

    Raises:
        LayoutError: If a configured font file is missing or unreadable
    """
    if font_dir is None:
        font_dir = get_font_dir()
    key = str(font_dir) if font_dir else f"cid:{CID_FONT_NAME}"

    with _lock:
        if key not in _font_sets:
            _font_sets[key] = _load_ttf_fonts(font_dir) if font_dir else _load_cid_font(CID_FONT_NAME)
        return _font_sets[key]
