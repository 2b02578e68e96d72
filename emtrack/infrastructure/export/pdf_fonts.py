from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError

logger = logging.getLogger(__name__)

_UNICODE_FONT_NAME = "EmtrackUnicode"
_FALLBACK_FONT_NAME = "Helvetica"


def _candidate_font_paths() -> list[Path]:
    paths: list[Path] = []
    env_font = os.getenv("EMTRACK_PDF_FONT")
    if env_font:
        paths.append(Path(env_font))
    paths.extend(
        [
            Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
            Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
            Path("/usr/share/fonts/truetype/liberation2/LiberationSans-Regular.ttf"),
            Path("C:/Windows/Fonts/arial.ttf"),
            Path("/Library/Fonts/Arial.ttf"),
        ]
    )
    return paths


@lru_cache(maxsize=1)
def get_pdf_font_name() -> str:
    """A TTF font covering non-Latin names when one is installed, else Helvetica."""
    if _UNICODE_FONT_NAME in pdfmetrics.getRegisteredFontNames():
        return _UNICODE_FONT_NAME
    for font_path in _candidate_font_paths():
        if not font_path.exists():
            continue
        try:
            pdfmetrics.registerFont(TTFont(_UNICODE_FONT_NAME, str(font_path)))
        except (TTFError, OSError):
            logger.warning("Cannot load PDF font %s", font_path)
            continue
        return _UNICODE_FONT_NAME
    return _FALLBACK_FONT_NAME
