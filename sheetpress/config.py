from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Tuple


BASE_DIR = Path(__file__).resolve().parents[1]
OUT_DIR = Path(os.environ.get("SHEETPRESS_OUT_DIR", BASE_DIR / "out"))
DB_PATH = OUT_DIR / "sheetpress.db"

# Page presets in CSS px at 96 dpi, portrait.
PAGE_SIZES: Dict[str, Tuple[int, int]] = {
    "A4": (794, 1123),
    "A5": (559, 794),
    "Letter": (816, 1056),
    "Legal": (816, 1344),
}
DEFAULT_PAGE = "A4"

PX_TO_MM = 0.264583
CSS_DPI = 96
EXPORT_DPI = 300

DRAG_THRESHOLD_PX = 3.0
MIN_ELEMENT_SIZE = 20.0
ZOOM_MIN = 0.1
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1
WHEEL_ZOOM_FACTOR = 0.01
FIT_MARGIN_PX = 100
NUDGE_SMALL = 1.0
NUDGE_LARGE = 10.0
PASTE_OFFSET = 10.0
DUPLICATE_OFFSET = 20.0
MAX_IMAGE_SIDE = 300

JOB_POLL_INTERVAL = 0.5

DEFAULT_FONT_SIZE = 16.0
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_LINE_HEIGHT = 1.5
DEFAULT_MIN_FONT_SIZE = 8.0
DEFAULT_TEXT_COLOR = "#000000"
DEFAULT_SHAPE_FILL = "#e5e7eb"
AVG_CHAR_WIDTH_RATIO = 0.6
OVERFLOW_SAFETY_MARGIN = 0.9

CLIPBOARD_KEY = "canvas-clipboard"


def set_out_dir(path: Path) -> None:
    global OUT_DIR, DB_PATH
    OUT_DIR = path
    DB_PATH = OUT_DIR / "sheetpress.db"
