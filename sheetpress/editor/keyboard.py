from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional


MAC = "darwin"


def current_platform() -> str:
    return sys.platform


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    def primary(self, platform: str) -> bool:
        """The platform's command modifier: Cmd on macOS, Ctrl elsewhere."""
        return self.meta if platform == MAC else self.ctrl


@dataclass(frozen=True)
class Shortcut:
    key: str
    action: str
    mod: bool = False
    shift: bool = False
    alt: bool = False
    description: str = ""

    def matches(self, event: KeyEvent, platform: str) -> bool:
        if event.key.lower() != self.key.lower():
            return False
        if event.primary(platform) != self.mod:
            return False
        # The non-primary of ctrl/meta must not be held.
        other = event.ctrl if platform == MAC else event.meta
        if other:
            return False
        return event.shift == self.shift and event.alt == self.alt


def _nudges() -> List[Shortcut]:
    out: List[Shortcut] = []
    for key, direction in (("ArrowLeft", "left"), ("ArrowRight", "right"), ("ArrowUp", "up"), ("ArrowDown", "down")):
        out.append(Shortcut(key, f"nudge_{direction}", description=f"Nudge {direction} 1px"))
        out.append(Shortcut(key, f"nudge_{direction}_large", shift=True, description=f"Nudge {direction} 10px"))
    return out


DEFAULT_SHORTCUTS: List[Shortcut] = [
    Shortcut("c", "copy", mod=True, description="Copy"),
    Shortcut("x", "cut", mod=True, description="Cut"),
    Shortcut("v", "paste", mod=True, description="Paste"),
    Shortcut("d", "duplicate", mod=True, description="Duplicate"),
    Shortcut("a", "select_all", mod=True, description="Select all"),
    Shortcut("Escape", "deselect", description="Deselect"),
    Shortcut("Delete", "delete", description="Delete"),
    Shortcut("Backspace", "delete", description="Delete"),
    Shortcut("z", "undo", mod=True, description="Undo"),
    Shortcut("z", "redo", mod=True, shift=True, description="Redo"),
    Shortcut("y", "redo", mod=True, description="Redo"),
    Shortcut("]", "bring_forward", mod=True, description="Bring forward"),
    Shortcut("[", "send_backward", mod=True, description="Send backward"),
    Shortcut("]", "bring_to_front", mod=True, shift=True, description="Bring to front"),
    Shortcut("[", "send_to_back", mod=True, shift=True, description="Send to back"),
    Shortcut("g", "group", mod=True, description="Group"),
    Shortcut("g", "ungroup", mod=True, shift=True, description="Ungroup"),
    Shortcut("=", "zoom_in", mod=True, description="Zoom in"),
    Shortcut("+", "zoom_in", mod=True, shift=True, description="Zoom in"),
    Shortcut("-", "zoom_out", mod=True, description="Zoom out"),
    Shortcut("0", "zoom_reset", mod=True, description="Reset zoom"),
    Shortcut("1", "zoom_fit", mod=True, description="Zoom to fit"),
    *_nudges(),
]


def match_shortcut(event: KeyEvent, shortcuts: Iterable[Shortcut], platform: str) -> Optional[Shortcut]:
    for shortcut in shortcuts:
        if shortcut.matches(event, platform):
            return shortcut
    return None


ARROW_LABELS = {"ArrowUp": "↑", "ArrowDown": "↓", "ArrowLeft": "←", "ArrowRight": "→", " ": "Space"}


def format_shortcut(shortcut: Shortcut, platform: str) -> str:
    mac = platform == MAC
    parts: List[str] = []
    if shortcut.mod:
        parts.append("⌘" if mac else "Ctrl")
    if shortcut.shift:
        parts.append("⇧" if mac else "Shift")
    if shortcut.alt:
        parts.append("⌥" if mac else "Alt")
    key = ARROW_LABELS.get(shortcut.key, shortcut.key[:1].upper() + shortcut.key[1:])
    parts.append(key)
    return ("" if mac else "+").join(parts)
