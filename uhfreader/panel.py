"""Framed single-panel text layout used by the terminal screens."""

from __future__ import annotations

from typing import Sequence

from uhfreader.textutil import pad_right, trim_text

BACK_HOME_LINE = "◀ 0. Back to Home"

_DEFAULT_HEIGHT = 24
_FIXED_LINES = 12
_STATUS_TAGS = ("[OK]", "[WARN]", "[ERR]", "[INFO ]")


def section_divider(width: int) -> str:
    """Horizontal rule at least 8 characters wide."""
    return "─" * max(width, 8)


def panel_line_count(title: str, body_lines: int) -> int:
    """Number of lines a panel with ``body_lines`` lines of body occupies."""
    if not title.strip():
        return body_lines + 2
    return body_lines + 4


def render_panel(title: str, lines: Sequence[str], content_width: int) -> str:
    """Draw ``lines`` inside a box, with an optional title bar."""
    content_width = max(content_width, 24)
    horizontal = "─" * (content_width + 2)
    out = ["┌" + horizontal + "┐"]

    if title.strip():
        title_text = "[" + title.strip().upper() + "]"
        out.append("│ " + pad_right(trim_text(title_text, content_width), content_width) + " │")
        out.append("├" + horizontal + "┤")

    body = lines if lines else [""]
    out.extend(
        "│ " + pad_right(trim_text(line, content_width), content_width) + " │"
        for line in body
    )
    out.append("└" + horizontal + "┘")
    return "\n".join(out)


def clamp_page_body(lines: Sequence[str], height: int) -> list[str]:
    """Fit page body lines into a terminal of ``height`` rows.

    Hidden lines are replaced by a ``... N more line(s)`` marker; a trailing
    back-to-home line is kept visible.
    """
    lines = list(lines)
    if not lines:
        return lines
    if height <= 0:
        height = _DEFAULT_HEIGHT

    body_limit = max(height - _FIXED_LINES, 1)
    if len(lines) <= body_limit:
        return lines
    if body_limit == 1:
        return [f"... {len(lines)} more line(s)"]

    if lines[-1] == BACK_HOME_LINE:
        if body_limit <= 3:
            return lines[-body_limit:]
        head_count = body_limit - 3
        hidden = max(len(lines) - head_count - 2, 0)
        return [*lines[:head_count], f"... {hidden} more line(s)", "", BACK_HOME_LINE]

    return [*lines[:body_limit - 1], f"... {len(lines) - body_limit + 1} more line(s)"]


def panel_content_width(width: int) -> int:
    """Content width for a terminal ``width`` columns wide, between 36 and 120."""
    if width <= 0:
        return 78
    return min(max(width - 4, 36), 120)


def is_panel_title_line(line: str) -> bool:
    """True for a boxed line whose content is a bracketed title, not a status tag."""
    trimmed = line.strip()
    if not trimmed.startswith("│ ") or not trimmed.endswith(" │"):
        return False
    content = trimmed[len("│ "):]
    if content.endswith(" │"):
        content = content[:-len(" │")]
    content = content.strip()
    if not (content.startswith("[") and content.endswith("]")):
        return False
    return not any(tag in content for tag in _STATUS_TAGS)