"""Label-width coordination for forms with ``label_width="auto"``.

The coordinator listens for the form's fields-changed event and recomputes,
from scratch, the widest visible label at each nesting depth. Every visible
field at that depth then shares one content offset. Recomputing from
scratch means the offset shrinks again when the widest field is removed or
hidden.
"""

import math
import unicodedata
from typing import TYPE_CHECKING, Protocol

from formforge.events import FIELDS_CHANGED

if TYPE_CHECKING:
    from formforge.field import Field
    from formforge.form import Form

AUTO = "auto"


class LabelMeasurer(Protocol):
    """Measures the rendered width of a label, in pixels."""

    def measure(self, text: str) -> int:
        ...


class TextMeasurer:
    """Estimates label width from character classes.

    Wide and full-width characters (CJK) take one em, everything else half
    an em.
    """

    def __init__(self, font_size: int = 14):
        self.font_size = font_size

    def measure(self, text: str) -> int:
        ems = 0.0
        for char in text:
            ems += 1.0 if unicodedata.east_asian_width(char) in ("W", "F") else 0.5
        return math.ceil(ems * self.font_size)


def format_width(width: int | float | str) -> str:
    """Render a configured width as a CSS length (``80`` -> ``"80px"``)."""
    if isinstance(width, (int, float)):
        return f"{width:g}px"
    if width.replace(".", "", 1).isdigit():
        return f"{width}px"
    return width


class LabelWidthCoordinator:
    """Tracks the widest visible label per nesting depth of one form.

    Args:
        form: The form whose registry is scanned
        measurer: Label text measurer
        padding: Pixels added to each label's text width (the label box padding)
    """

    def __init__(self, form: "Form", measurer: LabelMeasurer, padding: int):
        self.form = form
        self.measurer = measurer
        self.padding = padding
        self._widths: dict[int, int] = {}
        form.on(FIELDS_CHANGED, self._on_fields_changed)

    def measured_width(self, field: "Field") -> int | None:
        """The field's own label box width, or None when it has no label."""
        text = field.label_text
        if not text:
            return None
        return self.measurer.measure(text) + self.padding

    def recompute(self) -> None:
        """Rescan the registry and rebuild the per-depth maxima."""
        widths: dict[int, int] = {}
        if self.form.label_width == AUTO:
            for field in self.form.registry:
                if not field.visible:
                    continue
                width = self.measured_width(field)
                if width is None:
                    continue
                depth = field.depth
                widths[depth] = max(widths.get(depth, 0), width)
        self._widths = widths

    def offset_for(self, depth: int = 0) -> int | None:
        """The shared content offset for fields at *depth*, if any."""
        return self._widths.get(depth)

    def _on_fields_changed(self, field: "Field") -> None:
        self.recompute()
