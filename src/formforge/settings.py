"""Environment-driven defaults for forms."""

import os
from dataclasses import dataclass

DEFAULT_LABEL_PADDING = 12
DEFAULT_FONT_SIZE = 14
DEFAULT_CLASS_PREFIX = "y"


@dataclass(frozen=True)
class FormSettings:
    """Defaults shared by every form that does not override them.

    Attributes:
        label_padding: Pixels added to the widest label for the auto content offset
        font_size: Font size in pixels used by the default label measurer
        class_prefix: Prefix for generated CSS class names
    """

    label_padding: int = DEFAULT_LABEL_PADDING
    font_size: int = DEFAULT_FONT_SIZE
    class_prefix: str = DEFAULT_CLASS_PREFIX

    @classmethod
    def from_env(cls) -> "FormSettings":
        """Create settings from environment variables.

        Reads FORMFORGE_LABEL_PADDING, FORMFORGE_FONT_SIZE and
        FORMFORGE_CLASS_PREFIX, falling back to the defaults.

        Raises:
            ValueError: If a numeric variable is not an integer
        """
        return cls(
            label_padding=int(os.environ.get("FORMFORGE_LABEL_PADDING", DEFAULT_LABEL_PADDING)),
            font_size=int(os.environ.get("FORMFORGE_FONT_SIZE", DEFAULT_FONT_SIZE)),
            class_prefix=os.environ.get("FORMFORGE_CLASS_PREFIX", DEFAULT_CLASS_PREFIX),
        )
