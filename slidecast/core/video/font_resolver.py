"""
Font Resolver - Maps overlay font families to font files for drawtext.

Lookups are cached per resolver; one resolver lives for one build.
"""

import logging
import os
from typing import Dict, List, Optional

from slidecast import settings
from slidecast.config.font_utils import find_font_file

logger = logging.getLogger(__name__)


class FontResolver:
    """
    Resolves font family names to font file paths.

    Example:
        >>> resolver = FontResolver(font_dirs=["/usr/share/fonts/truetype"])
        >>> resolver.resolve("DejaVuSans")
        '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'
    """

    def __init__(self, font_dirs: Optional[List[str]] = None, default_font_file: Optional[str] = None):
        self.font_dirs = font_dirs if font_dirs is not None else settings.get_font_directories()
        self.default_font_file = (
            default_font_file if default_font_file is not None else settings.get_default_font_file()
        )
        self.font_cache: Dict[str, Optional[str]] = {}

    def resolve(self, font_family: str) -> Optional[str]:
        """
        Get the font file for a family.

        "default" (or empty) maps to the configured default font file, if any.

        Returns:
            Font file path or None to let the encoder pick its default font
        """
        family = (font_family or "").strip()
        if not family or family.lower() == "default":
            if self.default_font_file and os.path.exists(self.default_font_file):
                return self.default_font_file
            return None

        if family in self.font_cache:
            return self.font_cache[family]

        font_path = find_font_file(family, self.font_dirs)
        self.font_cache[family] = font_path
        return font_path
