"""Font utility functions for locating font files used by the drawtext filter."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


def get_font_filename_variants(font_family: str) -> List[str]:
    """
    Build the candidate filenames for a font family.

    Args:
        font_family: Font family name (e.g., "Open Sans", "DejaVuSans")

    Returns:
        list: Filenames to probe, most specific first
    """
    lowered = font_family.lower()
    variants = [
        f"{font_family}.ttf",
        f"{font_family}-Regular.ttf",
        f"{lowered}.ttf",
        f"{lowered}-regular.ttf",
        f"{font_family.replace(' ', '')}.ttf",
        f"{lowered.replace(' ', '')}.ttf",
    ]
    # Preserve order, drop duplicates
    return list(dict.fromkeys(variants))


def find_font_file(font_family: str, font_dirs: Iterable[str]) -> Optional[str]:
    """
    Find a font file for the given family name.

    Looks for well-known filename variants in each directory first, then
    falls back to a recursive search for any .ttf whose name contains the
    family name.

    Args:
        font_family: Font family name
        font_dirs: Directories to search

    Returns:
        str: Path to the font file, or None if not found
    """
    if not font_family:
        return None

    dirs = [Path(d) for d in font_dirs]
    variants = get_font_filename_variants(font_family)

    for font_dir in dirs:
        for variant in variants:
            candidate = font_dir / variant
            if candidate.is_file():
                logger.debug(f"Found font for '{font_family}': {candidate}")
                return str(candidate)

    search_name = font_family.lower().replace(' ', '')
    for font_dir in dirs:
        if not font_dir.is_dir():
            continue
        for match in sorted(font_dir.rglob("*.ttf")):
            if search_name in match.name.lower().replace(' ', ''):
                logger.debug(f"Found font for '{font_family}' by name match: {match}")
                return str(match)

    logger.warning(f"No font file found for family '{font_family}'")
    return None
