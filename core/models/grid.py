"""
MGRS Grid Designator Parsing.

A Sentinel-2 tile is named by its MGRS designator: UTM zone (1-60), latitude
band letter and 100km square code, e.g. "33UXP" (optionally prefixed "T").
The UTM EPSG code follows from the zone and hemisphere; the hemisphere is
taken from the band's position in the alphabet (A-M south, N-Z north).

Exports:
    ParsedGrid: Parsed designator
    parse_mgrs: Pure designator parser
"""

import re
import string

from pydantic import BaseModel, ConfigDict, Field

from exceptions import MalformedGridCode


_MGRS_PATTERN = re.compile(r"^T?(\d{1,2})([A-Za-z])([A-Za-z]{2})$")

# Bands up to and including "M" lie in the southern hemisphere
_SOUTHERN_MAX_POSITION = 13


class ParsedGrid(BaseModel):
    """Parsed MGRS designator. Invariant: epsg is 326zz or 327zz for zone zz."""

    model_config = ConfigDict(frozen=True)

    utm_zone: int = Field(..., ge=1, le=60, description="UTM zone number")
    latitude_band: str = Field(..., min_length=1, max_length=1, description="Latitude band letter (upper case)")
    grid_square: str = Field(..., min_length=2, max_length=2, description="100km square code (upper case)")
    epsg: int = Field(..., description="UTM EPSG code (326zz north, 327zz south)")

    @property
    def is_southern(self) -> bool:
        return self.epsg // 100 == 327

    @property
    def designator(self) -> str:
        return f"{self.utm_zone}{self.latitude_band}{self.grid_square}"


def parse_mgrs(designator: str) -> ParsedGrid:
    """
    Parse an MGRS tile designator.

    Args:
        designator: e.g. "33UXP", "T33UXP", "1CDV" (case-insensitive)

    Returns:
        ParsedGrid

    Raises:
        MalformedGridCode: Not a string, wrong shape, or zone outside 1-60

    Example:
        >>> parse_mgrs("33UXP").epsg
        32633
        >>> parse_mgrs("18HXX").epsg
        32718
    """
    if not isinstance(designator, str):
        raise MalformedGridCode(designator, "MGRS designator must be a string")

    match = _MGRS_PATTERN.match(designator.strip())
    if match is None:
        raise MalformedGridCode(designator)

    zone = int(match.group(1))
    if not 1 <= zone <= 60:
        raise MalformedGridCode(designator, f"UTM zone {zone} outside 1-60")

    band = match.group(2).upper()
    square = match.group(3).upper()

    position = string.ascii_uppercase.index(band) + 1
    prefix = 327 if position <= _SOUTHERN_MAX_POSITION else 326
    epsg = int(f"{prefix}{zone:02d}")

    return ParsedGrid(utm_zone=zone, latitude_band=band, grid_square=square, epsg=epsg)
