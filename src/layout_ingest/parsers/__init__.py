"""Format-specific layout parsers."""

from .base import GeometryBuilder, LayoutParser
from .kicad_pcb import KicadPcbParser, parse_kicad_layout
from .qucs import QucsParser, parse_qucs_layout
from .sonnet import SonnetParser, parse_sonnet_layout

__all__ = [
    "GeometryBuilder",
    "KicadPcbParser",
    "LayoutParser",
    "QucsParser",
    "SonnetParser",
    "parse_kicad_layout",
    "parse_qucs_layout",
    "parse_sonnet_layout",
]
