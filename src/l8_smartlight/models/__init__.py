"""Data models for colors and sensor readings."""

from .color import Color, BLACK, as_color, solid_matrix
from .acceleration import Acceleration
