"""Interactive components drawn on top of the review screen."""

from termki.components.input import Input
from termki.components.select_list import SelectList, SelectListTheme

__all__ = [
    "Input",
    "SelectList",
    "SelectListTheme",
]
