"""
Feature pyramid construction.
"""

from .builder import (
    PyramidBuilder,
    add_border,
    compute_border_size,
    max_filter_size,
    validate_image,
)

__all__ = [
    "PyramidBuilder",
    "add_border",
    "compute_border_size",
    "max_filter_size",
    "validate_image",
]
