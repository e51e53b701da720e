"""
Model loading.
"""

from .yaml_model import (
    load_model,
    save_model,
    model_from_dict,
    model_to_dict,
    extract_model_name,
)

__all__ = [
    "load_model",
    "save_model",
    "model_from_dict",
    "model_to_dict",
    "extract_model_name",
]
