"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PyramidConfig:
    """Feature pyramid configuration."""
    cell_size: int = 8
    levels_per_octave: int = 10
    min_cells: int = 5
    truncation: float = 0.2
    add_truncation_feature: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PyramidConfig":
        return cls(
            cell_size=d.get("cell_size", 8),
            levels_per_octave=d.get("levels_per_octave", 10),
            min_cells=d.get("min_cells", 5),
            truncation=d.get("truncation", 0.2),
            add_truncation_feature=d.get("add_truncation_feature", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cell_size": self.cell_size,
            "levels_per_octave": self.levels_per_octave,
            "min_cells": self.min_cells,
            "truncation": self.truncation,
            "add_truncation_feature": self.add_truncation_feature,
        }


@dataclass
class MatcherConfig:
    """
    Matcher configuration.

    Attributes:
        max_displacement: Largest part displacement (cells) searched along each axis.
        prefilter_slack: Subtracted from each root's prefilter threshold.
        num_workers: Threads used to match components in parallel (1 = sequential).
    """
    max_displacement: int = 4
    prefilter_slack: float = 0.0
    num_workers: int = 1

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MatcherConfig":
        return cls(
            max_displacement=d.get("max_displacement", 4),
            prefilter_slack=d.get("prefilter_slack", 0.0),
            num_workers=d.get("num_workers", 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_displacement": self.max_displacement,
            "prefilter_slack": self.prefilter_slack,
            "num_workers": self.num_workers,
        }


@dataclass
class DetectorConfig:
    """Detector configuration."""
    overlap_threshold: float = 0.5
    num_workers: int = 1

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            overlap_threshold=d.get("overlap_threshold", 0.5),
            num_workers=d.get("num_workers", 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overlap_threshold": self.overlap_threshold,
            "num_workers": self.num_workers,
        }


@dataclass
class ModelSourceConfig:
    """A class model to load."""
    path: str
    class_name: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelSourceConfig":
        return cls(path=d["path"], class_name=d.get("class_name"))

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"path": self.path}
        if self.class_name is not None:
            d["class_name"] = self.class_name
        return d


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    pyramid: PyramidConfig = field(default_factory=PyramidConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    models: List[ModelSourceConfig] = field(default_factory=list)
    log_path: str = "logs/part_detector.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            pyramid=PyramidConfig.from_dict(d.get("pyramid") or {}),
            matcher=MatcherConfig.from_dict(d.get("matcher") or {}),
            detector=DetectorConfig.from_dict(d.get("detector") or {}),
            models=[ModelSourceConfig.from_dict(m) for m in d.get("models") or []],
            log_path=d.get("log_path", "logs/part_detector.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "pyramid": self.pyramid.to_dict(),
            "matcher": self.matcher.to_dict(),
            "detector": self.detector.to_dict(),
            "models": [m.to_dict() for m in self.models],
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
