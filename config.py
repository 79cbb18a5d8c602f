"""
Configuration for play script extraction.

Geometry and sampling constants were tuned by hand against a handful of
French play PDFs; they are exposed here so other typesetting can be calibrated
without touching the algorithms.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_VISION_MODEL = "gpt-4o"


@dataclass
class ReflowConfig:
    """Glyph reflow geometry (PDF layout units)."""

    vertical_tolerance: float = 6.0
    horizontal_gap: float = 2.0
    noise_width: float = 2.0


@dataclass
class SegmenterConfig:
    """Heuristic segmenter settings."""

    max_cue_length: int = 35
    max_heading_length: int = 80
    emit_stage_directions: bool = True
    min_stage_direction_length: int = 3
    scene_keywords: list[str] = field(
        default_factory=lambda: ["ACTE", "SCÈNE", "SCENE", "TABLEAU", "PROLOGUE", "ÉPILOGUE"]
    )
    ignored_labels: list[str] = field(
        default_factory=lambda: [
            "RIDEAU", "FIN", "PERSONNAGES", "DISTRIBUTION", "VAUDEVILLE",
            "COMÉDIE", "DRAME", "REPRÉSENTÉE", "THÉÂTRE", "PUIS", "LES MÊMES", "LES MEMES",
        ]
    )
    collective_labels: list[str] = field(
        default_factory=lambda: ["TOUS LES DEUX", "LES DEUX", "ENSEMBLE"]
    )
    collective_joiner: str = " et "
    merge_similar_characters: bool = True
    merge_similarity: float = 0.8


@dataclass
class VisionConfig:
    """Vision batch extractor settings."""

    model: str = DEFAULT_VISION_MODEL
    api_key: Optional[str] = None
    # Stage 1 sampling
    head_pages: int = 4
    sample_stride: int = 10
    tail_pages: int = 2
    # Stage 2 batching
    batch_size: int = 10
    batch_overlap: int = 1
    max_pages: int = 100
    context_size: int = 3
    batch_delay: float = 2.0
    # Rendering
    render_scale: float = 1.5
    discovery_detail: str = "high"
    batch_detail: str = "low"
    # Provider errors
    max_retries: int = 2
    retry_backoff: float = 2.0
    request_timeout: float = 120.0
    unknown_speaker: str = "INCONNU"

    def resolved_api_key(self) -> Optional[str]:
        return self.api_key or os.environ.get("OPENAI_API_KEY")


@dataclass
class ExtractorConfig:
    """
    Complete extraction configuration.

    Example:
        config = ExtractorConfig()
        config.reflow.vertical_tolerance = 4.0
        config.vision.batch_size = 8
    """

    reflow: ReflowConfig = field(default_factory=ReflowConfig)
    segmenter: SegmenterConfig = field(default_factory=SegmenterConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractorConfig":
        return cls(
            reflow=_build(ReflowConfig, data.get("reflow", {})),
            segmenter=_build(SegmenterConfig, data.get("segmenter", {})),
            vision=_build(VisionConfig, data.get("vision", {})),
        )

    @classmethod
    def from_env(cls) -> "ExtractorConfig":
        config = cls()
        model = os.environ.get("SCRIPT_VISION_MODEL")
        if model:
            config.vision.model = model
        return config


def _build(klass, values: dict[str, Any]):
    known = {f.name for f in fields(klass)}
    unknown = set(values) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", klass.__name__, ", ".join(sorted(unknown)))
    return klass(**{k: v for k, v in values.items() if k in known})


def load_config(path: Optional[str] = None) -> ExtractorConfig:
    """
    Load configuration from a JSON file, falling back to defaults.

    Environment variables (SCRIPT_VISION_MODEL) apply on top of the defaults
    and are overridden by values in the file.
    """
    config = ExtractorConfig.from_env()
    if not path:
        return config

    config_path = Path(path)
    if not config_path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return config

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    merged = config.to_dict()
    for section, values in data.items():
        if isinstance(values, dict) and section in merged:
            merged[section].update(values)
        else:
            logger.warning("Ignoring unknown config section: %s", section)
    logger.info("Loaded configuration from %s", path)
    return ExtractorConfig.from_dict(merged)
