from dataclasses import dataclass, fields
from typing import Any, Dict


class ConfigValidationError(ValueError):
    """Raised when a FusionConfig field has an invalid value."""


def _check_range(name: str, value: float, lo: float, hi: float) -> None:
    if not (lo <= value <= hi):
        raise ConfigValidationError(f"{name}={value} out of range [{lo}, {hi}]")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigValidationError(f"{name}={value} must be > 0")


def _check_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ConfigValidationError(f"{name}={value} must be >= 0")


@dataclass
class FusionConfig:
    """Tunables for detection filtering and two-detector fusion."""

    # Drop detections whose confidence is below this (absent counts as 1.0).
    confidence_threshold: float = 0.6
    # Confidence given to detector output that omits the field.
    missing_confidence: float = 0.5
    # IoU above which a later detection is a duplicate of an earlier one.
    dedup_iou: float = 0.8

    # ── Hybrid detection (vision model + local OCR) ────────────────────
    # Master toggle; when off the vision model output is final.
    enable_hybrid_detection: bool = False
    # Run the OCR engine when no secondary detections are supplied.
    enable_ocr: bool = True
    # Use the OCR box for matched TEXT elements instead of the model box.
    prefer_client_boxes: bool = True
    # Minimum IoU for a vision/OCR pair to count as the same text.
    fusion_iou_threshold: float = 0.3
    # OCR output larger than this multiple of the model's text count is noise.
    secondary_max_ratio: float = 10.0
    # OCR lines must score above this (0-1) to be kept.
    ocr_min_confidence: float = 0.6
    # PaddleOCR model tier: "mobile" or "server".
    ocr_model_tier: str = "mobile"

    # Padding (percent points) added around text boxes for inpainting masks.
    inpaint_padding: float = 1.0

    def __post_init__(self) -> None:
        """Validate field ranges to catch misconfiguration early."""
        _unit = [
            "confidence_threshold",
            "missing_confidence",
            "dedup_iou",
            "fusion_iou_threshold",
            "ocr_min_confidence",
        ]
        for name in _unit:
            _check_range(name, getattr(self, name), 0.0, 1.0)

        _check_positive("secondary_max_ratio", self.secondary_max_ratio)
        _check_non_negative("inpaint_padding", self.inpaint_padding)

        if self.ocr_model_tier not in ("mobile", "server"):
            raise ConfigValidationError(
                f"ocr_model_tier={self.ocr_model_tier!r} must be 'mobile' or 'server'"
            )

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "FusionConfig":
        """Build a config from field names or the editor's settings document.

        The editor stores camelCase keys (``confidenceThreshold`` and a
        nested ``hybridDetection`` block).  Field names take precedence
        over their camelCase equivalents; unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}

        if "confidenceThreshold" in settings:
            kwargs["confidence_threshold"] = settings["confidenceThreshold"]
        hybrid = settings.get("hybridDetection") or {}
        if "enabled" in hybrid:
            kwargs["enable_hybrid_detection"] = bool(hybrid["enabled"])
        if "useTesseract" in hybrid:
            kwargs["enable_ocr"] = bool(hybrid["useTesseract"])
        if "preferClientBoxes" in hybrid:
            kwargs["prefer_client_boxes"] = bool(hybrid["preferClientBoxes"])

        for key, value in settings.items():
            if key in known:
                kwargs[key] = value
        return cls(**kwargs)
