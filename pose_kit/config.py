from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .postprocess import NUM_KEYPOINTS, PosePostConfig


@dataclass(frozen=True)
class PoseConfig:
    """
    Caller-side thresholds and model geometry.

    Thresholds are not clamped: 0 keeps any strictly positive score, an IoU threshold
    of 1 effectively disables suppression.
    """

    schema_version: int = 1
    score_threshold: float = 0.25
    iou_threshold: float = 0.35
    keypoint_threshold: float = 0.5
    num_keypoints: int = NUM_KEYPOINTS
    stride: int = 32
    # (width, height) for models with a fixed input size; None means dynamic input.
    input_shape: Optional[Tuple[int, int]] = None
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("pose config schema_version must be 1")
        if self.num_keypoints <= 0:
            raise ValueError("num_keypoints must be > 0")
        if self.stride <= 0:
            raise ValueError("stride must be > 0")
        if self.input_shape is not None:
            if len(self.input_shape) != 2 or min(self.input_shape) <= 0:
                raise ValueError("input_shape must be [width, height] with positive values")
        if self.max_detections is not None and self.max_detections <= 0:
            raise ValueError("max_detections must be > 0 if provided")

    def post_config(self, apply_nms: bool = True) -> PosePostConfig:
        return PosePostConfig(
            score_threshold=self.score_threshold,
            iou_threshold=self.iou_threshold,
            num_keypoints=self.num_keypoints,
            max_detections=self.max_detections,
            apply_nms=apply_nms,
        )


def _optional_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    if key not in payload or payload[key] is None:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = _optional_int(payload, key, None)
    if value is None:
        raise ValueError(f"{key} must be an integer")
    return value


def load_pose_config(path: Path) -> PoseConfig:
    if not path.exists():
        raise FileNotFoundError(f"Pose config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pose config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pose config must be a JSON object")

    allowed = {
        "schema_version",
        "score_threshold",
        "iou_threshold",
        "keypoint_threshold",
        "num_keypoints",
        "stride",
        "input_shape",
        "max_detections",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pose config keys: {unknown}")

    input_shape = payload.get("input_shape")
    if input_shape is not None:
        if (
            not isinstance(input_shape, list)
            or len(input_shape) != 2
            or any(isinstance(v, bool) or not isinstance(v, int) for v in input_shape)
        ):
            raise ValueError("input_shape must be a [width, height] list of integers")
        input_shape = (int(input_shape[0]), int(input_shape[1]))

    defaults = PoseConfig()
    return PoseConfig(
        schema_version=_require_int(payload, "schema_version"),
        score_threshold=_optional_number(payload, "score_threshold", defaults.score_threshold),
        iou_threshold=_optional_number(payload, "iou_threshold", defaults.iou_threshold),
        keypoint_threshold=_optional_number(payload, "keypoint_threshold", defaults.keypoint_threshold),
        num_keypoints=_optional_int(payload, "num_keypoints", defaults.num_keypoints),
        stride=_optional_int(payload, "stride", defaults.stride),
        input_shape=input_shape,
        max_detections=_optional_int(payload, "max_detections", None),
    )
