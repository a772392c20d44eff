from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from .config import PoseConfig
from .postprocess import PosePostprocessor, validate_output
from .preprocess import PreparedImage, prepare_for_model
from .types import Detection


PathLike = Union[str, Path]

LOGGER = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when `pose_kit` is vendored as `A/pose_kit` and models live in `A/models`.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, project root (auto) otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PoseResult:
    detections: List[Detection]
    inference_ms: float


class PosePipeline:
    """
    Plug-and-play pipeline: preprocess (stride resize) -> inference -> decode + NMS.

    The pipeline expects BGR images (OpenCV-style) as `np.ndarray` and returns
    a list of `Detection` in original image coordinates.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        config: PoseConfig = PoseConfig(),
        apply_nms: bool = True,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.config = config
        self.post = PosePostprocessor(config.post_config(apply_nms=apply_nms))

    def preprocess(self, image_bgr: np.ndarray) -> PreparedImage:
        return prepare_for_model(image_bgr, stride=self.config.stride, input_shape=self.config.input_shape)

    def run(self, image_bgr: np.ndarray) -> PoseResult:
        prep = self.preprocess(image_bgr)

        start = time.perf_counter()
        preds = self._infer_fn(prep.blob)
        inference_ms = (time.perf_counter() - start) * 1000.0

        validate_output(preds, num_keypoints=self.config.num_keypoints)
        detections = self.post.process(preds, ratio=prep.ratio)
        LOGGER.debug("%d pose detections in %.2f ms (input %dx%d)", len(detections), inference_ms, prep.width, prep.height)
        return PoseResult(detections=detections, inference_ms=inference_ms)

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        return self.run(image_bgr).detections


def load_pipeline(
    model_path: PathLike,
    *,
    root: Optional[PathLike] = "auto",
    config: PoseConfig = PoseConfig(),
    apply_nms: bool = True,
    providers: Optional[Sequence[str]] = None,
    input_name: Optional[str] = None,
    output_name: Optional[str] = "output0",
    warmup: bool = True,
) -> PosePipeline:
    """
    Create a pose pipeline for an ONNX model on disk.

    Typical usage when `pose_kit` is vendored into another repo:
        pipe = load_pipeline("models/yolo11n-pose.onnx")  # resolves from project root by default

    Args:
        model_path: path to the .onnx file; relative paths resolve against project root by default
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
        providers: ONNX Runtime execution providers in priority order (the "device")
        warmup: run one zero-filled inference at the model's input shape before returning
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    resolved = resolve_path(model_path, root=root)
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only ONNX models are supported, got '{resolved.suffix}'.")

    warmup_shape = None
    if warmup:
        in_w, in_h = config.input_shape if config.input_shape is not None else (640, 640)
        warmup_shape = (1, 3, in_h, in_w)

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=providers,
            input_name=input_name,
            output_name=output_name,
            warmup_shape=warmup_shape,
        ),
    )
    return PosePipeline(
        ort_backend.infer,
        backend=ort_backend,
        backend_name="onnxruntime",
        config=config,
        apply_nms=apply_nms,
    )
