"""
Lightweight YOLO pose post-processing helpers.

Turns the raw (1, 5 + 3K, N) output of a YOLO pose export into person boxes with
keypoints, removes overlaps with greedy NMS, and draws the result. Core pieces only
need NumPy; OpenCV is used for preprocessing/drawing and ONNX Runtime for inference.
"""

from .types import Detection, Keypoint
from .nms import NMSConfig, box_iou, nms, suppress
from .postprocess import PosePostConfig, PosePostprocessor, decode, validate_output
from .preprocess import PreparedImage, align_to_stride, prepare, prepare_fixed, prepare_for_model
from .config import PoseConfig, load_pose_config
from .runtime import PosePipeline, PoseResult, load_pipeline, find_project_root, resolve_path
from .visualize import SKELETON, draw_poses

__all__ = [
    "Detection",
    "Keypoint",
    "NMSConfig",
    "box_iou",
    "nms",
    "suppress",
    "PosePostConfig",
    "PosePostprocessor",
    "decode",
    "validate_output",
    "PreparedImage",
    "align_to_stride",
    "prepare",
    "prepare_fixed",
    "prepare_for_model",
    "PoseConfig",
    "load_pose_config",
    "PosePipeline",
    "PoseResult",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
    "SKELETON",
    "draw_poses",
]
