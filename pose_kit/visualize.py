from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np

from .types import Detection


# COCO-17 keypoint connectivity.
SKELETON: Sequence[Tuple[int, int]] = (
    (15, 13),
    (13, 11),
    (16, 14),
    (14, 12),  # legs
    (11, 12),  # hips
    (5, 11),
    (6, 12),  # torso
    (5, 6),  # shoulders
    (5, 7),
    (6, 8),
    (7, 9),
    (8, 10),  # arms
    (1, 2),
    (0, 1),
    (0, 2),
    (1, 3),
    (2, 4),  # face
    (3, 5),
    (4, 6),  # ear to shoulder
)

# OpenCV colors are BGR.
BOX_COLOR = (0, 128, 0)
SKELETON_COLOR = (0, 165, 255)
KEYPOINT_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 255)


def draw_poses(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    keypoint_threshold: float = 0.5,
    skeleton: Sequence[Tuple[int, int]] = SKELETON,
    show_score: bool = True,
    font_scale: float = 0.5,
    font_thickness: int = 1,
    keypoint_radius: int = 3,
) -> np.ndarray:
    """
    Draw boxes, score labels and keypoint skeletons on an OpenCV BGR image and return a copy.

    Keypoints scoring below `keypoint_threshold` are not drawn; an edge is drawn only when
    both of its endpoints score above it. Box line width scales with the image diagonal.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_poses(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] not in (3, 4):
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    if image_bgr.shape[2] == 4:
        out = cv2.cvtColor(image_bgr, cv2.COLOR_BGRA2BGR)
    else:
        out = image_bgr.copy()
    h, w = out.shape[:2]
    box_thickness = max(1, int(round(math.hypot(w, h) / 250)))

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), BOX_COLOR, thickness=box_thickness)

        if show_score:
            label = f"score {det.score:.2f}"
            (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
            # Place label above the box if possible, else inside.
            y_text_top = y1i - th - baseline
            if y_text_top < 0:
                y_text_top = y1i

            x_text_right = min(x1i + tw, w - 1)
            y_text_bottom = min(y_text_top + th + baseline, h - 1)

            cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), BOX_COLOR, thickness=-1)
            cv2.putText(
                out,
                label,
                (x1i, min(y_text_top + th, h - 1)),
                cv2.FONT_HERSHEY_SIMPLEX,
                font_scale,
                TEXT_COLOR,
                thickness=font_thickness,
                lineType=cv2.LINE_AA,
            )

        kpts = det.keypoints
        for i, j in skeleton:
            if i >= len(kpts) or j >= len(kpts):
                continue
            a, b = kpts[i], kpts[j]
            if a.score > keypoint_threshold and b.score > keypoint_threshold:
                cv2.line(
                    out,
                    (int(round(a.x)), int(round(a.y))),
                    (int(round(b.x)), int(round(b.y))),
                    SKELETON_COLOR,
                    thickness=2,
                    lineType=cv2.LINE_AA,
                )

        for kp in kpts:
            if kp.score < keypoint_threshold:
                continue
            cv2.circle(out, (int(round(kp.x)), int(round(kp.y))), keypoint_radius, KEYPOINT_COLOR, thickness=-1)

    return out
