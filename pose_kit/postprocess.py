from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .nms import NMSConfig, nms
from .types import Detection, Keypoint


NUM_BBOX_ATTRS = 5
NUM_KEYPOINTS = 17
KEYPOINT_DIMS = 3


@dataclass
class PosePostConfig:
    """
    Settings for YOLO pose post-processing.
    """

    score_threshold: float = 0.25
    iou_threshold: float = 0.35
    num_keypoints: int = NUM_KEYPOINTS
    # None keeps every detection that survives NMS.
    max_detections: Optional[int] = None
    # If False, skip NMS and only sort by score (then cut to `max_detections`).
    apply_nms: bool = True


def num_channels(num_keypoints: int = NUM_KEYPOINTS) -> int:
    return NUM_BBOX_ATTRS + KEYPOINT_DIMS * num_keypoints


def _as_channels_first(
    preds: np.ndarray,
    num_keypoints: int,
    num_anchors: Optional[int],
) -> np.ndarray:
    """
    View the model output as (C, N) without copying.

    Accepts (1, C, N), (C, N), or a flat row-major buffer of length C * N.
    """

    p = np.asarray(preds)
    channels = num_channels(num_keypoints)

    if p.ndim == 1:
        if num_anchors is None:
            if p.size % channels != 0:
                raise ValueError(f"Flat buffer of {p.size} values does not split into {channels} channels.")
            num_anchors = p.size // channels
        if p.size != channels * num_anchors:
            raise ValueError(
                f"Flat buffer of {p.size} values does not match {channels} channels x {num_anchors} anchors."
            )
        return p.reshape(channels, num_anchors)

    if p.ndim == 3:
        if p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]

    if p.ndim != 2 or p.shape[0] != channels:
        raise ValueError(f"Expected pose output shaped (1, {channels}, N), got {np.asarray(preds).shape}.")
    if num_anchors is not None and p.shape[1] != num_anchors:
        raise ValueError(f"Expected {num_anchors} anchors, got {p.shape[1]}.")
    return p


def validate_output(preds: np.ndarray, num_keypoints: int = NUM_KEYPOINTS) -> Tuple[int, int]:
    """
    Check an inference result before decoding. Returns (channels, anchors).
    """

    p = _as_channels_first(preds, num_keypoints, None)
    return int(p.shape[0]), int(p.shape[1])


def decode(
    preds: np.ndarray,
    score_threshold: float,
    x_ratio: float,
    y_ratio: float,
    *,
    num_keypoints: int = NUM_KEYPOINTS,
    num_anchors: Optional[int] = None,
) -> List[Detection]:
    """
    Decode a raw pose output into detections in source-image pixels.

    Layout per anchor i (N anchors):
        channels 0..3: cx, cy, w, h (preprocessed pixels)
        channel 4: score
        channels 5 + 3k .. 7 + 3k: keypoint k as (x, y, score)

    Anchors with score <= `score_threshold` are dropped. The result keeps anchor order
    and every detection carries all `num_keypoints` keypoints, whatever their confidence.
    """

    p = _as_channels_first(preds, num_keypoints, num_anchors)

    scores = p[4].astype(np.float64)
    kept = np.nonzero(scores > score_threshold)[0]
    if kept.size == 0:
        return []

    cx = p[0, kept].astype(np.float64)
    cy = p[1, kept].astype(np.float64)
    w = p[2, kept].astype(np.float64)
    h = p[3, kept].astype(np.float64)

    xs = (cx - 0.5 * w) * x_ratio
    ys = (cy - 0.5 * h) * y_ratio
    ws = w * x_ratio
    hs = h * y_ratio

    # (K, 3, M): keypoint, (x, y, score), kept anchor
    kpts = p[NUM_BBOX_ATTRS:, kept].astype(np.float64).reshape(num_keypoints, KEYPOINT_DIMS, kept.size)
    kpt_x = kpts[:, 0, :] * x_ratio
    kpt_y = kpts[:, 1, :] * y_ratio
    kpt_s = kpts[:, 2, :]

    detections: List[Detection] = []
    for j, anchor in enumerate(kept):
        keypoints = [
            Keypoint(x=float(kpt_x[k, j]), y=float(kpt_y[k, j]), score=float(kpt_s[k, j]))
            for k in range(num_keypoints)
        ]
        detections.append(
            Detection(
                x=float(xs[j]),
                y=float(ys[j]),
                width=float(ws[j]),
                height=float(hs[j]),
                score=float(scores[anchor]),
                keypoints=keypoints,
            )
        )
    return detections


class PosePostprocessor:
    """
    Decode + NMS for YOLO pose exports shaped (1, 5 + 3K, N), e.g. 56 x 8400 for yolo11n-pose.

    Input must be NumPy; torch outputs should be `.detach().cpu().numpy()`-ed first.
    """

    def __init__(self, cfg: PosePostConfig):
        self.cfg = cfg

    def process(
        self,
        preds: np.ndarray,
        ratio: Tuple[float, float] = (1.0, 1.0),
    ) -> List[Detection]:
        """
        Convert a raw model output into filtered detections in original image coordinates.

        Args:
            preds: model output for a single image
            ratio: (x_ratio, y_ratio) = original size / preprocessed size
        """

        x_ratio, y_ratio = ratio
        detections = decode(
            preds,
            self.cfg.score_threshold,
            x_ratio,
            y_ratio,
            num_keypoints=self.cfg.num_keypoints,
        )
        if not detections:
            return []

        if self.cfg.apply_nms:
            keep = self._apply_nms(detections)
        else:
            keep = self._select_topk(detections)
        return [detections[i] for i in keep]

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _apply_nms(self, detections: List[Detection]) -> List[int]:
        boxes = np.array([det.bbox for det in detections], dtype=np.float64)
        scores = np.array([det.score for det in detections], dtype=np.float64)
        nms_cfg = NMSConfig(iou_threshold=self.cfg.iou_threshold, max_detections=self.cfg.max_detections)
        return nms(boxes, scores, nms_cfg).tolist()

    def _select_topk(self, detections: List[Detection]) -> List[int]:
        scores = np.array([det.score for det in detections], dtype=np.float64)
        order = np.argsort(-scores, kind="stable")
        if self.cfg.max_detections is not None:
            order = order[: self.cfg.max_detections]
        return order.tolist()
