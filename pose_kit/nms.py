from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .types import Detection


Box = Tuple[float, float, float, float]


@dataclass
class NMSConfig:
    iou_threshold: float = 0.35
    max_detections: Optional[int] = None


def box_iou(a: Box, b: Box) -> float:
    """
    IoU of two (x, y, w, h) boxes. Zero when they do not overlap or the union is empty.
    """

    ax, ay, aw, ah = a
    bx, by, bw, bh = b

    ix1 = max(ax, bx)
    iy1 = max(ay, by)
    ix2 = min(ax + aw, bx + bw)
    iy2 = min(ay + ah, by + bh)
    if ix2 <= ix1 or iy2 <= iy1:
        return 0.0

    inter = (ix2 - ix1) * (iy2 - iy1)
    union = aw * ah + bw * bh - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xywh (top-left + size) and scores shape (N,).
    Returns indices of boxes to keep, best score first. Equal scores keep their input order.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int32)
    if scores.shape[0] != boxes.shape[0]:
        raise ValueError(f"Got {boxes.shape[0]} boxes but {scores.shape[0]} scores.")

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = x1 + boxes[:, 2]
    y2 = y1 + boxes[:, 3]
    areas = boxes[:, 2] * boxes[:, 3]

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(int(i))

        rest = order[1:]
        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[rest] - inter
        iou = np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)

        order = rest[iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int32)


def suppress(detections: Sequence[Detection], iou_threshold: float = 0.35) -> List[int]:
    """
    Indices of `detections` surviving greedy NMS, in selection order (highest score first).
    """

    if len(detections) == 0:
        return []
    boxes = np.array([det.bbox for det in detections], dtype=np.float64)
    scores = np.array([det.score for det in detections], dtype=np.float64)
    keep = nms(boxes, scores, NMSConfig(iou_threshold=iou_threshold))
    return keep.tolist()
