from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class PreparedImage:
    blob: np.ndarray
    width: int
    height: int
    orig_size: Tuple[int, int]
    ratio: Tuple[float, float]


def align_to_stride(stride: int, width: int, height: int) -> Tuple[int, int]:
    """
    Round width/height to the nearest multiple of `stride`.

    A remainder of at least half a stride rounds up, anything smaller rounds down.
    Positive sizes never collapse to zero: the smallest result is one stride.
    """

    if stride <= 0:
        raise ValueError(f"stride must be > 0, got {stride}")
    if width <= 0 or height <= 0:
        raise ValueError(f"width/height must be > 0, got {(width, height)}")

    def _align(v: int) -> int:
        v = int(v)
        base = (v // stride) * stride
        if v % stride >= stride / 2:
            base += stride
        return max(base, stride)

    return _align(width), _align(height)


def _to_blob(image_bgr: np.ndarray) -> np.ndarray:
    # BGR -> RGB, normalize, HWC -> CHW, add batch
    blob = image_bgr[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.transpose(blob, (2, 0, 1))[None, ...]
    return np.ascontiguousarray(blob)


def _check_image(image_bgr: np.ndarray) -> None:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] not in (3, 4):
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")


def _import_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for preprocessing. Install with `pip install opencv-python`.") from e
    return cv2


def prepare(image_bgr: np.ndarray, stride: int = 32) -> PreparedImage:
    """
    Resize an image to its stride-aligned size and turn it into a model blob.

    Returns the blob (1, 3, H, W) float32 RGB in [0, 1], the processed size, and the
    (x_ratio, y_ratio) that maps model coordinates back to the source image.
    """

    _check_image(image_bgr)
    cv2 = _import_cv2()

    if image_bgr.shape[2] == 4:
        image_bgr = cv2.cvtColor(image_bgr, cv2.COLOR_BGRA2BGR)

    orig_h, orig_w = image_bgr.shape[:2]
    div_w, div_h = align_to_stride(stride, orig_w, orig_h)

    img = image_bgr
    if (orig_w, orig_h) != (div_w, div_h):
        img = cv2.resize(image_bgr, (div_w, div_h), interpolation=cv2.INTER_LINEAR)

    return PreparedImage(
        blob=_to_blob(img),
        width=div_w,
        height=div_h,
        orig_size=(orig_w, orig_h),
        ratio=(orig_w / div_w, orig_h / div_h),
    )


def prepare_fixed(
    image_bgr: np.ndarray,
    input_shape: Tuple[int, int],
    stride: int = 32,
    color: Tuple[int, int, int] = (0, 0, 0),
) -> PreparedImage:
    """
    Prepare an image for a model with a fixed input size.

    The image is resized to its stride-aligned size, padded right/bottom to a square,
    then resized to `input_shape` (width, height). Ratios account for all three steps.
    """

    _check_image(image_bgr)
    cv2 = _import_cv2()

    if image_bgr.shape[2] == 4:
        image_bgr = cv2.cvtColor(image_bgr, cv2.COLOR_BGRA2BGR)

    in_w, in_h = input_shape
    if in_w <= 0 or in_h <= 0:
        raise ValueError(f"input_shape must be positive, got {input_shape}")

    orig_h, orig_w = image_bgr.shape[:2]
    div_w, div_h = align_to_stride(stride, orig_w, orig_h)
    img = cv2.resize(image_bgr, (div_w, div_h), interpolation=cv2.INTER_LINEAR)

    max_dim = max(div_w, div_h)
    img = cv2.copyMakeBorder(
        img, 0, max_dim - div_h, 0, max_dim - div_w, cv2.BORDER_CONSTANT, value=color
    )
    if (max_dim, max_dim) != (in_w, in_h):
        img = cv2.resize(img, (in_w, in_h), interpolation=cv2.INTER_LINEAR)

    x_ratio = (max_dim / in_w) * (orig_w / div_w)
    y_ratio = (max_dim / in_h) * (orig_h / div_h)
    return PreparedImage(
        blob=_to_blob(img),
        width=in_w,
        height=in_h,
        orig_size=(orig_w, orig_h),
        ratio=(x_ratio, y_ratio),
    )


def prepare_for_model(
    image_bgr: np.ndarray,
    stride: int = 32,
    input_shape: Optional[Tuple[int, int]] = None,
) -> PreparedImage:
    """Dispatch to `prepare_fixed` when the model has a fixed input size, `prepare` otherwise."""

    if input_shape is None:
        return prepare(image_bgr, stride=stride)
    return prepare_fixed(image_bgr, input_shape, stride=stride)
