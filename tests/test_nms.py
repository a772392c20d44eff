import unittest

import numpy as np

from pose_kit.nms import NMSConfig, box_iou, nms, suppress
from pose_kit.types import Detection


def _det(x: float, y: float, w: float, h: float, score: float) -> Detection:
    return Detection(x=x, y=y, width=w, height=h, score=score)


class TestBoxIou(unittest.TestCase):
    def test_overlapping_pair(self) -> None:
        iou = box_iou((10, 10, 50, 50), (15, 15, 50, 50))
        self.assertAlmostEqual(iou, 2025.0 / 2975.0, places=9)

    def test_symmetry(self) -> None:
        rng = np.random.default_rng(7)
        for _ in range(50):
            a = tuple(float(v) for v in rng.uniform([0, 0, 1, 1], [100, 100, 60, 60]))
            b = tuple(float(v) for v in rng.uniform([0, 0, 1, 1], [100, 100, 60, 60]))
            self.assertEqual(box_iou(a, b), box_iou(b, a))

    def test_self_iou_is_one(self) -> None:
        self.assertEqual(box_iou((10, 10, 50, 50), (10, 10, 50, 50)), 1.0)
        self.assertAlmostEqual(box_iou((0.1, 0.2, 3.3, 4.7), (0.1, 0.2, 3.3, 4.7)), 1.0, places=9)

    def test_disjoint_and_touching(self) -> None:
        self.assertEqual(box_iou((0, 0, 10, 10), (20, 20, 10, 10)), 0.0)
        # Shared edge only: zero-width intersection.
        self.assertEqual(box_iou((0, 0, 10, 10), (10, 0, 10, 10)), 0.0)

    def test_degenerate_boxes(self) -> None:
        self.assertEqual(box_iou((5, 5, 0, 0), (5, 5, 0, 0)), 0.0)
        self.assertEqual(box_iou((5, 5, 0, 10), (0, 0, 20, 20)), 0.0)


class TestSuppress(unittest.TestCase):
    def test_end_to_end_pair(self) -> None:
        dets = [_det(10, 10, 50, 50, 0.9), _det(15, 15, 50, 50, 0.8)]
        self.assertEqual(suppress(dets, 0.5), [0])
        self.assertEqual(suppress(dets, 0.7), [0, 1])

    def test_order_is_by_score(self) -> None:
        dets = [_det(0, 0, 10, 10, 0.3), _det(100, 100, 10, 10, 0.9), _det(200, 200, 10, 10, 0.6)]
        self.assertEqual(suppress(dets, 0.5), [1, 2, 0])

    def test_empty_and_single(self) -> None:
        self.assertEqual(suppress([], 0.5), [])
        self.assertEqual(suppress([_det(1, 2, 3, 4, 0.1)], 0.0), [0])

    def test_identical_boxes_keep_best(self) -> None:
        dets = [_det(10, 10, 40, 40, s) for s in (0.4, 0.7, 0.9, 0.5)]
        self.assertEqual(suppress(dets, 0.99), [2])

    def test_ties_keep_input_order(self) -> None:
        dets = [_det(0, 0, 10, 10, 0.5), _det(100, 0, 10, 10, 0.5), _det(0, 0, 10, 10, 0.5)]
        self.assertEqual(suppress(dets, 0.5), [0, 1])
        self.assertEqual(suppress(dets, 0.5), suppress(dets, 0.5))

    def test_threshold_one_keeps_everything(self) -> None:
        dets = [_det(10, 10, 50, 50, 0.9), _det(15, 15, 50, 50, 0.8), _det(12, 12, 50, 50, 0.7)]
        self.assertEqual(sorted(suppress(dets, 1.0)), [0, 1, 2])

    def test_idempotent(self) -> None:
        rng = np.random.default_rng(3)
        xy = rng.uniform(0, 200, size=(40, 2))
        wh = rng.uniform(20, 80, size=(40, 2))
        scores = rng.uniform(0.3, 1.0, size=40)
        dets = [_det(*xy[i], *wh[i], float(scores[i])) for i in range(40)]

        kept = suppress(dets, 0.4)
        survivors = [dets[i] for i in kept]
        again = suppress(survivors, 0.4)
        self.assertEqual([kept[j] for j in again], kept)

    def test_lower_threshold_keeps_fewer(self) -> None:
        dets = [
            _det(0, 0, 100, 100, 0.9),
            _det(10, 0, 100, 100, 0.8),  # IoU 0.818 with the first
            _det(20, 0, 100, 100, 0.7),  # IoU 0.667 with the first
            _det(500, 500, 50, 50, 0.6),
        ]
        counts = [len(suppress(dets, t)) for t in (0.9, 0.8, 0.7, 0.6, 0.5, 0.1)]
        self.assertEqual(counts, sorted(counts, reverse=True))
        self.assertEqual(counts[0], 4)
        self.assertEqual(counts[-1], 2)


class TestArrayNms(unittest.TestCase):
    def test_empty(self) -> None:
        keep = nms(np.zeros((0, 4)), np.zeros((0,)), NMSConfig())
        self.assertEqual(keep.shape, (0,))

    def test_max_detections(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [50, 50, 10, 10], [100, 100, 10, 10]], dtype=np.float32)
        scores = np.array([0.2, 0.9, 0.5], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5, max_detections=2))
        self.assertEqual(keep.tolist(), [1, 2])

    def test_zero_area_boxes_do_not_divide_by_zero(self) -> None:
        boxes = np.array([[5, 5, 0, 0], [5, 5, 0, 0]], dtype=np.float64)
        scores = np.array([0.9, 0.8])
        with np.errstate(all="raise"):
            keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [0, 1])

    def test_mismatched_lengths_rejected(self) -> None:
        with self.assertRaises(ValueError):
            nms(np.zeros((2, 4)), np.zeros((3,)), NMSConfig())


if __name__ == "__main__":
    unittest.main()
