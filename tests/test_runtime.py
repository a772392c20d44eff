import tempfile
import unittest
from pathlib import Path

import numpy as np

from pose_kit.config import PoseConfig
from pose_kit.postprocess import num_channels
from pose_kit.runtime import PosePipeline, PoseResult, find_project_root, load_pipeline, resolve_path


class _FakeModel:
    """
    Stands in for an inference session: records the blob, answers with fixed anchors
    expressed in preprocessed-pixel units.
    """

    def __init__(self, anchors, num_anchors: int = 32):
        self.anchors = anchors
        self.num_anchors = num_anchors
        self.calls = []

    def __call__(self, blob: np.ndarray) -> np.ndarray:
        self.calls.append(blob.shape)
        p = np.zeros((num_channels(), self.num_anchors), dtype=np.float32)
        for i, (cx, cy, w, h, score) in enumerate(self.anchors):
            p[0:5, i] = [cx, cy, w, h, score]
            p[5::3, i] = cx
            p[6::3, i] = cy
            p[7::3, i] = 0.9
        return p[None, ...]


class TestPosePipeline(unittest.TestCase):
    def test_dynamic_input_maps_back_to_source(self) -> None:
        model = _FakeModel(
            [
                (48, 32, 96, 64, 0.9),  # covers the whole 96x64 model input
                (50, 34, 96, 64, 0.6),  # near-duplicate, suppressed
                (10, 10, 4, 4, 0.1),  # below threshold
            ]
        )
        pipe = PosePipeline(model, config=PoseConfig(score_threshold=0.25, iou_threshold=0.5))
        img = np.zeros((70, 100, 3), dtype=np.uint8)

        result = pipe.run(img)
        self.assertIsInstance(result, PoseResult)
        self.assertEqual(model.calls, [(1, 3, 64, 96)])
        self.assertGreaterEqual(result.inference_ms, 0.0)
        self.assertEqual(len(result.detections), 1)

        det = result.detections[0]
        x, y, w, h = det.bbox
        self.assertAlmostEqual(x, 0.0, delta=1e-6)
        self.assertAlmostEqual(y, 0.0, delta=1e-6)
        self.assertAlmostEqual(w, 100.0, delta=1e-6)
        self.assertAlmostEqual(h, 70.0, delta=1e-6)
        self.assertEqual(len(det.keypoints), 17)
        self.assertAlmostEqual(det.keypoints[0].x, 50.0, delta=1e-6)
        self.assertAlmostEqual(det.keypoints[0].y, 35.0, delta=1e-6)

    def test_fixed_input_shape(self) -> None:
        model = _FakeModel([(320, 320, 640, 640, 0.9)])
        pipe = PosePipeline(model, config=PoseConfig(input_shape=(640, 640)))
        img = np.zeros((100, 200, 3), dtype=np.uint8)

        dets = pipe(img)
        self.assertEqual(model.calls, [(1, 3, 640, 640)])
        self.assertEqual(len(dets), 1)
        # The padded square covers 200 x ~208 source pixels.
        self.assertAlmostEqual(dets[0].width, 200.0, delta=1e-4)
        self.assertAlmostEqual(dets[0].height, 640 * (192 / 640) * (100 / 96), delta=1e-4)

    def test_no_detections(self) -> None:
        pipe = PosePipeline(_FakeModel([]))
        self.assertEqual(pipe(np.zeros((64, 64, 3), dtype=np.uint8)), [])

    def test_malformed_output_rejected(self) -> None:
        pipe = PosePipeline(lambda blob: np.zeros((1, 84, 10), dtype=np.float32))
        with self.assertRaises(ValueError):
            pipe(np.zeros((64, 64, 3), dtype=np.uint8))


class TestPaths(unittest.TestCase):
    def test_find_project_root_and_resolve(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name).resolve()
        (root / "pyproject.toml").write_text("", encoding="utf-8")
        nested = root / "a" / "b"
        nested.mkdir(parents=True)

        self.assertEqual(find_project_root(nested), root)
        self.assertEqual(resolve_path("models/m.onnx", root=root), root / "models" / "m.onnx")
        self.assertEqual(resolve_path(root / "x.onnx"), root / "x.onnx")

    def test_load_pipeline_rejects_non_onnx(self) -> None:
        with self.assertRaises(ValueError):
            load_pipeline("weights/model.pt", root=tempfile.gettempdir())


if __name__ == "__main__":
    unittest.main()
