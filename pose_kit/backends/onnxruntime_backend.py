from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np


PathLike = Union[str, Path]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: YOLO pose exports use "images" -> "output0"; None picks the first I/O
    - warmup_shape: NCHW shape of the zero tensor run once after loading; None skips warm-up
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = "output0"
    warmup_shape: Optional[Tuple[int, int, int, int]] = (1, 3, 640, 640)


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Expects an NCHW float32 blob, typically shaped (1, 3, H, W).
    Returns the pose output as a NumPy array shaped (1, 5 + 3K, N).
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        LOGGER.info("Loading ONNX model %s (providers=%s)", self.model_path, providers)
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        output_names = [o.name for o in self.session.get_outputs()]
        if cfg.output_name is None:
            self.output_name = output_names[0]
        elif cfg.output_name in output_names:
            self.output_name = cfg.output_name
        else:
            raise ValueError(f"Output {cfg.output_name!r} not found in model outputs {output_names}")

        if cfg.warmup_shape is not None:
            self.warmup(cfg.warmup_shape)

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def warmup(self, shape: Tuple[int, ...]) -> np.ndarray:
        """
        Run one zero-filled inference so lazy graph compilation happens before the first real frame.
        """

        LOGGER.info("Warming up %s with input shape %s", self.model_path.name, tuple(shape))
        return self.infer(np.zeros(shape, dtype=np.float32))

    def infer(self, blob: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> np.ndarray:
        inputs: Dict[str, Any] = {self.input_name: blob}
        if extra_inputs:
            inputs.update(extra_inputs)
        outputs = self.session.run([self.output_name], inputs)
        return outputs[0]
