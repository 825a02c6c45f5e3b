"""Image classification model wrapper.

Wraps an ONNX Runtime session for a ResNet-50 style classifier with a single
image input and a probability vector output.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import numpy as np

from snapclassify.errors import InferenceError
from snapclassify.ml.preprocessing import INPUT_SIZE

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

logger = logging.getLogger(__name__)


class ImageClassifier(Protocol):
    """Protocol for image classification models."""

    @property
    def input_size(self) -> int:
        """Return the square input edge length."""
        ...

    @property
    def num_outputs(self) -> int | None:
        """Return the static output vector length, if the model declares one."""
        ...

    def predict(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run the model on a preprocessed tensor.

        Args:
            tensor: (S, S, 3) or (1, S, S, 3) float32 array.

        Returns:
            1-D probability vector.
        """
        ...

    def close(self) -> None:
        """Release the underlying model."""
        ...


class TensorLayout(StrEnum):
    NHWC = "NHWC"
    NCHW = "NCHW"


class OnnxImageClassifier:
    """Runs a single-input ONNX classifier synchronously on the calling thread."""

    def __init__(self, session: InferenceSession, *, default_size: int = INPUT_SIZE) -> None:
        self._session: InferenceSession | None = session
        model_input = session.get_inputs()[0]
        self._input_name: str = model_input.name
        self._layout, self._input_size = _detect_layout(list(model_input.shape), default_size)
        self._num_outputs = _static_length(list(session.get_outputs()[0].shape))
        logger.info(
            "Classifier input %s layout=%s size=%d outputs=%s",
            self._input_name,
            self._layout,
            self._input_size,
            self._num_outputs,
        )

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def layout(self) -> TensorLayout:
        return self._layout

    @property
    def num_outputs(self) -> int | None:
        return self._num_outputs

    @property
    def is_closed(self) -> bool:
        return self._session is None

    def close(self) -> None:
        self._session = None
        logger.info("Classifier session released.")

    def predict(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run inference and return the flattened first output.

        Raises:
            InferenceError: On a malformed input shape, a closed model, or a runtime failure.
        """
        if self._session is None:
            raise InferenceError("Model is closed")

        expected = (self._input_size, self._input_size, 3)
        batch = tensor[np.newaxis, ...] if tensor.ndim == 3 else tensor
        if batch.shape[1:] != expected or batch.shape[0] != 1:
            raise InferenceError(f"Malformed input shape {tuple(tensor.shape)}, expected {(1, *expected)}")

        batch = batch.astype(np.float32, copy=False)
        if self._layout is TensorLayout.NCHW:
            batch = np.ascontiguousarray(batch.transpose(0, 3, 1, 2))

        try:
            outputs = self._session.run(None, {self._input_name: batch})
        except Exception as exc:
            raise InferenceError(str(exc)) from exc

        probabilities = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        logger.debug("Output probabilities (first 10): %s", probabilities[:10].tolist())
        return probabilities


def _detect_layout(shape: list[object], default_size: int) -> tuple[TensorLayout, int]:
    """Infer NHWC vs NCHW and the spatial size from a model input shape.

    Dynamic dimensions (strings or None) fall back to default_size.
    """
    if len(shape) != 4:
        raise InferenceError(f"Unsupported model input rank {len(shape)}: {shape}")

    if shape[3] == 3:
        layout, spatial = TensorLayout.NHWC, shape[1]
    elif shape[1] == 3:
        layout, spatial = TensorLayout.NCHW, shape[2]
    else:
        raise InferenceError(f"Cannot find a 3-channel axis in model input shape {shape}")

    size = spatial if isinstance(spatial, int) else default_size
    return layout, size


def _static_length(shape: list[object]) -> int | None:
    dims = [d for d in shape[1:] if d != 1]
    if len(dims) == 1 and isinstance(dims[0], int):
        return dims[0]
    return None
