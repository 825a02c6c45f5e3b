"""The single classification screen: one picked image, one status line."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from snapclassify.errors import ImageDecodeError, InferenceError
from snapclassify.ml.postprocessing import Prediction
from snapclassify.ml.preprocessing import decode_image, encode_preview

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from snapclassify.engine import ClassifierEngine
    from snapclassify.ml.postprocessing import ClassificationFailure

logger = logging.getLogger(__name__)

STATUS_IDLE = "Pick an image to classify."
STATUS_SELECTED = "Image selected. Click Classify."
STATUS_LOAD_FAILED = "Failed to load image."
STATUS_NO_IMAGE = "Please pick an image first"


@dataclass(frozen=True)
class ClassifyOutcome:
    """What a classify action showed the user."""

    status: str
    result: Prediction | ClassificationFailure | None
    tags: list[tuple[str, float]]

    @property
    def prediction(self) -> Prediction | None:
        return self.result if isinstance(self.result, Prediction) else None


class ClassifierSession:
    """In-memory state for one user session.

    A failed action only touches the status text; the previously picked image
    stays in place.
    """

    def __init__(self, engine: ClassifierEngine, *, max_pixels: int | None = None) -> None:
        self.engine = engine
        self._max_pixels = max_pixels
        self._image: NDArray[np.uint8] | None = None
        self._status = STATUS_IDLE

    @property
    def status(self) -> str:
        return self._status

    @property
    def image(self) -> NDArray[np.uint8] | None:
        return self._image

    @property
    def has_image(self) -> bool:
        return self._image is not None

    def pick_image(self, data: bytes) -> bool:
        """Decode and select an image. Returns False if decoding failed."""
        try:
            image = decode_image(data, max_pixels=self._max_pixels)
        except ImageDecodeError:
            logger.exception("Error loading image")
            self._status = STATUS_LOAD_FAILED
            return False

        self._image = image
        self._status = STATUS_SELECTED
        return True

    def preview(self) -> bytes | None:
        """PNG bytes of the currently selected image."""
        image = self._image
        if image is None:
            return None
        return encode_preview(image)

    def classify(self, top_k: int = 1) -> ClassifyOutcome:
        """Classify the selected image and update the status text."""
        if self._image is None:
            self._status = STATUS_NO_IMAGE
            return ClassifyOutcome(self._status, None, [])

        try:
            result, tags = self.engine.classify_ranked(self._image, top_k)
        except (InferenceError, ValueError) as exc:
            logger.exception("Error during classification")
            self._status = f"Classification Error: {exc}"
            return ClassifyOutcome(self._status, None, [])

        self._status = result.message
        if isinstance(result, Prediction):
            logger.info("Prediction: %s (%.2f%%)", result.label, result.confidence * 100)
        return ClassifyOutcome(self._status, result, tags)

    def close(self) -> None:
        self.engine.close()
