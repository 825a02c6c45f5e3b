"""Startup wiring: labels + model + preprocessing in one object."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from snapclassify.errors import InferenceError, LabelsError, ModelLoadError
from snapclassify.ml.image_classifier import OnnxImageClassifier
from snapclassify.ml.labels import load_labels
from snapclassify.ml.model_manager import OnnxModelManager
from snapclassify.ml.postprocessing import ClassificationFailure, Prediction, postprocess, top_k
from snapclassify.ml.preprocessing import preprocess

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from snapclassify.config import Settings
    from snapclassify.ml.image_classifier import ImageClassifier

logger = logging.getLogger(__name__)


class ClassifierEngine:
    """Everything needed to classify one decoded image."""

    def __init__(
        self,
        classifier: ImageClassifier,
        labels: tuple[str, ...],
        *,
        normalize: bool = False,
        model_name: str = "model",
        model_manager: OnnxModelManager | None = None,
    ) -> None:
        self.classifier = classifier
        self.labels = labels
        self.normalize = normalize
        self.model_name = model_name
        self._model_manager = model_manager
        self._closed = False

        expected = classifier.num_outputs
        if expected is not None and expected != len(labels):
            logger.warning("Label count %d does not match model output length %d", len(labels), expected)

    @classmethod
    def from_settings(cls, settings: Settings) -> ClassifierEngine:
        """Load the model and labels once.

        Raises:
            StartupError: If either resource cannot be loaded.
        """
        manager = OnnxModelManager(settings)
        session = manager.load()
        try:
            classifier = OnnxImageClassifier(session, default_size=settings.input_size)
        except InferenceError as exc:
            manager.close()
            raise ModelLoadError(f"Unsupported model: {exc}") from exc

        try:
            labels = load_labels(settings.labels_path)
        except LabelsError:
            classifier.close()
            manager.close()
            raise

        return cls(
            classifier,
            labels,
            normalize=settings.normalize,
            model_name=manager.model_name,
            model_manager=manager,
        )

    @property
    def input_size(self) -> int:
        return self.classifier.input_size

    @property
    def is_loaded(self) -> bool:
        if self._closed:
            return False
        if self._model_manager is None:
            return True
        return self._model_manager.is_loaded

    def probabilities(self, image: NDArray[np.uint8]) -> NDArray[np.float32]:
        tensor = preprocess(image, size=self.input_size, normalize=self.normalize)
        return self.classifier.predict(tensor)

    def classify(self, image: NDArray[np.uint8]) -> Prediction | ClassificationFailure:
        """Preprocess, run the model, and map the argmax to a label.

        Raises:
            InferenceError: If the model call fails.
            ValueError: If the image is not HxWx3 uint8.
        """
        return postprocess(self.probabilities(image), self.labels)

    def classify_ranked(
        self, image: NDArray[np.uint8], k: int
    ) -> tuple[Prediction | ClassificationFailure, list[tuple[str, float]]]:
        """Like classify, plus the top-k ranked (label, probability) pairs."""
        probs = self.probabilities(image)
        return postprocess(probs, self.labels), top_k(probs, self.labels, k)

    def close(self) -> None:
        """Release the model. Later classify calls raise InferenceError."""
        self._closed = True
        self.classifier.close()
        if self._model_manager is not None:
            self._model_manager.close()
