"""Tests for startup wiring and the single-screen session."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from conftest import LABELS, FakeClassifier, make_broken_png_bytes, make_image_bytes

from snapclassify.config import Settings
from snapclassify.engine import ClassifierEngine
from snapclassify.errors import InferenceError, LabelsError, ModelLoadError
from snapclassify.ml.postprocessing import ClassificationFailure, Prediction
from snapclassify.session import (
    STATUS_IDLE,
    STATUS_LOAD_FAILED,
    STATUS_NO_IMAGE,
    STATUS_SELECTED,
    ClassifierSession,
)

# ---------------------------------------------------------------------------
# Engine startup
# ---------------------------------------------------------------------------


def _onnx_session(input_shape: list[object], output_shape: list[object]) -> MagicMock:
    session = MagicMock()
    session.get_inputs.return_value = [MagicMock(shape=input_shape)]
    session.get_outputs.return_value = [MagicMock(shape=output_shape)]
    return session


def _settings(tmp_path: Path, labels: Path) -> Settings:
    model = tmp_path / "resnet50.onnx"
    model.write_bytes(b"onnx")
    return Settings(model_path=str(model), labels_path=str(labels))


class TestEngineStartup:
    @patch("snapclassify.ml.model_manager.InferenceSession")
    def test_from_settings_loads_model_and_labels(
        self, mock_session_cls: MagicMock, tmp_path: Path, labels_file: Path
    ) -> None:
        mock_session_cls.return_value = _onnx_session([1, 224, 224, 3], [1, 3])

        engine = ClassifierEngine.from_settings(_settings(tmp_path, labels_file))

        assert engine.labels == LABELS
        assert engine.model_name == "resnet50"
        assert engine.input_size == 224
        assert engine.normalize is False
        assert engine.is_loaded

    @patch("snapclassify.ml.model_manager.InferenceSession")
    def test_missing_labels_is_fatal(self, mock_session_cls: MagicMock, tmp_path: Path) -> None:
        mock_session_cls.return_value = _onnx_session([1, 224, 224, 3], [1, 3])

        with pytest.raises(LabelsError):
            ClassifierEngine.from_settings(_settings(tmp_path, tmp_path / "missing.txt"))

    def test_missing_model_is_fatal(self, tmp_path: Path, labels_file: Path) -> None:
        settings = Settings(model_path=str(tmp_path / "missing.onnx"), labels_path=str(labels_file))
        with pytest.raises(ModelLoadError):
            ClassifierEngine.from_settings(settings)

    @patch("snapclassify.ml.model_manager.InferenceSession")
    def test_unsupported_model_input_is_fatal(
        self, mock_session_cls: MagicMock, tmp_path: Path, labels_file: Path
    ) -> None:
        mock_session_cls.return_value = _onnx_session([1, 224, 224], [1, 3])
        with pytest.raises(ModelLoadError, match="Unsupported model"):
            ClassifierEngine.from_settings(_settings(tmp_path, labels_file))

    def test_label_count_mismatch_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        ClassifierEngine(FakeClassifier([0.1] * 1000), LABELS)
        assert "does not match model output length 1000" in caplog.text

    @patch("snapclassify.ml.model_manager.InferenceSession")
    def test_close_releases_model(self, mock_session_cls: MagicMock, tmp_path: Path, labels_file: Path) -> None:
        onnx_session = _onnx_session([1, 224, 224, 3], [1, 3])
        onnx_session.run.return_value = [np.array([[0.1, 0.7, 0.2]], dtype=np.float32)]
        mock_session_cls.return_value = onnx_session
        engine = ClassifierEngine.from_settings(_settings(tmp_path, labels_file))
        image = np.zeros((8, 8, 3), dtype=np.uint8)
        assert isinstance(engine.classify(image), Prediction)

        engine.close()

        assert not engine.is_loaded
        with pytest.raises(InferenceError, match="Model is closed"):
            engine.classify(image)
        assert onnx_session.run.call_count == 1


class TestEngineClassify:
    def test_preprocessed_tensor_reaches_model(self, engine: ClassifierEngine, fake_classifier: FakeClassifier) -> None:
        image = np.full((48, 64, 3), 255, dtype=np.uint8)

        result = engine.classify(image)

        assert isinstance(result, Prediction)
        assert result.label == "goldfish"
        tensor = fake_classifier.calls[0]
        assert tensor.shape == (224, 224, 3)
        assert np.allclose(tensor, 1.0)

    def test_normalize_flag_reaches_preprocessing(self, fake_classifier: FakeClassifier) -> None:
        engine = ClassifierEngine(fake_classifier, LABELS, normalize=True)
        engine.classify(np.zeros((8, 8, 3), dtype=np.uint8))
        assert float(fake_classifier.calls[0].min()) < 0.0

    def test_classify_ranked(self, engine: ClassifierEngine) -> None:
        result, tags = engine.classify_ranked(np.zeros((8, 8, 3), dtype=np.uint8), 2)
        assert isinstance(result, Prediction)
        assert [label for label, _ in tags] == ["goldfish", "great white shark"]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestClassifierSession:
    def test_initial_state(self, engine: ClassifierEngine) -> None:
        session = ClassifierSession(engine)
        assert session.status == STATUS_IDLE
        assert not session.has_image
        assert session.preview() is None

    def test_pick_then_classify(self, engine: ClassifierEngine, png_bytes: bytes) -> None:
        session = ClassifierSession(engine)

        assert session.pick_image(png_bytes)
        assert session.status == STATUS_SELECTED

        outcome = session.classify()
        assert outcome.prediction is not None
        assert outcome.prediction.label == "goldfish"
        assert session.status == "Prediction: goldfish\nConfidence: 70.00%"

    def test_classify_without_image(self, engine: ClassifierEngine) -> None:
        session = ClassifierSession(engine)
        outcome = session.classify()
        assert outcome.result is None
        assert session.status == STATUS_NO_IMAGE

    def test_bad_pick_keeps_previous_image(self, engine: ClassifierEngine) -> None:
        session = ClassifierSession(engine)
        session.pick_image(make_image_bytes(20, 10))
        before = session.image

        assert not session.pick_image(b"fake image data")

        assert session.status == STATUS_LOAD_FAILED
        assert session.image is before
        assert session.image is not None
        assert session.image.shape == (10, 20, 3)

    def test_new_pick_replaces_image(self, engine: ClassifierEngine) -> None:
        session = ClassifierSession(engine)
        session.pick_image(make_image_bytes(20, 10))
        session.pick_image(make_image_bytes(30, 40))
        assert session.image is not None
        assert session.image.shape == (40, 30, 3)

    def test_oversized_pick_rejected(self, engine: ClassifierEngine) -> None:
        session = ClassifierSession(engine, max_pixels=50)
        assert not session.pick_image(make_image_bytes(10, 10))
        assert not session.has_image

    def test_inference_error_is_recoverable(self, failing_engine: ClassifierEngine, png_bytes: bytes) -> None:
        session = ClassifierSession(failing_engine)
        session.pick_image(png_bytes)

        outcome = session.classify()

        assert outcome.result is None
        assert session.status == "Classification Error: boom"
        assert session.has_image

    def test_label_mismatch_is_diagnostic(self, png_bytes: bytes) -> None:
        engine = ClassifierEngine(FakeClassifier([0.0, 0.0, 0.0, 0.0, 1.0]), LABELS)
        session = ClassifierSession(engine)
        session.pick_image(png_bytes)

        outcome = session.classify()

        assert isinstance(outcome.result, ClassificationFailure)
        assert "Idx: 4, Labels: 3, Probs: 5" in session.status

    def test_empty_output_is_diagnostic(self, png_bytes: bytes) -> None:
        session = ClassifierSession(ClassifierEngine(FakeClassifier([]), LABELS))
        session.pick_image(png_bytes)

        session.classify()

        assert session.status == "Classification failed: Empty result."

    def test_preview_is_png(self, engine: ClassifierEngine, png_bytes: bytes) -> None:
        session = ClassifierSession(engine)
        session.pick_image(png_bytes)
        preview = session.preview()
        assert preview is not None
        assert preview.startswith(b"\x89PNG")

    def test_broken_png_pick_keeps_previous_image(self, engine: ClassifierEngine) -> None:
        session = ClassifierSession(engine)
        session.pick_image(make_image_bytes(20, 10))
        before = session.image

        assert not session.pick_image(make_broken_png_bytes())

        assert session.status == STATUS_LOAD_FAILED
        assert session.image is before

    def test_classify_after_close_does_not_run_model(
        self, engine: ClassifierEngine, fake_classifier: FakeClassifier, png_bytes: bytes
    ) -> None:
        session = ClassifierSession(engine)
        session.pick_image(png_bytes)

        session.close()
        outcome = session.classify()

        assert outcome.result is None
        assert session.status == "Classification Error: Model is closed"
        assert fake_classifier.calls == []
        assert not engine.is_loaded
