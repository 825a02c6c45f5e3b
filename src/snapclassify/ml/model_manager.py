"""Model manager: locate, load, and release the bundled ONNX model.

The model is loaded once at startup and released when the session is torn
down. If the bundled file is missing and a HuggingFace repo is configured,
it is fetched once into the model directory before loading.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from snapclassify.errors import ModelLoadError

if TYPE_CHECKING:
    from snapclassify.config import Settings

logger = logging.getLogger(__name__)


class OnnxModelManager:
    """Owns the single ONNX inference session for the bundled model."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._model_path = Path(settings.model_path)

        self._lock = threading.Lock()
        self._session: InferenceSession | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def model_name(self) -> str:
        """Return the model identifier (file stem)."""
        return self._model_path.stem

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._session is not None

    def ensure_model(self) -> Path:
        """Return the local model path, downloading it if configured to.

        Raises:
            ModelLoadError: If the file is absent and cannot be fetched.
        """
        if self._model_path.is_file():
            return self._model_path

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ModelLoadError(f"Model file not found: {self._model_path}")

        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=self._settings.model_filename,
                    local_dir=str(self._model_path.parent),
                )
            )
        except Exception as exc:
            raise ModelLoadError(f"Could not download {self._settings.model_filename} from {repo_id}: {exc}") from exc

        logger.info("Downloaded %s to %s", self._settings.model_filename, downloaded)
        self._model_path = downloaded
        return downloaded

    def load(self) -> InferenceSession:
        """Return the inference session, creating it on first call.

        Raises:
            ModelLoadError: If the model cannot be located or loaded.
        """
        with self._lock:
            if self._session is not None:
                return self._session

            model_path = self.ensure_model()
            try:
                session = InferenceSession(
                    str(model_path),
                    sess_options=self._session_options,
                    providers=self._providers,
                )
            except Exception as exc:
                raise ModelLoadError(f"Error loading model {model_path}: {exc}") from exc

            self._session = session
            logger.info("Model loaded successfully from %s", model_path)
            return session

    def close(self) -> None:
        """Release the inference session."""
        with self._lock:
            if self._session is not None:
                self._session = None
                logger.info("Model closed.")

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                ("CUDAExecutionProvider", {"device_id": 0}),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
