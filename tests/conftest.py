"""Shared fixtures: synthetic images, label files, and a fake classifier."""

from __future__ import annotations

import io
import struct
import zlib
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from snapclassify.engine import ClassifierEngine
from snapclassify.errors import InferenceError

if TYPE_CHECKING:
    from numpy.typing import NDArray

LABELS: tuple[str, ...] = ("tench", "goldfish", "great white shark")


def make_image_bytes(
    width: int = 64,
    height: int = 48,
    color: int | tuple[int, ...] = (200, 30, 90),
    fmt: str = "PNG",
    mode: str = "RGB",
) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def _png_chunk(cid: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + cid + payload + struct.pack(">I", zlib.crc32(cid + payload))


def make_broken_png_bytes(width: int = 64, height: int = 64) -> bytes:
    """A PNG whose image data runs on into a chunk with an invalid type."""
    rng = np.random.default_rng(0)
    noise = Image.fromarray(rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8))
    buffer = io.BytesIO()
    noise.save(buffer, format="PNG")
    data = buffer.getvalue()

    start = data.index(b"IDAT") - 4
    (length,) = struct.unpack(">I", data[start : start + 4])
    payload = data[start + 8 : start + 8 + length]
    half = length // 2
    return (
        data[:start]
        + _png_chunk(b"IDAT", payload[:half])
        + _png_chunk(b"\xe9\xa3\x16\x8c", payload[half:])
        + data[start + 12 + length :]
    )


class FakeClassifier:
    """Stands in for OnnxImageClassifier; returns a fixed vector."""

    def __init__(
        self,
        probabilities: list[float] | None = None,
        *,
        input_size: int = 224,
        error: Exception | None = None,
    ) -> None:
        if probabilities is None:
            probabilities = [0.1, 0.7, 0.2]
        self.probabilities = np.asarray(probabilities, dtype=np.float32)
        self._input_size = input_size
        self.error = error
        self.calls: list[NDArray[np.float32]] = []
        self.closed = False

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def num_outputs(self) -> int | None:
        return int(self.probabilities.size)

    def predict(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        if self.closed:
            raise InferenceError("Model is closed")
        self.calls.append(tensor)
        if self.error is not None:
            raise self.error
        return self.probabilities

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture()
def labels_file(tmp_path: Path) -> Path:
    path = tmp_path / "labels.txt"
    path.write_text("\n".join(LABELS) + "\n", encoding="utf-8")
    return path


@pytest.fixture()
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture()
def engine(fake_classifier: FakeClassifier) -> ClassifierEngine:
    return ClassifierEngine(fake_classifier, LABELS, model_name="resnet50")


@pytest.fixture()
def failing_engine() -> ClassifierEngine:
    return ClassifierEngine(FakeClassifier(error=InferenceError("boom")), LABELS, model_name="resnet50")
