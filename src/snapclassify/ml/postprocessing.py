"""Turn a probability vector into a labelled prediction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prediction:
    """The top-1 label for one inference call."""

    label: str
    confidence: float
    index: int

    @property
    def message(self) -> str:
        return f"Prediction: {self.label}\nConfidence: {self.confidence * 100:.2f}%"


@dataclass(frozen=True)
class ClassificationFailure:
    """A diagnostic in place of a prediction."""

    message: str
    index: int = -1


def select_top(probabilities: ArrayLike) -> tuple[int, float]:
    """Return (index, probability) of the largest score.

    Only scores strictly greater than the running maximum win, starting from
    zero, so ties keep the first occurrence and a vector with no positive
    score yields (-1, 0.0).
    """
    max_idx = -1
    max_prob = 0.0
    for i, prob in enumerate(np.asarray(probabilities, dtype=np.float32).reshape(-1).tolist()):
        if prob > max_prob:
            max_prob = prob
            max_idx = i
    return max_idx, max_prob


def postprocess(probabilities: ArrayLike, labels: Sequence[str]) -> Prediction | ClassificationFailure:
    """Map the argmax of a probability vector onto the label set.

    Never raises on a 1-D input: an empty vector or an index outside the
    label set produces a ClassificationFailure.
    """
    probs = np.asarray(probabilities, dtype=np.float32).reshape(-1)
    if probs.size == 0:
        logger.error("Model returned empty probabilities array.")
        return ClassificationFailure("Classification failed: Empty result.")

    max_idx, max_prob = select_top(probs)
    logger.debug("Max index from model: %d, max probability: %f", max_idx, max_prob)

    if max_idx == -1 or max_idx >= len(labels):
        logger.error(
            "Invalid prediction index: %d, labels size: %d, probabilities size: %d",
            max_idx,
            len(labels),
            probs.size,
        )
        return ClassificationFailure(
            f"Could not classify or invalid label index (Idx: {max_idx}, Labels: {len(labels)}, Probs: {probs.size}).",
            index=max_idx,
        )

    return Prediction(label=labels[max_idx], confidence=max_prob, index=max_idx)


def top_k(probabilities: ArrayLike, labels: Sequence[str], k: int = 5) -> list[tuple[str, float]]:
    """Return up to k (label, probability) pairs in descending order.

    Indices with no matching label are skipped. Equal scores keep index order.
    """
    if k <= 0:
        return []
    probs = np.asarray(probabilities, dtype=np.float32).reshape(-1)[: len(labels)]
    order = np.argsort(-probs, kind="stable")[:k]
    return [(labels[int(i)], float(probs[int(i)])) for i in order]
