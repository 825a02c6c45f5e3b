"""API route definitions.

The routes mirror the single screen: pick an image, preview it, classify it.
Inference is a blocking call made on the request's own thread.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, UploadFile, status

from snapclassify.api.middleware import get_session_from_request, get_settings_from_request, verify_api_key
from snapclassify.api.schemas import (
    ClassifyResponse,
    ErrorResponse,
    HealthResponse,
    ImageTag,
    ModelInfo,
    SessionState,
)
from snapclassify.errors import ImageDecodeError, InferenceError
from snapclassify.ml.postprocessing import Prediction
from snapclassify.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from snapclassify.ml.postprocessing import ClassificationFailure
    from snapclassify.session import ClassifierSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

TopK = Annotated[int, Query(ge=1, le=100, description="Number of ranked tags to return")]


async def _read_upload(request: Request, file: UploadFile) -> bytes:
    limit = get_settings_from_request(request).max_file_size
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds {limit} bytes",
        )
    return data


def _session_state(session: ClassifierSession) -> SessionState:
    image = session.image
    if image is None:
        return SessionState(status=session.status, has_image=False)
    return SessionState(
        status=session.status,
        has_image=True,
        width=int(image.shape[1]),
        height=int(image.shape[0]),
    )


def _classify_response(
    status_text: str,
    result: Prediction | ClassificationFailure | None,
    tags: list[tuple[str, float]],
) -> ClassifyResponse:
    response = ClassifyResponse(
        status=status_text,
        tags=[ImageTag(label=label, confidence=confidence) for label, confidence in tags],
    )
    if isinstance(result, Prediction):
        response.label = result.label
        response.confidence = result.confidence
        response.index = result.index
    return response


@router.post(
    "/image",
    response_model=SessionState,
    responses={
        413: {"model": ErrorResponse},
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    },
    summary="Pick an image",
)
async def pick_image(request: Request, file: UploadFile) -> SessionState:
    """Decode the uploaded image and make it the current selection."""
    session = get_session_from_request(request)
    data = await _read_upload(request, file)
    if not session.pick_image(data):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=session.status)
    return _session_state(session)


@router.get(
    "/image/preview",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {"image/png": {}}},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
    summary="Preview the selected image",
)
async def preview_image(request: Request) -> Response:
    """Return the current selection as PNG."""
    png = get_session_from_request(request).preview()
    if png is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No image selected")
    return Response(content=png, media_type="image/png")


@router.get("/session", response_model=SessionState, summary="Current screen state")
async def get_session_state(request: Request) -> SessionState:
    return _session_state(get_session_from_request(request))


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    responses={status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
    summary="Classify the selected image",
)
async def classify(request: Request, top_k: TopK = 5) -> ClassifyResponse:
    """Run the model on the current selection.

    Classification failures are reported in `status` with a null `label`;
    the selection is kept either way.
    """
    session = get_session_from_request(request)
    if not session.has_image:
        session.classify()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=session.status)

    outcome = session.classify(top_k)
    return _classify_response(outcome.status, outcome.result, outcome.tags)


@router.post(
    "/classify-image",
    response_model=ClassifyResponse,
    responses={
        413: {"model": ErrorResponse},
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    },
    summary="Classify an uploaded image without changing the selection",
)
async def classify_image(request: Request, file: UploadFile, top_k: TopK = 5) -> ClassifyResponse:
    """Decode and classify an uploaded image in one step."""
    settings = get_settings_from_request(request)
    engine = get_session_from_request(request).engine
    data = await _read_upload(request, file)

    try:
        image = decode_image(data, max_pixels=settings.max_image_pixels)
    except ImageDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        result, tags = engine.classify_ranked(image, top_k)
    except (InferenceError, ValueError) as exc:
        logger.exception("Error during classification")
        return ClassifyResponse(status=f"Classification Error: {exc}")

    return _classify_response(result.message, result, tags)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = get_settings_from_request(request)
    engine = get_session_from_request(request).engine
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        model_loaded=engine.is_loaded,
        labels=len(engine.labels),
    )


@router.get("/models", response_model=ModelInfo, summary="Describe the bundled model")
async def model_info(request: Request) -> ModelInfo:
    settings = get_settings_from_request(request)
    engine = get_session_from_request(request).engine
    return ModelInfo(
        name=engine.model_name,
        input_size=engine.input_size,
        labels=len(engine.labels),
        normalize=engine.normalize,
        device=settings.device,
    )
