"""Command-line interface: classify a file, describe the model, or serve the API."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from snapclassify.config import Settings, get_settings
from snapclassify.main import build_session, configure_logging
from snapclassify.session import STATUS_LOAD_FAILED

if TYPE_CHECKING:
    from snapclassify.session import ClassifierSession

EXIT_OK = 0
EXIT_IMAGE = 2


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides: dict[str, object] = {}
    if getattr(args, "normalize", None) is not None:
        overrides["normalize"] = args.normalize
    if getattr(args, "model", None):
        overrides["model_path"] = args.model
    if getattr(args, "labels", None):
        overrides["labels_path"] = args.labels
    return settings.model_copy(update=overrides)


def _start(settings: Settings) -> ClassifierSession:
    configure_logging(settings)
    try:
        return build_session(settings)
    except SystemExit as exc:
        print(f"CRITICAL: {exc.__cause__}. App will close.", file=sys.stderr)
        raise


def classify(args: argparse.Namespace) -> int:
    """Pick the given file, classify it, print the status text."""
    settings = _load_settings(args)
    session = _start(settings)
    try:
        path = Path(args.image)
        try:
            data = path.read_bytes()
        except OSError as exc:
            print(f"{STATUS_LOAD_FAILED} {exc}", file=sys.stderr)
            return EXIT_IMAGE

        if not session.pick_image(data):
            print(session.status, file=sys.stderr)
            return EXIT_IMAGE

        outcome = session.classify(args.top_k)
        print(outcome.status)
        if args.top_k > 1 and outcome.tags:
            print()
            print(f"Top-{len(outcome.tags)}:")
            for label, confidence in outcome.tags:
                print(f"  {confidence * 100:6.2f}%  {label}")
        return EXIT_OK
    finally:
        session.close()


def info(args: argparse.Namespace) -> int:
    """Print what was loaded at startup."""
    settings = _load_settings(args)
    session = _start(settings)
    try:
        engine = session.engine
        print(f"Model:      {engine.model_name}")
        print(f"Input size: {engine.input_size}x{engine.input_size}x3")
        print(f"Labels:     {len(engine.labels)}")
        print(f"Normalize:  {'on' if engine.normalize else 'off'}")
        print(f"Device:     {settings.device}")
        return EXIT_OK
    finally:
        session.close()


def serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "snapclassify.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return EXIT_OK


def _add_resource_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--model", help="Path to the ONNX model (default: SNAPCLASSIFY_MODEL_PATH)")
    parser.add_argument("--labels", help="Path to the label file (default: SNAPCLASSIFY_LABELS_PATH)")
    parser.add_argument(
        "--normalize",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Apply ImageNet mean/std normalization (default: SNAPCLASSIFY_NORMALIZE)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapclassify",
        description="Classify an image with the bundled ResNet-50 model.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    classify_parser = subparsers.add_parser("classify", help="Classify one image file")
    classify_parser.add_argument("image", help="Image file to classify")
    classify_parser.add_argument("--top-k", type=int, default=1, help="Also list the K best labels")
    _add_resource_args(classify_parser)
    classify_parser.set_defaults(func=classify)

    info_parser = subparsers.add_parser("info", help="Describe the loaded model and labels")
    _add_resource_args(info_parser)
    info_parser.set_defaults(func=info)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default: SNAPCLASSIFY_HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: SNAPCLASSIFY_PORT)")
    serve_parser.set_defaults(func=serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
