"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import logging
import sys
from pathlib import Path

from gifmov.editors.geometry import MAX_IMAGE_SIZE
from gifmov.engine import process
from gifmov.errors import ConversionError
from gifmov.ffutil import CODEC_CHOICES
from gifmov.manifest import Manifest, load_manifest
from gifmov.timeline import TimingPolicy


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="gifmov",
        description="GifMov — convert animated GIFs to transparent QuickTime movies.",
    )
    sub = parser.add_subparsers(dest="command")

    conv = sub.add_parser("convert", help="Convert a GIF to a .mov")
    conv.add_argument("gif", nargs="?", type=Path, help="Input GIF file")
    conv.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    conv.add_argument("--output", "-o", type=Path, help="Output movie path")
    conv.add_argument("--max-dimension", type=float, default=MAX_IMAGE_SIZE, help="Cap for the longer output edge (pixels)")
    conv.add_argument(
        "--timing-policy",
        choices=[p.value for p in TimingPolicy],
        default=TimingPolicy.INDEX_TIMES_DURATION.value,
        help="How frame delays become timestamps",
    )
    conv.add_argument("--codec", choices=CODEC_CHOICES, default="auto", help="Alpha-capable codec profile")
    conv.add_argument("--verbose", "-v", action="store_true", help="Log debug output")

    serve = sub.add_parser("serve", help="Launch the HTTP conversion API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        from gifmov.web import create_app
        app = create_app()
        print(f"GifMov API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.gif:
        m = Manifest(
            input=args.gif,
            output=args.output,
            max_dimension=args.max_dimension,
            timing_policy=args.timing_policy,
            codec=args.codec,
        )
    else:
        print("Error: provide either a GIF argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    try:
        result = process(m, on_progress=on_progress)
    except ConversionError as e:
        print(f"Error: {e.reason}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Size: {result.width:.0f}x{result.height:.0f}, duration {result.duration:.2f}s")
    print(f"  Frames encoded: {result.frames_encoded}")
    if result.frames_skipped:
        print(f"  Frames skipped: {result.frames_skipped}")


if __name__ == "__main__":
    main()
