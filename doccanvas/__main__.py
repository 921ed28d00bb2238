"""
Entry point for running doccanvas as a module: ``python -m doccanvas``

Supports six commands:
    1. Generate an image with the configured provider:
        python -m doccanvas generate --prompt "a red fox" --context "winter" --ref fox.png

    2. Print a stored asset as a data URL (or write it to a file):
        python -m doccanvas show generated_20250101_120000_4242_0.png -o fox.txt

    3. Import a text or image file onto the canvas:
        python -m doccanvas import ./photo.jpg

    4. Export a stored asset:
        python -m doccanvas export Import/photo_4242.jpg ./out.jpg

    5. Show the active configuration (keys masked):
        python -m doccanvas config

    6. List the providers:
        python -m doccanvas providers
"""

import argparse
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doccanvas",
        description="doccanvas – AI image generation and asset storage for the document canvas",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the config file (default: $DOCCANVAS_CONFIG or ~/.config/fm-doc-canvas/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ── generate ─────────────────────────────────────────────────────────
    gen_parser = subparsers.add_parser("generate", help="Generate an image")
    gen_parser.add_argument("--prompt", "-p", type=str, required=True, help="Text prompt")
    gen_parser.add_argument(
        "--context",
        type=str,
        default="",
        help="Context text prepended to the prompt",
    )
    gen_parser.add_argument(
        "--ref",
        "-r",
        nargs="+",
        default=[],
        help="Reference image files (sent as data URLs)",
    )
    gen_parser.add_argument(
        "--provider",
        type=str,
        default=None,
        choices=["openrouter", "openai", "google", "xai"],
        help="Override the configured provider for this call",
    )

    # ── show ─────────────────────────────────────────────────────────────
    show_parser = subparsers.add_parser("show", help="Print a stored asset as a data URL")
    show_parser.add_argument("reference", type=str, help="Asset reference")
    show_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write the data URL to this file instead of stdout",
    )

    # ── import ───────────────────────────────────────────────────────────
    import_parser = subparsers.add_parser("import", help="Import a text or image file")
    import_parser.add_argument("path", type=str, help="File to import")

    # ── export ───────────────────────────────────────────────────────────
    export_parser = subparsers.add_parser("export", help="Copy a stored asset elsewhere")
    export_parser.add_argument("reference", type=str, help="Asset reference")
    export_parser.add_argument("destination", type=str, help="Destination file path")

    subparsers.add_parser("config", help="Show the active configuration")
    subparsers.add_parser("providers", help="List available providers")

    return parser


def _file_to_data_url(path: str) -> str:
    from doccanvas.codec import encode_data_url, mime_from_path, sniff_mime

    with open(path, "rb") as fh:
        data = fh.read()
    return encode_data_url(data, mime_from_path(path) or sniff_mime(data))


def main(argv=None):
    from dotenv import load_dotenv

    load_dotenv()  # Load .env file (OPENAI_API_KEY, XAI_API_KEY, etc.)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "providers":
        from doccanvas.generation.registry import ProviderRegistry

        for name in ProviderRegistry.available():
            print(name)
        return

    from doccanvas.config import ConfigService
    from doccanvas.errors import DocCanvasError
    from doccanvas.service import CanvasImageService

    service = CanvasImageService(ConfigService(args.config))

    try:
        if args.command == "config":
            print(service.get_config().summary())

        elif args.command == "generate":
            refs = [_file_to_data_url(p) for p in args.ref]
            if args.provider:
                from doccanvas.generation.registry import ProviderRegistry

                # One-off override; the saved config is left untouched.
                cfg = service.get_config()
                cfg.image_gen.provider = args.provider
                provider = ProviderRegistry.create(cfg.image_gen, service.assets, session=service.session)
                print(provider.generate(args.prompt, args.context, refs))
            else:
                print(service.generate_image(args.prompt, args.context, refs))

        elif args.command == "show":
            data_url = service.get_image_data_url(args.reference)
            if args.output:
                with open(args.output, "w", encoding="utf-8") as fh:
                    fh.write(data_url)
                print(f"[doccanvas] Data URL written to {args.output}")
            else:
                print(data_url)

        elif args.command == "import":
            result = service.import_file(args.path)
            print(f"{result.type}: {result.content}")

        elif args.command == "export":
            print(service.export_image(args.reference, args.destination))

    except DocCanvasError as e:
        print(f"[doccanvas] ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
