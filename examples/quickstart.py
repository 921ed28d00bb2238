"""
doccanvas Quick Start Example – generate, redisplay and export an image.

Prerequisites:
    1. Install doccanvas: ``pip install -e .``
    2. Set a key for the provider you want, e.g.
       ``export OPENROUTER_API_KEY=sk-or-...``

Usage:
    python examples/quickstart.py

This will:
    1. Load (or create) the canvas config and pick the OpenRouter provider
    2. Generate one image from a prompt plus some canvas context
    3. Read it back as a data URL, as the canvas front end does
    4. Export a copy next to this script
"""

import os

from dotenv import load_dotenv

from doccanvas import CanvasImageService, ConfigService


def main():
    load_dotenv()

    # ── Config: switch provider for this run and save ────────────────────
    config_service = ConfigService(path="./doccanvas_output/config.yaml", exec_dir="./doccanvas_output")
    service = CanvasImageService(config_service)

    config = service.get_config()
    config.image_gen.provider = "openrouter"
    service.save_config(config)
    print(config.summary())

    # ── Generate ─────────────────────────────────────────────────────────
    ref = service.generate_image(
        "a lighthouse on a cliff at dusk",
        context_data="Chapter 3: the keeper's last night. Muted blues, storm rolling in.",
    )
    print(f"\nStored as: {ref}")

    # ── Redisplay and export ─────────────────────────────────────────────
    data_url = service.get_image_data_url(ref)
    print(f"Data URL: {data_url[:60]}... ({len(data_url)} chars)")

    dest = os.path.join(os.path.dirname(os.path.abspath(__file__)), os.path.basename(ref))
    print(f"Exported to: {service.export_image(ref, dest)}")


if __name__ == "__main__":
    main()
