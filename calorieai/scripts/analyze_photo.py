#!/usr/bin/env python3
"""
Smoke test: analyze a local photo with the configured provider.

Usage:
    calorieai-analyze path/to/meal.jpg --meal lunch --pref vegetarian
    calorieai-analyze              # sends a 1x1 PNG, checks the wiring only
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from calorieai.application.guidance import guidance_for, guidance_message
from calorieai.config import AnalysisSettings
from calorieai.domain.analysis.entities import AnalysisLocale, AnalysisRequest
from calorieai.domain.errors import AnalysisError
from calorieai.infrastructure.ai.client import AnalysisClient
from calorieai.logging_config import configure_logging

# 1x1 white PNG
PIXEL_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAwMCAO+ip1sAAAAASUVORK5CYII="
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze a food photo")
    parser.add_argument("image", nargs="?", help="JPEG/PNG/WebP file (default: 1x1 PNG)")
    parser.add_argument(
        "--meal",
        default="snack",
        choices=["breakfast", "lunch", "dinner", "snack"],
    )
    parser.add_argument("--provider", choices=["gemini", "openai"], help="Override VISION_PROVIDER")
    parser.add_argument("--language", help="Language of names and insight (e.g. tr, en)")
    parser.add_argument("--pref", action="append", default=[], help="Dietary preference")
    parser.add_argument("--focus", action="append", default=[], help="Health focus")
    return parser.parse_args(argv)


def load_image(path: Optional[str]) -> tuple[str, str]:
    """Return (base64, mime type)."""
    if path is None:
        return PIXEL_PNG_B64, "image/png"
    file = Path(path)
    mime = mimetypes.guess_type(file.name)[0] or "image/jpeg"
    return base64.b64encode(file.read_bytes()).decode("ascii"), mime


async def run(args: argparse.Namespace, settings: AnalysisSettings) -> int:
    image, mime = load_image(args.image)
    primary = (args.language or settings.primary_language).lower()
    secondary = (
        settings.secondary_language
        if settings.secondary_language != primary
        else settings.primary_language
    )
    request = AnalysisRequest(
        image=image,
        mime_type=mime,
        meal_context=args.meal,
        dietary_preferences=args.pref,
        health_focus=args.focus,
        locale=AnalysisLocale(primary=primary, secondary=secondary),
    )

    client = AnalysisClient(settings)
    print(f"🚀 Sending request to {client.provider_name} ({client.model})...")
    try:
        result = await client.analyze(request)
    except AnalysisError as exc:
        print(f"\n❌ Analysis failed [{exc.kind.value}]: {exc.message}")
        if exc.raw_snippet:
            print(f"   raw: {exc.raw_snippet}")
        print(f"   → {guidance_message(guidance_for(exc), primary)}")
        return 1

    print("\n✅ Response received:")
    print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    print(
        f"\n✨ {len(result.items)} item(s), {result.totals.calories:.0f} kcal, "
        f"{result.attempts} attempt(s), {result.processing_time_ms} ms"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    settings = AnalysisSettings.from_env()
    if args.provider:
        settings = settings.with_overrides(provider=args.provider)
    configure_logging(settings.log_level, settings.log_format)
    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
