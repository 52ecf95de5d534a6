#!/usr/bin/env python3
"""
Manual script for the generation pipeline.
Sends a .tex test to a running server and saves the variant to documents/variants/<name>/
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lib.client import GenerationClient, GenerationClientError
from lib.latex_preview import sanitize_for_preview


async def generate_and_save(args: argparse.Namespace) -> Path:
    """Generate one variant of the test at args.source and save it to a subdirectory named after it."""

    source_path = Path(args.source)
    output_dir = Path("documents/variants") / source_path.stem
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"Output directory: {output_dir}")

    source_latex = source_path.read_text(encoding="utf-8")

    print(f"\n1. Requesting {args.count} {args.difficulty} exercises in {args.language} from {args.server}...")
    async with GenerationClient(base_url=args.server) as client:
        result = await client.generate(
            source_latex,
            args.count,
            args.difficulty,
            args.language,
            guidance_prompt=args.guidance,
        )
    print(f"   Got {len(result.latex)} chars, {len(result.answer_key)} answer-key entries")

    print("\n2. Saving variant, preview and answer key...")
    (output_dir / "variant.tex").write_text(result.latex, encoding="utf-8")
    (output_dir / "preview.tex").write_text(
        sanitize_for_preview(result.latex, language=args.language), encoding="utf-8"
    )
    answer_key = [entry.model_dump(by_alias=True) for entry in result.answer_key]
    (output_dir / "answer_key.json").write_text(json.dumps(answer_key, indent=2), encoding="utf-8")

    print(f"\n✓ Done! Files saved to: {output_dir}")
    return output_dir


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a variant of a LaTeX math test")
    parser.add_argument("source", help="Path to the source .tex file")
    parser.add_argument("--count", type=int, default=10, help="Number of new exercises")
    parser.add_argument("--difficulty", default="medium", choices=["easier", "medium", "harder"])
    parser.add_argument("--language", default="English")
    parser.add_argument("--guidance", default=None, help="Extra instructions for the model")
    parser.add_argument("--server", default="http://localhost:4000")
    args = parser.parse_args()

    if not Path(args.source).exists():
        print(f"Error: file not found: {args.source}")
        sys.exit(1)

    print(f"Processing: {args.source}")
    try:
        asyncio.run(generate_and_save(args))
    except GenerationClientError as e:
        print(f"✗ {e.kind.value}: {e.message}")
        sys.exit(1)
