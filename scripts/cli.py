"""
CLI to verify a probe image against the reference set -> JSON.
"""
from __future__ import annotations
import argparse, asyncio, json
from core.config import Settings
from core.pipeline import verify_image

def main():
    p = argparse.ArgumentParser()
    p.add_argument("--image", required=True, help="Path to the probe image")
    p.add_argument("--references-dir", default=None, help="Directory of reference images (label = file name)")
    p.add_argument("--api-url", default=None, help="Reference backend base URL")
    p.add_argument("--out", default=None, help="Optional path to output JSON")
    args = p.parse_args()

    overrides = {}
    if args.references_dir:
        overrides.update(REFERENCE_SOURCE="local", REFERENCE_DIR=args.references_dir)
    elif args.api_url:
        overrides.update(REFERENCE_SOURCE="remote", REFERENCE_API_URL=args.api_url)
    settings = Settings(**overrides)

    outcome = asyncio.run(verify_image(args.image, settings))
    result = outcome.model_dump(mode="json")
    print(json.dumps(result, indent=2, ensure_ascii=False))

    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(result, f, indent=2, ensure_ascii=False)
        print(f"✅ Result written to {args.out}")

if __name__ == "__main__":
    main()
