from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import cast

from fastapi import FastAPI

from teamchat.core.config import Settings
from teamchat.main import create_app


def export_openapi(output_path: Path, app: FastAPI | None = None) -> None:
    schema = (app or create_app(Settings())).openapi()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _ = output_path.write_text(
        json.dumps(schema, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Export the chat server OpenAPI schema as JSON")
    _ = parser.add_argument(
        "--output",
        default="contracts/openapi.json",
        help="Output path (relative to current working directory)",
    )
    args = parser.parse_args()

    export_openapi(Path(cast(str, args.output)))


if __name__ == "__main__":
    main()
