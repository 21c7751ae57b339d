"""Serve the searchrag API with uvicorn."""

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when executed via `python scripts/...`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import uvicorn

from searchrag.config import load_app_config


def main(host: str, port: int, reload: bool) -> None:
    print(f"Server is listening on port {port}")
    uvicorn.run("app.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    server_cfg = load_app_config().get("server") or {}
    parser = argparse.ArgumentParser(description="Run the searchrag API server.")
    parser.add_argument("--host", default=server_cfg.get("host") or "0.0.0.0")
    parser.add_argument("--port", type=int, default=int(server_cfg.get("port") or 8000))
    parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    args = parser.parse_args()
    main(args.host, args.port, args.reload)
