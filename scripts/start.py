#!/usr/bin/env python3
"""
Production entry point: migrate + seed, then exec gunicorn on app.wsgi:app.

Usage:
    PORT=8080 python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEFAULT_PORT = 8080


def resolve_port(raw: str | None) -> int:
    raw = (raw or "").strip()
    if not raw:
        return DEFAULT_PORT
    port = int(raw)
    if not 1 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return port


def gunicorn_argv(port: int, *, workers: int = 2, threads: int = 4) -> list[str]:
    # Event-view requests hold a worker thread while two pool threads query the DB.
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--threads", str(threads),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    try:
        port = resolve_port(os.environ.get("PORT"))
    except ValueError:
        print(f"ERROR: Invalid PORT value {os.environ.get('PORT')!r}. Must be integer 1-65535.", flush=True)
        sys.exit(1)

    from scripts.release import run_release
    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== Starting gunicorn on 0.0.0.0:{port} ===", flush=True)
    argv = gunicorn_argv(port)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
