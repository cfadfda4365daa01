"""Development launcher for the FolderHub API.

Usage:
    python start_dev.py [--host 0.0.0.0] [--port 8082] [--no-reload]

Run from the repository root. A ``backend/.venv`` interpreter is used when
present, otherwise the current one. Ctrl+C stops the server.
"""

from __future__ import annotations

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = ROOT_DIR / "backend"

VENV_CANDIDATES = (
    BACKEND_DIR / ".venv" / "Scripts" / "python.exe",
    BACKEND_DIR / ".venv" / "bin" / "python",
    BACKEND_DIR / ".venv" / "bin" / "python3",
)

REQUIRED_MODULES = ("fastapi", "uvicorn", "sqlalchemy", "aiosqlite", "jose", "bcrypt", "multipart")

CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"


def log(level: str, msg: str) -> None:
    colors = {"info": CYAN, "start": GREEN, "stop": YELLOW, "error": RED}
    print(f"{colors.get(level, '')}[{level}]{RESET} {msg}")


def resolve_python() -> str:
    for candidate in VENV_CANDIDATES:
        if candidate.exists():
            return str(candidate)
    log("info", "No venv found: using the current interpreter")
    return sys.executable


def missing_modules(python: str) -> list[str]:
    """Names from REQUIRED_MODULES that ``python`` cannot import."""
    check = "import importlib.util as u, sys; print(','.join(m for m in sys.argv[1:] if u.find_spec(m) is None))"
    result = subprocess.run(
        [python, "-c", check, *REQUIRED_MODULES], capture_output=True, text=True
    )
    return [m for m in result.stdout.strip().split(",") if m]


def dev_env(base: dict[str, str]) -> dict[str, str]:
    """Environment for the server process. Debug stays off unless set explicitly."""
    env = dict(base)
    env.setdefault("FOLDERHUB_LOG_LEVEL", "INFO")
    env.setdefault("FOLDERHUB_ENVIRONMENT", "development")
    return env


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the FolderHub API with auto-reload")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8082)
    parser.add_argument("--no-reload", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    python = resolve_python()
    log("info", f"Python: {python}")

    missing = missing_modules(python)
    if missing:
        log("error", f"Missing packages: {', '.join(missing)}. Run:")
        log("error", f"  cd {ROOT_DIR} && pip install -e '.[test]'")
        return 1

    env = dev_env(os.environ)

    cmd = [python, "-m", "uvicorn", "folderhub.main:app", "--host", args.host, "--port", str(args.port)]
    if not args.no_reload:
        cmd.append("--reload")

    log("start", " ".join(cmd))
    log("info", f"  API:     http://{args.host}:{args.port}/api")
    log("info", f"  Docs:    http://{args.host}:{args.port}/docs")

    proc = subprocess.Popen(cmd, cwd=BACKEND_DIR, env=env)
    try:
        return proc.wait()
    except KeyboardInterrupt:
        log("stop", "Ctrl+C received, shutting down...")
        proc.send_signal(signal.SIGINT)
        try:
            return proc.wait(timeout=10) or 0
        except subprocess.TimeoutExpired:
            proc.kill()
            return 0


if __name__ == "__main__":
    raise SystemExit(main())
