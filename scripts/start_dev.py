#!/usr/bin/env python3
"""Apply migrations, then run the API dev server.

Usage:
    python scripts/start_dev.py
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
VENV_DIR = ROOT / ".venv"

if sys.platform == "win32":
    VENV_BIN = VENV_DIR / "Scripts"
else:
    VENV_BIN = VENV_DIR / "bin"

DEFAULT_PORT = os.environ.get("RWPORTAL_PORT", "8000")


def _find_executable(name: str) -> Path | None:
    """Look inside the venv first, fall back to PATH."""
    if VENV_BIN.exists():
        for candidate in (VENV_BIN / name, VENV_BIN / f"{name}.exe"):
            if candidate.exists():
                return candidate
    resolved = shutil.which(name)
    return Path(resolved) if resolved else None


def main() -> None:
    uvicorn_exe = _find_executable("uvicorn")
    alembic_exe = _find_executable("alembic")
    missing_bins = [name for name, path in (("uvicorn", uvicorn_exe), ("alembic", alembic_exe)) if path is None]
    if missing_bins:
        raise SystemExit(f"Missing required executables: {', '.join(missing_bins)}. Install dependencies and try again.")

    env = os.environ.copy()
    env.setdefault("PYTHONPATH", str(ROOT))

    print("[launcher] applying database migrations...")
    completed = subprocess.run(
        [str(alembic_exe), "-c", "rwportal/alembic.ini", "upgrade", "head"],
        cwd=str(ROOT),
        env=env,
        check=False,
    )
    if completed.returncode != 0:
        raise SystemExit(completed.returncode)

    cmd = [
        str(uvicorn_exe),
        "rwportal.main:create_app",
        "--factory",
        "--reload",
        "--port",
        DEFAULT_PORT,
    ]
    print(f"[launcher] starting api: {' '.join(cmd)}")
    try:
        subprocess.run(cmd, cwd=str(ROOT), env=env, check=False)
    except KeyboardInterrupt:
        print("[launcher] stopped")


if __name__ == "__main__":
    main()
