"""Basic environment self-check for the Pomodoro timer."""

from __future__ import annotations

import importlib
import os
import re
import sys
from pathlib import Path

import httpx

sys.path.append(str(Path(__file__).resolve().parents[1]))
from utils.env_loader import load_env


REQUIRED_LIBS = {
    "aiogram": "3.4",
    "httpx": "0.27",
    "pydantic": "2.0",
    "google.cloud.firestore": "2.15",
}


def _version_tuple(version: str) -> tuple[int, ...]:
    parts = []
    for piece in version.split(".")[:2]:
        match = re.match(r"\d+", piece)
        parts.append(int(match.group()) if match else 0)
    return tuple(parts)


def check_env(env_path: Path | None = None) -> list[str]:
    issues: list[str] = []
    env_path = env_path or Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        raw = env_path.read_bytes()
        if raw.startswith(b"\xef\xbb\xbf"):
            issues.append("BOM detected in .env")
        if b"\r\n" in raw:
            issues.append("CRLF line endings in .env")
    else:
        issues.append(".env file not found")
    if os.getenv("BOT_TOKEN") and not os.getenv("NOTIFY_CHAT_ID"):
        issues.append("BOT_TOKEN set without NOTIFY_CHAT_ID: notifications go to log only")
    return issues


def check_lib_versions() -> list[str]:
    problems: list[str] = []
    for module, min_version in REQUIRED_LIBS.items():
        try:
            pkg = importlib.import_module(module)
            ver = getattr(pkg, "__version__", "0")
            if _version_tuple(ver) < _version_tuple(min_version):
                problems.append(f"{module} version {ver} < {min_version}")
        except Exception as e:  # pragma: no cover - best effort
            problems.append(f"{module} import failed: {e}")
    return problems


def check_telegram(token: str | None) -> list[str]:
    if not token or os.getenv("MOCK_MODE") == "1":
        return []
    problems: list[str] = []
    try:
        with httpx.Client(timeout=5.0) as client:
            resp = client.get(f"https://api.telegram.org/bot{token}/getMe")
        if resp.status_code != 200:
            problems.append(f"Telegram getMe returned {resp.status_code}")
    except httpx.HTTPError as e:
        problems.append(f"Telegram unreachable: {e}")
    return problems


def main() -> int:
    load_env()
    issues = []

    issues.extend(check_env())
    issues.extend(check_lib_versions())
    issues.extend(check_telegram(os.getenv("BOT_TOKEN")))

    if issues:
        print("Self-check found issues:")
        for item in issues:
            print(" -", item)
        return 1
    print("Self-check passed")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
