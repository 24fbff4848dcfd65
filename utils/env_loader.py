from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_BOM = b"\xef\xbb\xbf"


def load_env(env_path: Optional[Path] = None) -> bool:
    """Загружает .env, предварительно вычищая BOM и CRLF.

    Возвращает True, если файл был найден.
    """
    env_path = env_path or Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        load_dotenv()
        return False

    raw = env_path.read_bytes()
    content = raw[len(_BOM):] if raw.startswith(_BOM) else raw
    content = content.replace(b"\r\n", b"\n")
    if content != raw:
        env_path.write_bytes(content)
    load_dotenv(env_path)
    return True
