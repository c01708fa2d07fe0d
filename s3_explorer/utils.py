from __future__ import annotations
from typing import Iterable, List, Dict, Any, Optional
from pathlib import Path
import posixpath
import yaml

from .errors import ConfigError, reraise_as


@reraise_as(ConfigError, OSError, yaml.YAMLError)
def read_yaml(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@reraise_as(ConfigError, OSError, UnicodeDecodeError)
def read_url_file(path: str | Path) -> List[str]:
    """
    Read bucket URLs, one per line. Blank lines and '#' comments are skipped.
    """
    urls: List[str] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            urls.append(line)
    return urls


def ensure_dir(path: Path | str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def filter_keys(keys: Iterable[str], needle: Optional[str] = None) -> List[str]:
    if not needle:
        return list(keys)
    return [k for k in keys if needle in k]


def object_url(base_url: str, key: str) -> str:
    # keys prefixed with their source bucket URL are already absolute
    if not base_url:
        return key
    return f"{base_url.rstrip('/')}/{key}"


def local_name_for(key: str) -> str:
    name = posixpath.basename(key.rstrip("/"))
    return name or "index"


def human_bytes(n: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    s = float(n)
    for u in units:
        if s < 1024 or u == units[-1]:
            return f"{s:.1f} {u}"
        s /= 1024.0
