from __future__ import annotations
import json
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from shellfish_toxics.version import __version__

def _sha256_file(path: Optional[str | Path]) -> dict:
    """Return {path, exists, size_bytes, sha256} for a file path."""
    info = {"path": str(path) if path else None, "exists": False, "size_bytes": None, "sha256": None}
    if not path:
        return info
    p = Path(path)
    if not p.is_file():
        return info
    h = hashlib.sha256()
    size = 0
    with p.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
            size += len(chunk)
    info["exists"] = True
    info["size_bytes"] = size
    info["sha256"] = h.hexdigest()
    return info

def build_audit(
    inputs: Dict[str, Any],
    options: Dict[str, Any],
    summary: Dict[str, Any],
    output_path: Optional[str | Path] = None,
) -> dict:
    """
    Audit record for one run. `inputs` maps an input name (samples,
    classification, ...) to its file path.
    """
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "app_version": __version__,
        "options": options,
        "file_integrity": {name: _sha256_file(path) for name, path in (inputs or {}).items()},
        "output": str(output_path) if output_path else None,
        "summary": summary,
    }

def write_audit(path: str | Path, record: dict) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(record, f, indent=2, default=str)
    return p
