import sys
from typing import Any, Dict

import yaml

from . import v1  # noqa: F401  (registers the v1 adapter)

from .validate import validate_doc
from .registry import get as get_adapter
from ..errors import ValidationError
from ..ir import AuthorityConfig, AuthoritySnapshot


def _detect_version(doc: dict) -> str:
    v = doc.get("version")
    if not v:
        raise ValidationError("Missing 'version' field in document", operation="validate")
    return v


# ----- schema adapters (in-memory) -----

def load_authority(doc: Dict[str, Any]) -> AuthorityConfig:
    if not isinstance(doc, dict):
        raise ValidationError("authority document must be a mapping", operation="validate")
    v = _detect_version(doc)
    ad = get_adapter(v)
    validate_doc(doc, v, "authority")
    return ad.to_ir_authority(doc)


def dump_authority(config: AuthorityConfig, target_version: str = "v1") -> dict:
    ad = get_adapter(target_version)
    out = ad.from_ir_authority(config)
    out.setdefault("version", target_version)
    return out


def dump_snapshot(snap: AuthoritySnapshot, target_version: str = "v1") -> dict:
    ad = get_adapter(target_version)
    out = ad.from_ir_snapshot(snap)
    out.setdefault("version", target_version)
    return out


# ----- file IO -----

def read_text(path: str) -> str:
    if path in ("-", "/dev/stdin"):
        return sys.stdin.read()
    with open(path, encoding="utf-8") as f:
        return f.read()


def read_document(path: str) -> Dict[str, Any]:
    """JSON or YAML document from a file or '-' (stdin)."""
    try:
        doc = yaml.safe_load(read_text(path))
    except yaml.YAMLError as e:
        raise ValidationError(f"{path}: not valid YAML/JSON: {e}", operation="read") from e
    return doc or {}


def read_authority(path: str) -> AuthorityConfig:
    return load_authority(read_document(path))
