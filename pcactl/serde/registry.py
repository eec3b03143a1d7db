from typing import Dict

from ..errors import ValidationError
from ..ir import AuthorityConfig, AuthoritySnapshot


class VersionAdapter:
    """Converts one document schema version to and from the IR."""

    def to_ir_authority(self, doc: dict) -> AuthorityConfig:
        raise NotImplementedError

    def from_ir_authority(self, config: AuthorityConfig) -> dict:
        raise NotImplementedError

    def from_ir_snapshot(self, snap: AuthoritySnapshot) -> dict:
        raise NotImplementedError


_ADAPTERS: Dict[str, VersionAdapter] = {}


def register(version: str, adapter: VersionAdapter) -> None:
    _ADAPTERS[version] = adapter


def get(version: str) -> VersionAdapter:
    try:
        return _ADAPTERS[version]
    except KeyError:
        raise ValidationError(f"unsupported document version {version!r}", operation="validate") from None
