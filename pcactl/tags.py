# tags.py
# Key/value tag reconciliation for certificate authorities.

import logging
from typing import Dict

from .aws_pca import PcaClient

log = logging.getLogger(__name__)

RESERVED_PREFIX = "aws:"


def ignore_reserved(tags: Dict[str, str]) -> Dict[str, str]:
    """Drop provider-managed keys (aws:*), which can be neither set nor removed."""
    return {k: v for k, v in (tags or {}).items() if not k.lower().startswith(RESERVED_PREFIX)}


def to_tag_list(tags: Dict[str, str]):
    return [{"Key": k, "Value": v} for k, v in sorted(tags.items())]


class TagRegistry:
    def __init__(self, client: PcaClient):
        self.client = client

    def list_tags(self, arn: str) -> Dict[str, str]:
        raw = self.client.list_tags(arn)
        return ignore_reserved({t["Key"]: t.get("Value", "") for t in raw})

    def update_tags(self, arn: str, old: Dict[str, str], new: Dict[str, str]) -> None:
        """
        Apply the old -> new diff:
          - untag keys present in old but not in new,
          - tag keys that are new or whose value changed.
        """
        old = ignore_reserved(old)
        new = ignore_reserved(new)

        removed = {k: v for k, v in old.items() if k not in new}
        updated = {k: v for k, v in new.items() if old.get(k) != v}

        if removed:
            log.debug("Removing tags %s from %s", sorted(removed), arn)
            self.client.untag_authority(arn, to_tag_list(removed))
        if updated:
            log.debug("Setting tags %s on %s", sorted(updated), arn)
            self.client.tag_authority(arn, to_tag_list(updated))
