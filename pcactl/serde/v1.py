from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from .registry import VersionAdapter, register
from ..ir import (
    ASN1Subject, AuthorityConfig, AuthoritySnapshot, AuthorityType, CAConfiguration,
    CrlConfiguration, DEFAULT_DELETION_RETENTION_DAYS, KeyAlgorithm, RevocationConfiguration,
    SigningAlgorithm, Validity, ValidityUnit,
)


def _v(x):
    return x.value if hasattr(x, "value") else x


def _compact(d: dict) -> dict:
    return {k: _v(v) for k, v in d.items() if v is not None}


class V1Adapter(VersionAdapter):
    # ---- blocks ----
    def _subject_from_doc(self, s: Optional[dict]) -> Optional[ASN1Subject]:
        if s is None:
            return None
        # "" in a document means "not set"
        return ASN1Subject(**{k: (s.get(k) or None) for k in ASN1Subject.__dataclass_fields__})

    def _crl_from_doc(self, c: Optional[dict]) -> Optional[CrlConfiguration]:
        if c is None:
            return None
        return CrlConfiguration(
            enabled=bool(c.get("enabled", False)),
            expiration_in_days=c.get("expiration_in_days"),
            s3_bucket_name=c.get("s3_bucket_name") or None,
            custom_cname=c.get("custom_cname") or None,
        )

    def _revocation_from_doc(self, r: Optional[dict]) -> Optional[RevocationConfiguration]:
        if r is None:
            return None
        return RevocationConfiguration(crl_configuration=self._crl_from_doc(r.get("crl_configuration")))

    def _ca_config_to_doc(self, c: Optional[CAConfiguration]) -> Optional[dict]:
        if c is None:
            return None
        out = {
            "key_algorithm": _v(c.key_algorithm),
            "signing_algorithm": _v(c.signing_algorithm),
        }
        if c.subject is not None:
            out["subject"] = _compact(asdict(c.subject))
        return out

    def _revocation_to_doc(self, r: Optional[RevocationConfiguration]) -> Optional[dict]:
        if r is None:
            return None
        out = {}
        if r.crl_configuration is not None:
            out["crl_configuration"] = _compact(asdict(r.crl_configuration))
        return out

    # ---- to IR ----
    def to_ir_authority(self, doc: dict) -> AuthorityConfig:
        cac = doc.get("certificate_authority_configuration") or {}
        validity = None
        if doc.get("validity_length") is not None or doc.get("validity_unit") is not None:
            unit = doc.get("validity_unit")
            validity = Validity(
                length=doc.get("validity_length"),
                unit=ValidityUnit(unit) if unit else None,
            )
        return AuthorityConfig(
            configuration=CAConfiguration(
                key_algorithm=KeyAlgorithm(cac["key_algorithm"]),
                signing_algorithm=SigningAlgorithm(cac["signing_algorithm"]),
                subject=self._subject_from_doc(cac.get("subject")),
            ),
            authority_type=AuthorityType(doc.get("type", AuthorityType.SUBORDINATE.value)),
            revocation=self._revocation_from_doc(doc.get("revocation_configuration")),
            enabled=bool(doc.get("enabled", True)),
            tags=dict(doc.get("tags") or {}),
            deletion_retention_days=int(doc.get("permanent_deletion_time_in_days", DEFAULT_DELETION_RETENTION_DAYS)),
            validity=validity,
        )

    # ---- from IR ----
    def from_ir_authority(self, config: AuthorityConfig) -> dict:
        out = {
            "version": "v1",
            "kind": "certificate_authority",
            "type": _v(config.authority_type),
            "enabled": config.enabled,
            "permanent_deletion_time_in_days": config.deletion_retention_days,
            "certificate_authority_configuration": self._ca_config_to_doc(config.configuration),
            "tags": dict(config.tags),
        }
        if config.validity is not None:
            out.update(_compact({
                "validity_length": config.validity.length,
                "validity_unit": config.validity.unit,
            }))
        revocation = self._revocation_to_doc(config.revocation)
        if revocation is not None:
            out["revocation_configuration"] = revocation
        return out

    def from_ir_snapshot(self, snap: AuthoritySnapshot) -> dict:
        out = {
            "version": "v1",
            "arn": snap.id,
            "type": _v(snap.authority_type),
            "status": _v(snap.status),
            "enabled": snap.enabled,
            "serial": snap.serial,
            "not_before": snap.not_before,
            "not_after": snap.not_after,
            "certificate_authority_configuration": self._ca_config_to_doc(snap.configuration),
            "certificate": snap.certificate,
            "certificate_chain": snap.certificate_chain,
            "certificate_signing_request": snap.certificate_signing_request,
            "tags": dict(snap.tags),
        }
        revocation = self._revocation_to_doc(snap.revocation)
        if revocation is not None:
            out["revocation_configuration"] = revocation
        return out


# register adapter on import
register("v1", V1Adapter())
