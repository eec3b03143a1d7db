# transcode.py
# Domain records <-> ACM PCA API shapes.
#
# expand_*  : domain record -> request dict (None stays None)
# flatten_* : response dict -> domain record (None/missing stays None)
#
# An absent optional block and a present block full of defaults are kept
# apart in both directions. Empty strings are "not set".

from typing import Any, Dict, Optional

from .ir import (
    ASN1Subject, CAConfiguration, CrlConfiguration, RevocationConfiguration,
    KeyAlgorithm, SigningAlgorithm,
)

# ASN1Subject attribute -> API member
_SUBJECT_FIELDS = {
    "common_name": "CommonName",
    "country": "Country",
    "distinguished_name_qualifier": "DistinguishedNameQualifier",
    "generation_qualifier": "GenerationQualifier",
    "given_name": "GivenName",
    "initials": "Initials",
    "locality": "Locality",
    "organization": "Organization",
    "organizational_unit": "OrganizationalUnit",
    "pseudonym": "Pseudonym",
    "state": "State",
    "surname": "Surname",
    "title": "Title",
}


def enum_or_raw(enum_cls, value):
    # values the provider added after this enum was written pass through as-is
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _value(v):
    return v.value if hasattr(v, "value") else v


def expand_asn1_subject(subject: Optional[ASN1Subject]) -> Optional[Dict[str, str]]:
    if subject is None:
        return None
    out = {}
    for attr, key in _SUBJECT_FIELDS.items():
        v = getattr(subject, attr)
        if v:
            out[key] = v
    return out


def flatten_asn1_subject(data: Optional[Dict[str, Any]]) -> Optional[ASN1Subject]:
    if data is None:
        return None
    return ASN1Subject(**{attr: (data.get(key) or None) for attr, key in _SUBJECT_FIELDS.items()})


def expand_ca_configuration(config: Optional[CAConfiguration]) -> Optional[Dict[str, Any]]:
    if config is None:
        return None
    out = {
        "KeyAlgorithm": _value(config.key_algorithm),
        "SigningAlgorithm": _value(config.signing_algorithm),
    }
    subject = expand_asn1_subject(config.subject)
    if subject is not None:
        out["Subject"] = subject
    return out


def flatten_ca_configuration(data: Optional[Dict[str, Any]]) -> Optional[CAConfiguration]:
    if data is None:
        return None
    return CAConfiguration(
        key_algorithm=enum_or_raw(KeyAlgorithm, data.get("KeyAlgorithm", "")),
        signing_algorithm=enum_or_raw(SigningAlgorithm, data.get("SigningAlgorithm", "")),
        subject=flatten_asn1_subject(data.get("Subject")),
    )


def expand_crl_configuration(config: Optional[CrlConfiguration]) -> Optional[Dict[str, Any]]:
    if config is None:
        return None
    out: Dict[str, Any] = {"Enabled": bool(config.enabled)}
    if config.expiration_in_days and config.expiration_in_days > 0:
        out["ExpirationInDays"] = int(config.expiration_in_days)
    if config.custom_cname:
        out["CustomCname"] = config.custom_cname
    if config.s3_bucket_name:
        out["S3BucketName"] = config.s3_bucket_name
    return out


def flatten_crl_configuration(data: Optional[Dict[str, Any]]) -> Optional[CrlConfiguration]:
    if data is None:
        return None
    days = data.get("ExpirationInDays")
    return CrlConfiguration(
        enabled=bool(data.get("Enabled", False)),
        expiration_in_days=int(days) if days else None,
        s3_bucket_name=data.get("S3BucketName") or None,
        custom_cname=data.get("CustomCname") or None,
    )


def expand_revocation_configuration(config: Optional[RevocationConfiguration]) -> Optional[Dict[str, Any]]:
    if config is None:
        return None
    out = {}
    crl = expand_crl_configuration(config.crl_configuration)
    if crl is not None:
        out["CrlConfiguration"] = crl
    return out


def flatten_revocation_configuration(data: Optional[Dict[str, Any]]) -> Optional[RevocationConfiguration]:
    if data is None:
        return None
    return RevocationConfiguration(
        crl_configuration=flatten_crl_configuration(data.get("CrlConfiguration")),
    )
