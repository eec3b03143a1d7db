from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

DEFAULT_DELETION_RETENTION_DAYS = 30
MIN_DELETION_RETENTION_DAYS = 7
MAX_DELETION_RETENTION_DAYS = 30

ROOT_CA_TEMPLATE_ARN = "arn:aws:acm-pca:::template/RootCACertificate/V1"
END_ENTITY_TEMPLATE_ARN = "arn:aws:acm-pca:::template/EndEntityCertificate/V1"


class AuthorityType(str, Enum):
    ROOT = "ROOT"
    SUBORDINATE = "SUBORDINATE"


class AuthorityStatus(str, Enum):
    UNKNOWN = ""
    CREATING = "CREATING"
    PENDING_CERTIFICATE = "PENDING_CERTIFICATE"
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"
    DELETED = "DELETED"

    @classmethod
    def parse(cls, value):
        # unknown provider statuses are kept as plain strings
        try:
            return cls(value or "")
        except ValueError:
            return value


CREATION_PENDING = frozenset({AuthorityStatus.UNKNOWN, AuthorityStatus.CREATING})
CREATION_TARGET = frozenset({AuthorityStatus.ACTIVE, AuthorityStatus.PENDING_CERTIFICATE})


class KeyAlgorithm(str, Enum):
    RSA_2048 = "RSA_2048"
    RSA_4096 = "RSA_4096"
    EC_PRIME256V1 = "EC_prime256v1"
    EC_SECP384R1 = "EC_secp384r1"


class SigningAlgorithm(str, Enum):
    SHA256WITHECDSA = "SHA256WITHECDSA"
    SHA384WITHECDSA = "SHA384WITHECDSA"
    SHA512WITHECDSA = "SHA512WITHECDSA"
    SHA256WITHRSA = "SHA256WITHRSA"
    SHA384WITHRSA = "SHA384WITHRSA"
    SHA512WITHRSA = "SHA512WITHRSA"


class ValidityUnit(str, Enum):
    ABSOLUTE = "ABSOLUTE"
    DAYS = "DAYS"
    END_DATE = "END_DATE"
    MONTHS = "MONTHS"
    YEARS = "YEARS"


# field name -> max length
SUBJECT_FIELD_LIMITS = {
    "common_name": 64,
    "country": 2,
    "distinguished_name_qualifier": 64,
    "generation_qualifier": 3,
    "given_name": 16,
    "initials": 5,
    "locality": 128,
    "organization": 64,
    "organizational_unit": 64,
    "pseudonym": 128,
    "state": 128,
    "surname": 40,
    "title": 64,
}


@dataclass
class ASN1Subject:
    common_name: Optional[str] = None
    country: Optional[str] = None
    distinguished_name_qualifier: Optional[str] = None
    generation_qualifier: Optional[str] = None
    given_name: Optional[str] = None
    initials: Optional[str] = None
    locality: Optional[str] = None
    organization: Optional[str] = None
    organizational_unit: Optional[str] = None
    pseudonym: Optional[str] = None
    state: Optional[str] = None
    surname: Optional[str] = None
    title: Optional[str] = None


@dataclass
class CAConfiguration:
    key_algorithm: KeyAlgorithm
    signing_algorithm: SigningAlgorithm
    subject: Optional[ASN1Subject] = None


@dataclass
class CrlConfiguration:
    enabled: bool = False
    expiration_in_days: Optional[int] = None
    s3_bucket_name: Optional[str] = None
    custom_cname: Optional[str] = None


@dataclass
class RevocationConfiguration:
    # None means "no crl block", not "crl disabled"
    crl_configuration: Optional[CrlConfiguration] = None


@dataclass
class Validity:
    length: Optional[int] = None
    unit: Optional[ValidityUnit] = None


@dataclass
class AuthorityConfig:
    """Desired state of a certificate authority, as supplied to create/update."""
    configuration: CAConfiguration
    authority_type: AuthorityType = AuthorityType.SUBORDINATE
    revocation: Optional[RevocationConfiguration] = None
    enabled: bool = True
    tags: Dict[str, str] = field(default_factory=dict)
    deletion_retention_days: int = DEFAULT_DELETION_RETENTION_DAYS
    validity: Optional[Validity] = None


@dataclass
class AuthoritySnapshot:
    """Observed state of a certificate authority, as returned by read."""
    id: str
    authority_type: AuthorityType
    configuration: Optional[CAConfiguration]
    status: AuthorityStatus
    revocation: Optional[RevocationConfiguration] = None
    enabled: bool = True
    certificate: str = ""
    certificate_chain: str = ""
    certificate_signing_request: str = ""
    serial: str = ""
    not_before: str = ""
    not_after: str = ""
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def arn(self) -> str:
        return self.id


def _revocation_differs(observed: Optional[RevocationConfiguration],
                        desired: Optional[RevocationConfiguration]) -> bool:
    # Dropping a block from desired state never counts as a change; the
    # provider keeps the last configuration it was given.
    if desired is None:
        return False
    if observed is None:
        return True
    if desired.crl_configuration is None:
        return False
    return desired.crl_configuration != observed.crl_configuration


@dataclass
class AuthorityChanges:
    """What update() must apply. enabled=None means unchanged."""
    enabled: Optional[bool] = None
    revocation_changed: bool = False
    revocation: Optional[RevocationConfiguration] = None
    tags_changed: bool = False
    old_tags: Dict[str, str] = field(default_factory=dict)
    new_tags: Dict[str, str] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return self.enabled is None and not self.revocation_changed and not self.tags_changed

    @classmethod
    def between(cls, observed: AuthoritySnapshot, desired: AuthorityConfig) -> "AuthorityChanges":
        changes = cls()
        if observed.enabled != desired.enabled:
            changes.enabled = desired.enabled
        if _revocation_differs(observed.revocation, desired.revocation):
            changes.revocation_changed = True
            changes.revocation = desired.revocation
        if dict(observed.tags) != dict(desired.tags):
            changes.tags_changed = True
            changes.old_tags = dict(observed.tags)
            changes.new_tags = dict(desired.tags)
        return changes


@dataclass
class AttachmentSnapshot:
    id: str
    authority_id: str
    certificate: str = ""
    certificate_chain: str = ""


@dataclass
class IssuedCertificate:
    id: str
    authority_id: str
    certificate: str = ""
    certificate_chain: str = ""
    certificate_signing_request: str = ""
    signing_algorithm: Optional[SigningAlgorithm] = None
    template_arn: str = END_ENTITY_TEMPLATE_ARN
    validity: Optional[Validity] = None

    @property
    def arn(self) -> str:
        return self.id
