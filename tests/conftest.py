import itertools
from datetime import datetime, timedelta, timezone

import pytest
from botocore.exceptions import ClientError, WaiterError

from pcactl.aws_pca import PcaClient
from pcactl.ca_ops import CertificateAuthorityManager
from pcactl.ir import (
    ASN1Subject, AuthorityConfig, AuthorityType, CAConfiguration, KeyAlgorithm,
    SigningAlgorithm, Validity, ValidityUnit,
)
from pcactl.poller import ActivationPoller
from pcactl.settings import Settings

ACCOUNT_PREFIX = "arn:aws:acm-pca:us-east-1:123456789012:certificate-authority/"
S3_PERMISSION_MESSAGE = (
    "The ACM Private CA service account 'acm-pca-prod-pdx' requires getBucketAcl permissions "
    "for your S3 bucket 'crl-bucket'. Check your S3 bucket permissions and try again."
)


def client_error(code, message="", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def pem(kind, body):
    return f"-----BEGIN {kind}-----\n{body}\n-----END {kind}-----\n"


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeWaiter:
    def __init__(self, fake):
        self.fake = fake

    def wait(self, CertificateAuthorityArn, CertificateArn, WaiterConfig=None):
        self.fake.calls.append(("wait_certificate_issued", {
            "CertificateAuthorityArn": CertificateAuthorityArn,
            "CertificateArn": CertificateArn,
            "WaiterConfig": WaiterConfig,
        }))
        if self.fake.waiter_errors:
            raise self.fake.waiter_errors.pop(0)
        if CertificateArn not in self.fake.certificates:
            raise WaiterError(name="CertificateIssued", reason="Max attempts exceeded", last_response={})


class FakeAcmPca:
    """In-memory stand-in for the boto3 acm-pca client.

    New authorities start CREATING and step through `status_sequence`, one
    status per describe call. Creating twice with the same idempotency token
    returns the first ARN.
    """

    def __init__(self):
        self.authorities = {}
        self.tokens = {}
        self.certificates = {}
        self.calls = []
        self.errors = {}
        self.create_then_fail = []
        self.waiter_errors = []
        self.status_sequence = ["CREATING", "PENDING_CERTIFICATE"]
        self.tag_page_size = 50
        self._ids = itertools.count(1)

    # ---- helpers ----
    def _record(self, op, kwargs):
        self.calls.append((op, kwargs))
        if self.errors.get(op):
            raise self.errors[op].pop(0)

    def calls_to(self, op):
        return [kw for name, kw in self.calls if name == op]

    def _get(self, arn, op):
        if arn not in self.authorities:
            raise client_error("ResourceNotFoundException", f"Could not find certificate authority {arn}.", op)
        return self.authorities[arn]

    def add_authority(self, status="ACTIVE", authority_type="SUBORDINATE", certificate=None, chain="",
                      revocation=None, tags=None):
        arn = f"{ACCOUNT_PREFIX}{next(self._ids):08d}"
        self.authorities[arn] = {
            "Arn": arn,
            "Type": authority_type,
            "Status": status,
            "CertificateAuthorityConfiguration": {
                "KeyAlgorithm": "RSA_2048",
                "SigningAlgorithm": "SHA256WITHRSA",
                "Subject": {"CommonName": "example.com"},
            },
            "statuses": [],
            "csr": pem("CERTIFICATE REQUEST", f"csr-{arn}"),
            "certificate": certificate if certificate is not None else (
                pem("CERTIFICATE", f"cert-{arn}") if status == "ACTIVE" else ""),
            "chain": chain,
            "tags": dict(tags or {}),
        }
        if revocation is not None:
            self.authorities[arn]["RevocationConfiguration"] = revocation
        return arn

    # ---- authority ----
    def create_certificate_authority(self, **kwargs):
        self._record("create_certificate_authority", kwargs)
        token = kwargs["IdempotencyToken"]
        if token in self.tokens:
            return {"CertificateAuthorityArn": self.tokens[token]}
        arn = self.add_authority(status="CREATING", authority_type=kwargs["CertificateAuthorityType"],
                                 tags={t["Key"]: t["Value"] for t in kwargs.get("Tags", [])})
        ca = self.authorities[arn]
        ca["CertificateAuthorityConfiguration"] = kwargs["CertificateAuthorityConfiguration"]
        if "RevocationConfiguration" in kwargs:
            ca["RevocationConfiguration"] = kwargs["RevocationConfiguration"]
        ca["statuses"] = list(self.status_sequence)
        self.tokens[token] = arn
        if self.create_then_fail:
            # the provider created it but the response was lost
            raise self.create_then_fail.pop(0)
        return {"CertificateAuthorityArn": arn}

    def describe_certificate_authority(self, **kwargs):
        self._record("describe_certificate_authority", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "DescribeCertificateAuthority")
        if ca["statuses"]:
            ca["Status"] = ca["statuses"].pop(0)
        out = {k: v for k, v in ca.items() if k[0].isupper()}
        return {"CertificateAuthority": out}

    def update_certificate_authority(self, **kwargs):
        self._record("update_certificate_authority", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "UpdateCertificateAuthority")
        if "Status" in kwargs:
            ca["Status"] = kwargs["Status"]
        if "RevocationConfiguration" in kwargs:
            ca["RevocationConfiguration"] = kwargs["RevocationConfiguration"]
        return {}

    def delete_certificate_authority(self, **kwargs):
        self._record("delete_certificate_authority", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "DeleteCertificateAuthority")
        ca["Status"] = "DELETED"
        return {}

    def get_certificate_authority_certificate(self, **kwargs):
        self._record("get_certificate_authority_certificate", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "GetCertificateAuthorityCertificate")
        if not ca["certificate"]:
            raise client_error("InvalidStateException",
                               "The certificate authority is not in the correct state to have a certificate.",
                               "GetCertificateAuthorityCertificate")
        out = {"Certificate": ca["certificate"]}
        if ca["chain"]:
            out["CertificateChain"] = ca["chain"]
        return out

    def get_certificate_authority_csr(self, **kwargs):
        self._record("get_certificate_authority_csr", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "GetCertificateAuthorityCsr")
        if ca["Status"] in ("", "CREATING", "FAILED"):
            raise client_error("InvalidStateException",
                               "The certificate authority is not in the correct state to have a certificate signing request.",
                               "GetCertificateAuthorityCsr")
        return {"Csr": ca["csr"]}

    def import_certificate_authority_certificate(self, **kwargs):
        self._record("import_certificate_authority_certificate", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "ImportCertificateAuthorityCertificate")
        if ca["Status"] not in ("PENDING_CERTIFICATE", "ACTIVE"):
            raise client_error("InvalidStateException", "The certificate authority cannot accept a certificate.",
                               "ImportCertificateAuthorityCertificate")
        ca["certificate"] = kwargs["Certificate"].decode("utf-8")
        ca["chain"] = kwargs.get("CertificateChain", b"").decode("utf-8")
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        ca["Status"] = "ACTIVE"
        ca["Serial"] = "01:02:03"
        ca["NotBefore"] = now
        ca["NotAfter"] = now + timedelta(days=365)
        return {}

    # ---- certificates ----
    def issue_certificate(self, **kwargs):
        self._record("issue_certificate", kwargs)
        ca_arn = kwargs["CertificateAuthorityArn"]
        ca = self._get(ca_arn, "IssueCertificate")
        cert_arn = f"{ca_arn}/certificate/{next(self._ids):032x}"
        root = kwargs.get("TemplateArn", "").endswith("RootCACertificate/V1")
        self.certificates[cert_arn] = {
            "Certificate": pem("CERTIFICATE", f"issued-{cert_arn}"),
            "CertificateChain": "" if root else ca["certificate"],
        }
        return {"CertificateArn": cert_arn}

    def get_waiter(self, name):
        assert name == "certificate_issued"
        return FakeWaiter(self)

    def get_certificate(self, **kwargs):
        self._record("get_certificate", kwargs)
        self._get(kwargs["CertificateAuthorityArn"], "GetCertificate")
        cert = self.certificates.get(kwargs["CertificateArn"])
        if cert is None:
            raise client_error("ResourceNotFoundException", "certificate not found", "GetCertificate")
        out = {"Certificate": cert["Certificate"]}
        if cert["CertificateChain"]:
            out["CertificateChain"] = cert["CertificateChain"]
        return out

    def revoke_certificate(self, **kwargs):
        self._record("revoke_certificate", kwargs)
        self._get(kwargs["CertificateAuthorityArn"], "RevokeCertificate")
        return {}

    # ---- tags ----
    def list_tags(self, **kwargs):
        self._record("list_tags", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "ListTags")
        items = [{"Key": k, "Value": v} for k, v in sorted(ca["tags"].items())]
        start = int(kwargs.get("NextToken", 0))
        page = items[start:start + self.tag_page_size]
        out = {"Tags": page}
        if start + self.tag_page_size < len(items):
            out["NextToken"] = str(start + self.tag_page_size)
        return out

    def tag_certificate_authority(self, **kwargs):
        self._record("tag_certificate_authority", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "TagCertificateAuthority")
        for t in kwargs["Tags"]:
            ca["tags"][t["Key"]] = t["Value"]
        return {}

    def untag_certificate_authority(self, **kwargs):
        self._record("untag_certificate_authority", kwargs)
        ca = self._get(kwargs["CertificateAuthorityArn"], "UntagCertificateAuthority")
        for t in kwargs["Tags"]:
            ca["tags"].pop(t["Key"], None)
        return {}


@pytest.fixture
def fake():
    return FakeAcmPca()


@pytest.fixture
def client(fake):
    return PcaClient(client=fake)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(create_timeout=30, poll_interval=5, create_retry_budget=60,
                    create_retry_max_wait=1, issue_wait_delay=0, issue_wait_max_attempts=3)


@pytest.fixture
def manager(client, settings, clock):
    poller = ActivationPoller(settings.poll_interval, sleep=clock.sleep, clock=clock)
    return CertificateAuthorityManager(client, settings=settings, poller=poller, sleep=clock.sleep)


@pytest.fixture
def root_config():
    return AuthorityConfig(
        configuration=CAConfiguration(
            key_algorithm=KeyAlgorithm.RSA_4096,
            signing_algorithm=SigningAlgorithm.SHA512WITHRSA,
            subject=ASN1Subject(common_name="terraformtesting.com"),
        ),
        authority_type=AuthorityType.ROOT,
        deletion_retention_days=7,
        validity=Validity(length=1, unit=ValidityUnit.YEARS),
    )


@pytest.fixture
def subordinate_config():
    return AuthorityConfig(
        configuration=CAConfiguration(
            key_algorithm=KeyAlgorithm.RSA_2048,
            signing_algorithm=SigningAlgorithm.SHA256WITHRSA,
            subject=ASN1Subject(common_name="sub.example.com", organization="Example"),
        ),
        authority_type=AuthorityType.SUBORDINATE,
        tags={"Name": "sub"},
    )
