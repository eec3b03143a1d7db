import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from .errors import (
    NotFoundError, ProviderError, TransientProviderError, WaitTimeoutError,
    WrongStateError, is_s3_permission_propagation_delay,
)
from .utils import to_blob, to_text

log = logging.getLogger(__name__)

NOT_FOUND_CODE = "ResourceNotFoundException"
INVALID_STATE_CODE = "InvalidStateException"


def translate_client_error(e: ClientError, operation: str, resource_id: Optional[str]):
    err = e.response.get("Error", {}) or {}
    code = err.get("Code", "") or ""
    msg = err.get("Message", "") or str(e)
    if code == NOT_FOUND_CODE:
        return NotFoundError(msg, operation=operation, resource_id=resource_id)
    if code == INVALID_STATE_CODE:
        return WrongStateError(msg, operation=operation, resource_id=resource_id)
    if is_s3_permission_propagation_delay(code, msg):
        return TransientProviderError(msg, operation=operation, resource_id=resource_id)
    return ProviderError(f"{code}: {msg}" if code else msg, operation=operation, resource_id=resource_id)


class PcaClient:
    """
    Thin wrapper around the boto3 acm-pca client.
    Every call goes through _call() so callers only ever see pcactl errors.
    Holds no per-authority state; safe to share across unrelated authorities.
    """
    def __init__(self, region: str = None, profile: str = None, endpoint_url: str = None, client=None):
        if client is None:
            session = boto3.session.Session(profile_name=profile, region_name=region)
            client = session.client("acm-pca", endpoint_url=endpoint_url)
        self.acmpca = client

    def _call(self, operation: str, resource_id: Optional[str], **kwargs) -> Dict[str, Any]:
        log.debug("[acm-pca] %s %s", operation, {k: v for k, v in kwargs.items() if k not in ("Certificate", "CertificateChain", "Csr")})
        try:
            return getattr(self.acmpca, operation)(**kwargs)
        except ClientError as e:
            raise translate_client_error(e, operation, resource_id) from e
        except BotoCoreError as e:
            raise ProviderError(str(e), operation=operation, resource_id=resource_id) from e

    # ---- authority ----
    def create_authority(self, configuration: Dict[str, Any], authority_type: str, token: str,
                         revocation: Optional[Dict[str, Any]] = None,
                         tags: Optional[List[Dict[str, str]]] = None) -> str:
        kwargs = {
            "CertificateAuthorityConfiguration": configuration,
            "CertificateAuthorityType": authority_type,
            "IdempotencyToken": token,
        }
        if revocation is not None:
            kwargs["RevocationConfiguration"] = revocation
        if tags:
            kwargs["Tags"] = tags
        r = self._call("create_certificate_authority", None, **kwargs)
        return r["CertificateAuthorityArn"]

    def describe_authority(self, arn: str) -> Optional[Dict[str, Any]]:
        r = self._call("describe_certificate_authority", arn, CertificateAuthorityArn=arn)
        return r.get("CertificateAuthority")

    def update_authority(self, arn: str, status: str = None, revocation: Optional[Dict[str, Any]] = None) -> None:
        kwargs = {"CertificateAuthorityArn": arn}
        if status is not None:
            kwargs["Status"] = status
        if revocation is not None:
            kwargs["RevocationConfiguration"] = revocation
        self._call("update_certificate_authority", arn, **kwargs)

    def delete_authority(self, arn: str, retention_days: int = None) -> None:
        kwargs = {"CertificateAuthorityArn": arn}
        if retention_days is not None:
            kwargs["PermanentDeletionTimeInDays"] = int(retention_days)
        self._call("delete_certificate_authority", arn, **kwargs)

    def get_authority_certificate(self, arn: str) -> Tuple[str, str]:
        r = self._call("get_certificate_authority_certificate", arn, CertificateAuthorityArn=arn)
        return to_text(r.get("Certificate")), to_text(r.get("CertificateChain"))

    def get_authority_csr(self, arn: str) -> str:
        r = self._call("get_certificate_authority_csr", arn, CertificateAuthorityArn=arn)
        return to_text(r.get("Csr"))

    def import_authority_certificate(self, arn: str, certificate, chain=None) -> None:
        kwargs = {"CertificateAuthorityArn": arn, "Certificate": to_blob(certificate)}
        if chain:
            kwargs["CertificateChain"] = to_blob(chain)
        self._call("import_certificate_authority_certificate", arn, **kwargs)

    # ---- certificates ----
    def issue_certificate(self, arn: str, csr, signing_algorithm: str, template_arn: str,
                          validity: Dict[str, Any], token: str) -> str:
        r = self._call(
            "issue_certificate", arn,
            CertificateAuthorityArn=arn,
            Csr=to_blob(csr),
            SigningAlgorithm=signing_algorithm,
            TemplateArn=template_arn,
            Validity=validity,
            IdempotencyToken=token,
        )
        return r["CertificateArn"]

    def wait_certificate_issued(self, arn: str, certificate_arn: str, delay: int, max_attempts: int) -> None:
        waiter = self.acmpca.get_waiter("certificate_issued")
        started = time.monotonic()
        log.debug("[acm-pca] waiting for %s (delay=%s, attempts=%s)", certificate_arn, delay, max_attempts)
        try:
            waiter.wait(
                CertificateAuthorityArn=arn,
                CertificateArn=certificate_arn,
                WaiterConfig={"Delay": delay, "MaxAttempts": max_attempts},
            )
        except WaiterError as e:
            elapsed = time.monotonic() - started
            if "Max attempts exceeded" in str(e.kwargs.get("reason", "")):
                raise WaitTimeoutError(
                    f"certificate not issued after {elapsed:.1f}s",
                    elapsed=elapsed, operation="wait_certificate_issued", resource_id=certificate_arn,
                ) from e
            last = e.last_response or {}
            if "Error" in last:
                raise translate_client_error(
                    ClientError(last, "GetCertificate"), "wait_certificate_issued", certificate_arn
                ) from e
            raise ProviderError(str(e), operation="wait_certificate_issued", resource_id=certificate_arn) from e

    def get_certificate(self, arn: str, certificate_arn: str) -> Tuple[str, str]:
        r = self._call("get_certificate", certificate_arn,
                       CertificateAuthorityArn=arn, CertificateArn=certificate_arn)
        return to_text(r.get("Certificate")), to_text(r.get("CertificateChain"))

    def revoke_certificate(self, arn: str, serial: str, reason: str) -> None:
        self._call("revoke_certificate", arn,
                   CertificateAuthorityArn=arn, CertificateSerial=serial, RevocationReason=reason)

    # ---- tags ----
    def list_tags(self, arn: str) -> List[Dict[str, str]]:
        tags: List[Dict[str, str]] = []
        kwargs = {"CertificateAuthorityArn": arn}
        while True:
            r = self._call("list_tags", arn, **kwargs)
            tags.extend(r.get("Tags", []) or [])
            token = r.get("NextToken")
            if not token:
                return tags
            kwargs["NextToken"] = token

    def tag_authority(self, arn: str, tags: List[Dict[str, str]]) -> None:
        self._call("tag_certificate_authority", arn, CertificateAuthorityArn=arn, Tags=tags)

    def untag_authority(self, arn: str, tags: List[Dict[str, str]]) -> None:
        self._call("untag_certificate_authority", arn, CertificateAuthorityArn=arn, Tags=tags)
