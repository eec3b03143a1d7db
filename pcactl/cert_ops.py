import logging
from typing import Optional

from .aws_pca import PcaClient
from .errors import NotFoundError, ValidationError, WrongStateError
from .ir import (
    END_ENTITY_TEMPLATE_ARN, AttachmentSnapshot, IssuedCertificate, SigningAlgorithm, Validity,
)
from .self_sign import signing_algorithm_value
from .settings import DEFAULT_SETTINGS, Settings
from .utils import idempotency_token, prefixed_unique_id, to_text

log = logging.getLogger(__name__)

REVOCATION_REASONS = (
    "UNSPECIFIED", "KEY_COMPROMISE", "CERTIFICATE_AUTHORITY_COMPROMISE", "AFFILIATION_CHANGED",
    "SUPERSEDED", "CESSATION_OF_OPERATION", "PRIVILEGE_WITHDRAWN", "A_A_COMPROMISE",
)


def _normalize_pem(value) -> str:
    text = to_text(value).strip()
    return text + "\n" if text else ""


class CertificateAttachment:
    """
    Imports an externally signed certificate (and chain) into an authority.

    This is a one-way operation. The provider keeps a single certificate slot
    per authority: a later import overwrites it and nothing can detach it.
    The attachment id is local bookkeeping only; read() always reports the
    authority's current certificate, whichever import put it there.
    """
    def __init__(self, client: PcaClient):
        self.client = client

    def create(self, authority_id: str, certificate_body, certificate_chain=None) -> AttachmentSnapshot:
        """
        Raises NotFoundError when the authority does not exist and
        WrongStateError (InvalidStateError) when it cannot take a certificate now.
        """
        body = _normalize_pem(certificate_body)
        if not body:
            raise ValidationError("certificate body is required", operation="attach", resource_id=authority_id)
        chain = _normalize_pem(certificate_chain) or None

        log.debug("Importing certificate into ACM PCA certificate authority %s", authority_id)
        self.client.import_authority_certificate(authority_id, body, chain)

        attachment_id = prefixed_unique_id(f"{authority_id}-")
        snap = self.read(authority_id, attachment_id)
        if snap is None:
            raise WrongStateError("authority has no certificate after import",
                                  operation="attach", resource_id=authority_id)
        return snap

    def read(self, authority_id: str, attachment_id: str) -> Optional[AttachmentSnapshot]:
        try:
            certificate, chain = self.client.get_authority_certificate(authority_id)
        except NotFoundError:
            log.warning("ACM PCA certificate authority %s not found - dropping attachment %s", authority_id, attachment_id)
            return None
        except WrongStateError:
            log.warning("ACM PCA certificate authority %s is PENDING_CERTIFICATE - dropping attachment %s",
                        authority_id, attachment_id)
            return None
        return AttachmentSnapshot(
            id=attachment_id,
            authority_id=authority_id,
            certificate=certificate,
            certificate_chain=chain,
        )

    def delete(self, authority_id: str, attachment_id: str = None) -> None:
        """No-op: a CA certificate can never be detached, only overwritten by another import."""
        log.warning("Certificate of ACM PCA certificate authority %s can never be detached, only overwritten",
                    authority_id)


class PrivateCertificate:
    """Issue, read and revoke end-entity certificates signed by an authority."""

    def __init__(self, client: PcaClient, settings: Settings = DEFAULT_SETTINGS):
        self.client = client
        self.settings = settings

    def issue(self, authority_id: str, csr, signing_algorithm, validity: Validity,
              template_arn: str = END_ENTITY_TEMPLATE_ARN) -> IssuedCertificate:
        if validity is None or not validity.length or not validity.unit:
            raise ValidationError("validity length and unit are required", operation="issue", resource_id=authority_id)
        if not csr:
            raise ValidationError("certificate signing request is required", operation="issue", resource_id=authority_id)
        algorithm = SigningAlgorithm(signing_algorithm_value(signing_algorithm, "issue", authority_id))

        cert_arn = self.client.issue_certificate(
            authority_id, csr,
            signing_algorithm=algorithm.value,
            template_arn=template_arn,
            validity={"Type": getattr(validity.unit, "value", validity.unit), "Value": int(validity.length)},
            token=idempotency_token(),
        )
        log.info("Issued certificate %s from %s", cert_arn, authority_id)
        self.client.wait_certificate_issued(
            authority_id, cert_arn,
            delay=self.settings.issue_wait_delay,
            max_attempts=self.settings.issue_wait_max_attempts,
        )
        certificate, chain = self.client.get_certificate(authority_id, cert_arn)
        return IssuedCertificate(
            id=cert_arn,
            authority_id=authority_id,
            certificate=certificate,
            certificate_chain=chain,
            certificate_signing_request=_normalize_pem(csr),
            signing_algorithm=algorithm,
            template_arn=template_arn,
            validity=validity,
        )

    def read(self, certificate_arn: str, authority_id: str) -> Optional[IssuedCertificate]:
        try:
            certificate, chain = self.client.get_certificate(authority_id, certificate_arn)
        except NotFoundError:
            log.warning("ACM PCA certificate %s not found", certificate_arn)
            return None
        return IssuedCertificate(
            id=certificate_arn,
            authority_id=authority_id,
            certificate=certificate,
            certificate_chain=chain,
        )

    def revoke(self, certificate_arn: str, authority_id: str, serial: str, reason: str = "UNSPECIFIED") -> None:
        """
        Revoke by serial (hex, colon separated, as shown by `openssl x509 -serial`).
        The serial must be supplied by the caller; certificates are not parsed here.
        An authority that no longer exists is treated as already revoked.
        """
        if reason not in REVOCATION_REASONS:
            raise ValidationError(f"unknown revocation reason {reason!r}", operation="revoke", resource_id=certificate_arn)
        if not serial:
            raise ValidationError("certificate serial is required", operation="revoke", resource_id=certificate_arn)
        try:
            self.client.revoke_certificate(authority_id, serial, reason)
        except NotFoundError:
            log.warning("ACM PCA certificate authority %s not found - nothing to revoke for %s", authority_id, certificate_arn)
            return
        log.info("Revoked certificate %s (serial %s, reason %s)", certificate_arn, serial, reason)
