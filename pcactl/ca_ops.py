import logging
import time
from typing import Callable, Optional

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_delay, wait_exponential

from .aws_pca import PcaClient
from .errors import (
    NotFoundError, ProviderError, TransientProviderError, UnexpectedStateError,
    ValidationError, WrongStateError,
)
from .ir import (
    AuthorityChanges, AuthorityConfig, AuthoritySnapshot, AuthorityStatus, AuthorityType,
    CREATION_PENDING, CREATION_TARGET, DEFAULT_DELETION_RETENTION_DAYS,
    MAX_DELETION_RETENTION_DAYS, MIN_DELETION_RETENTION_DAYS, RevocationConfiguration, SUBJECT_FIELD_LIMITS,
    Validity,
)
from .poller import ActivationPoller
from .self_sign import RootSelfSigner
from .settings import DEFAULT_SETTINGS, Settings
from .tags import TagRegistry, to_tag_list, ignore_reserved
from .transcode import (
    enum_or_raw, expand_ca_configuration, expand_revocation_configuration,
    flatten_ca_configuration, flatten_revocation_configuration,
)
from .utils import idempotency_token, to_rfc3339

log = logging.getLogger(__name__)


def validate_retention_days(days: int) -> None:
    if not MIN_DELETION_RETENTION_DAYS <= int(days) <= MAX_DELETION_RETENTION_DAYS:
        raise ValidationError(
            f"deletion retention must be between {MIN_DELETION_RETENTION_DAYS} and "
            f"{MAX_DELETION_RETENTION_DAYS} days, got {days}",
            operation="validate",
        )


def validate_config(config: AuthorityConfig) -> None:
    """Local preconditions for create(). Raises ValidationError before any remote call."""
    if config.configuration is None:
        raise ValidationError("certificate authority configuration is required", operation="validate")

    if config.authority_type == AuthorityType.ROOT:
        v = config.validity or Validity()
        if not v.length:
            raise ValidationError("validity length must be set when creating a self-signed ROOT authority",
                                  operation="validate")
        if not v.unit:
            raise ValidationError("validity unit must be set when creating a self-signed ROOT authority",
                                  operation="validate")

    validate_retention_days(config.deletion_retention_days)

    subject = config.configuration.subject
    if subject is not None:
        for name, limit in SUBJECT_FIELD_LIMITS.items():
            value = getattr(subject, name)
            if value and len(value) > limit:
                raise ValidationError(f"subject {name} is longer than {limit} characters", operation="validate")

    validate_revocation(config.revocation)


def validate_revocation(revocation: Optional[RevocationConfiguration], operation: str = "validate") -> None:
    crl = revocation.crl_configuration if revocation else None
    if crl is not None:
        if crl.expiration_in_days is None or not 1 <= crl.expiration_in_days <= 5000:
            raise ValidationError("crl expiration_in_days is required and must be between 1 and 5000",
                                  operation=operation)


class CertificateAuthorityManager:
    """
    Create / read / update / delete for a single ACM PCA authority.

    The manager holds only the client handle and immutable settings, so one
    instance can serve many unrelated authorities. Writes to the same
    authority are expected to come from one caller at a time.
    """
    def __init__(self, client: PcaClient, settings: Settings = DEFAULT_SETTINGS,
                 tags: TagRegistry = None, poller: ActivationPoller = None,
                 signer: RootSelfSigner = None, sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.settings = settings
        self.sleep = sleep
        self.tags = tags or TagRegistry(client)
        self.poller = poller or ActivationPoller(settings.poll_interval, sleep=sleep)
        self.signer = signer or RootSelfSigner(client, settings)

    # ---- create ----
    def create(self, config: AuthorityConfig,
               on_created: Optional[Callable[[str], None]] = None) -> AuthoritySnapshot:
        """
        Create the authority and block until it is usable.

        on_created(arn) is called as soon as the provider assigns an ARN, so the
        caller can record it before a later wait or self-signing step fails.
        Errors raised after that point carry the ARN in `resource_id`.
        """
        validate_config(config)

        arn = self._create_remote(config)
        log.info("Created ACM PCA certificate authority %s", arn)
        if on_created is not None:
            on_created(arn)

        result = self.poller.poll(
            lambda: self._refresh(arn),
            pending=CREATION_PENDING,
            target=CREATION_TARGET,
            timeout=self.settings.create_timeout,
            resource_id=arn,
        )
        if result is None:
            raise NotFoundError("authority disappeared while waiting for it to become available",
                                operation="create", resource_id=arn)
        _, status = result
        if status not in CREATION_TARGET:
            raise UnexpectedStateError(
                f"authority ended in status {getattr(status, 'value', status)!r} instead of ACTIVE or PENDING_CERTIFICATE",
                status=getattr(status, "value", status), operation="create", resource_id=arn,
            )

        if config.authority_type == AuthorityType.ROOT:
            self.signer.sign(arn, config.configuration.signing_algorithm, config.validity)

        return self._read_existing(arn, "create")

    def _create_remote(self, config: AuthorityConfig) -> str:
        # one token per logical create: a retry after a lost response must
        # resolve to the authority the first attempt created
        token = idempotency_token()
        tags = ignore_reserved(config.tags)
        retrying = Retrying(
            retry=retry_if_exception_type(TransientProviderError),
            stop=stop_after_delay(self.settings.create_retry_budget),
            wait=wait_exponential(multiplier=1, min=1, max=self.settings.create_retry_max_wait),
            sleep=self.sleep,
            before_sleep=before_sleep_log(log, logging.DEBUG),
            reraise=True,
        )
        try:
            return retrying(
                self.client.create_authority,
                configuration=expand_ca_configuration(config.configuration),
                authority_type=AuthorityType(config.authority_type).value,
                token=token,
                revocation=expand_revocation_configuration(config.revocation),
                tags=to_tag_list(tags) if tags else None,
            )
        except TransientProviderError as e:
            raise ProviderError(
                f"still failing after {self.settings.create_retry_budget}s of retries: {e.message}",
                operation=e.operation,
            ) from e

    def _refresh(self, arn: str):
        data = self.client.describe_authority(arn)
        if not data:
            return None, AuthorityStatus.UNKNOWN
        return data, AuthorityStatus.parse(data.get("Status"))

    # ---- repair ----
    def complete_root(self, arn: str, validity: Validity) -> AuthoritySnapshot:
        """Finish self-signing a ROOT authority left in PENDING_CERTIFICATE by a failed create."""
        snap = self._read_existing(arn, "complete_root")
        if snap.configuration is None:
            raise WrongStateError("authority has no configuration to self-sign with",
                                  operation="complete_root", resource_id=arn)
        if snap.authority_type != AuthorityType.ROOT:
            raise ValidationError("only ROOT authorities can be self-signed", operation="complete_root", resource_id=arn)
        if snap.status == AuthorityStatus.ACTIVE:
            log.info("%s is already ACTIVE, nothing to complete", arn)
            return snap
        if snap.status != AuthorityStatus.PENDING_CERTIFICATE:
            raise WrongStateError(f"authority is {getattr(snap.status, 'value', snap.status)!r}, expected PENDING_CERTIFICATE",
                                  operation="complete_root", resource_id=arn)
        self.signer.sign(arn, snap.configuration.signing_algorithm, validity)
        return self._read_existing(arn, "complete_root")

    # ---- read ----
    def read(self, arn: str) -> Optional[AuthoritySnapshot]:
        """Current state of the authority, or None when it no longer exists."""
        try:
            data = self.client.describe_authority(arn)
        except NotFoundError:
            log.warning("ACM PCA certificate authority %s not found", arn)
            return None
        if not data:
            log.warning("ACM PCA certificate authority %s not found", arn)
            return None

        status = AuthorityStatus.parse(data.get("Status"))

        # certificate and CSR do not exist yet in some states (PENDING_CERTIFICATE, CREATING)
        try:
            certificate, chain = self.client.get_authority_certificate(arn)
        except NotFoundError:
            log.warning("ACM PCA certificate authority %s not found", arn)
            return None
        except WrongStateError:
            certificate, chain = "", ""

        try:
            csr = self.client.get_authority_csr(arn)
        except NotFoundError:
            log.warning("ACM PCA certificate authority %s not found", arn)
            return None
        except WrongStateError:
            csr = ""

        return AuthoritySnapshot(
            id=arn,
            authority_type=enum_or_raw(AuthorityType, data.get("Type", "")),
            configuration=flatten_ca_configuration(data.get("CertificateAuthorityConfiguration")),
            status=status,
            revocation=flatten_revocation_configuration(data.get("RevocationConfiguration")),
            enabled=status != AuthorityStatus.DISABLED,
            certificate=certificate,
            certificate_chain=chain,
            certificate_signing_request=csr,
            serial=data.get("Serial", "") or "",
            not_before=to_rfc3339(data.get("NotBefore")),
            not_after=to_rfc3339(data.get("NotAfter")),
            tags=self.tags.list_tags(arn),
        )

    def _read_existing(self, arn: str, operation: str) -> AuthoritySnapshot:
        snap = self.read(arn)
        if snap is None:
            raise NotFoundError("authority not found", operation=operation, resource_id=arn)
        return snap

    # ---- update ----
    def update(self, arn: str, changes: AuthorityChanges) -> AuthoritySnapshot:
        """
        Apply `changes` (see AuthorityChanges.between) and return the new state.
        Status and revocation configuration go out in one update call; tags
        are reconciled separately.
        """
        if changes.revocation_changed:
            validate_revocation(changes.revocation, operation="update")

        if changes.enabled is not None or changes.revocation_changed:
            status = None
            if changes.enabled is not None:
                status = (AuthorityStatus.ACTIVE if changes.enabled else AuthorityStatus.DISABLED).value
            revocation = None
            if changes.revocation_changed:
                revocation = expand_revocation_configuration(changes.revocation)
            log.info("Updating ACM PCA certificate authority %s (status=%s, revocation=%s)",
                     arn, status, "changed" if revocation is not None else "unchanged")
            self.client.update_authority(arn, status=status, revocation=revocation)

        if changes.tags_changed:
            self.tags.update_tags(arn, changes.old_tags, changes.new_tags)

        return self._read_existing(arn, "update")

    def apply(self, arn: str, desired: AuthorityConfig) -> AuthoritySnapshot:
        """Read, diff against `desired`, update. Immutable fields are not compared."""
        observed = self._read_existing(arn, "update")
        changes = AuthorityChanges.between(observed, desired)
        if changes.empty:
            log.info("%s is up to date", arn)
            return observed
        return self.update(arn, changes)

    # ---- delete ----
    def delete(self, arn: str, retention_days: int = DEFAULT_DELETION_RETENTION_DAYS) -> None:
        """
        Schedule deletion after `retention_days` (7-30) and return immediately.
        The authority stays readable (status DELETED) during the window.
        """
        validate_retention_days(retention_days)
        try:
            self.client.delete_authority(arn, retention_days=retention_days)
        except NotFoundError:
            log.warning("ACM PCA certificate authority %s already deleted", arn)
            return
        log.info("Scheduled deletion of %s in %d days", arn, retention_days)
