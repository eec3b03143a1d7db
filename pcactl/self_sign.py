import logging
from contextlib import contextmanager

from .aws_pca import PcaClient
from .errors import PcaError, ValidationError
from .ir import ROOT_CA_TEMPLATE_ARN, SigningAlgorithm, Validity
from .settings import DEFAULT_SETTINGS, Settings
from .utils import idempotency_token

log = logging.getLogger(__name__)


def signing_algorithm_value(value, operation: str, resource_id: str) -> str:
    """Known signing algorithm as its API string; unknown ones are a ValidationError."""
    try:
        return SigningAlgorithm(value).value
    except ValueError:
        raise ValidationError(f"unsupported signing algorithm {value!r}",
                              operation=operation, resource_id=resource_id) from None


@contextmanager
def _step(name: str, authority_id: str):
    try:
        yield
    except PcaError as e:
        e.step = name
        # errors from certificate calls name the certificate; report the authority
        if e.resource_id and e.resource_id != authority_id:
            e.certificate_arn = e.resource_id
        e.resource_id = authority_id
        log.error("Self-signing %s failed at step '%s': %s", authority_id, name, e.message)
        raise


class RootSelfSigner:
    """
    Turns a ROOT authority in PENDING_CERTIFICATE into an ACTIVE one:
    CSR -> issue (root template) -> wait until issued -> fetch -> import.

    Any failing step aborts the sequence. The raised error keeps its type and
    gets `step` and `resource_id` set. The authority is then left in
    PENDING_CERTIFICATE and sign() may be run again for it.
    """
    def __init__(self, client: PcaClient, settings: Settings = DEFAULT_SETTINGS):
        self.client = client
        self.settings = settings

    def sign(self, authority_id: str, signing_algorithm, validity: Validity) -> str:
        """Returns the ARN of the certificate imported as the CA certificate."""
        if validity is None or not validity.length or not validity.unit:
            raise ValidationError("validity length and unit are required to self-sign a root CA",
                                  operation="self-sign", resource_id=authority_id)
        algorithm = signing_algorithm_value(signing_algorithm, "self-sign", authority_id)

        with _step("get CSR", authority_id):
            csr = self.client.get_authority_csr(authority_id)

        with _step("issue certificate", authority_id):
            cert_arn = self.client.issue_certificate(
                authority_id, csr,
                signing_algorithm=algorithm,
                template_arn=ROOT_CA_TEMPLATE_ARN,
                validity={"Type": getattr(validity.unit, "value", validity.unit), "Value": int(validity.length)},
                token=idempotency_token(),
            )
        log.info("Issued root certificate %s for %s", cert_arn, authority_id)

        with _step("wait for issuance", authority_id):
            self.client.wait_certificate_issued(
                authority_id, cert_arn,
                delay=self.settings.issue_wait_delay,
                max_attempts=self.settings.issue_wait_max_attempts,
            )

        with _step("get certificate", authority_id):
            certificate, _chain = self.client.get_certificate(authority_id, cert_arn)

        with _step("import certificate", authority_id):
            self.client.import_authority_certificate(authority_id, certificate)
        log.info("Imported self-signed certificate into %s", authority_id)
        return cert_arn
