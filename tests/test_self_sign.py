import pytest
from botocore.exceptions import WaiterError

from conftest import client_error
from pcactl.errors import ProviderError, ValidationError, WaitTimeoutError, WrongStateError
from pcactl.ir import ROOT_CA_TEMPLATE_ARN, SigningAlgorithm, Validity, ValidityUnit
from pcactl.self_sign import RootSelfSigner

TEN_YEARS = Validity(length=10, unit=ValidityUnit.YEARS)


@pytest.fixture
def signer(client, settings):
    return RootSelfSigner(client, settings)


def test_sign_imports_issued_certificate(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")

    cert_arn = signer.sign(arn, SigningAlgorithm.SHA256WITHRSA, TEN_YEARS)

    issue = fake.calls_to("issue_certificate")[0]
    assert issue["Csr"] == fake.authorities[arn]["csr"].encode("utf-8")
    assert issue["TemplateArn"] == ROOT_CA_TEMPLATE_ARN
    assert issue["Validity"] == {"Type": "YEARS", "Value": 10}
    assert issue["IdempotencyToken"]
    wait = fake.calls_to("wait_certificate_issued")[0]
    assert wait["CertificateArn"] == cert_arn
    assert wait["WaiterConfig"] == {"Delay": 0, "MaxAttempts": 3}
    imported = fake.calls_to("import_certificate_authority_certificate")[0]
    assert imported["Certificate"] == fake.certificates[cert_arn]["Certificate"].encode("utf-8")
    assert "CertificateChain" not in imported
    assert fake.authorities[arn]["Status"] == "ACTIVE"


def test_sign_uses_fresh_token_per_attempt(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)
    fake.authorities[arn]["Status"] = "PENDING_CERTIFICATE"
    signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)

    tokens = [c["IdempotencyToken"] for c in fake.calls_to("issue_certificate")]
    assert len(set(tokens)) == 2


def test_sign_requires_validity(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    with pytest.raises(ValidationError):
        signer.sign(arn, "SHA256WITHRSA", Validity(length=10))
    assert fake.calls == []


def test_csr_not_ready_fails_at_first_step(fake, signer):
    arn = fake.add_authority(status="CREATING", authority_type="ROOT")

    with pytest.raises(WrongStateError) as exc:
        signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)

    assert exc.value.step == "get CSR"
    assert exc.value.resource_id == arn
    assert "get CSR" in str(exc.value)
    assert fake.calls_to("issue_certificate") == []


def test_issue_failure_names_step(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    fake.errors["issue_certificate"] = [client_error("LimitExceededException", "too many", "IssueCertificate")]

    with pytest.raises(ProviderError) as exc:
        signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)

    assert exc.value.step == "issue certificate"
    assert fake.calls_to("import_certificate_authority_certificate") == []


def test_waiter_timeout(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    fake.waiter_errors = [WaiterError(name="CertificateIssued", reason="Max attempts exceeded", last_response={})]

    with pytest.raises(WaitTimeoutError) as exc:
        signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)

    assert exc.value.step == "wait for issuance"
    assert exc.value.resource_id == arn
    assert [exc.value.certificate_arn] == list(fake.certificates)
    assert fake.authorities[arn]["Status"] == "PENDING_CERTIFICATE"


def test_get_certificate_failure_reports_authority(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    fake.errors["get_certificate"] = [client_error("AccessDeniedException", "denied", "GetCertificate")]

    with pytest.raises(ProviderError) as exc:
        signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)

    assert exc.value.step == "get certificate"
    assert exc.value.resource_id == arn
    assert [exc.value.certificate_arn] == list(fake.certificates)
    assert fake.calls_to("import_certificate_authority_certificate") == []


def test_unknown_signing_algorithm_is_rejected(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    with pytest.raises(ValidationError) as exc:
        signer.sign(arn, "SM3WITHSM2", TEN_YEARS)
    assert exc.value.resource_id == arn
    assert fake.calls == []


def test_import_failure_leaves_authority_pending(fake, signer):
    arn = fake.add_authority(status="PENDING_CERTIFICATE", authority_type="ROOT")
    fake.errors["import_certificate_authority_certificate"] = [
        client_error("CertificateMismatchException", "mismatch", "ImportCertificateAuthorityCertificate")]

    with pytest.raises(ProviderError) as exc:
        signer.sign(arn, "SHA256WITHRSA", TEN_YEARS)

    assert exc.value.step == "import certificate"
    assert exc.value.resource_id == arn
    assert fake.authorities[arn]["Status"] == "PENDING_CERTIFICATE"
