# cli.py
# Argument parser and entrypoints wired to ops modules.

import argparse
import logging
import sys
from dataclasses import asdict, replace

from .aws_pca import PcaClient
from .ca_ops import CertificateAuthorityManager
from .cert_ops import CertificateAttachment, PrivateCertificate, REVOCATION_REASONS
from .errors import PcaError
from .ir import END_ENTITY_TEMPLATE_ARN, SigningAlgorithm, Validity, ValidityUnit
from .render import output
from .serde.io import dump_snapshot, read_authority, read_text
from .settings import DEFAULT_SETTINGS

log = logging.getLogger(__name__)


def build_parser():
    p = argparse.ArgumentParser(
        prog="pcactl",
        description="Lifecycle management for AWS Private CA certificate authorities"
    )
    p.add_argument("--region", default=None, help="AWS region, e.g. eu-central-1 (default: from environment)")
    p.add_argument("--profile", default=None, help="AWS named profile")
    p.add_argument("--endpoint-url", default=None, help="Override the acm-pca endpoint")
    p.add_argument("--output", choices=["json","table","yaml"], default="json", help="Output format")
    p.add_argument("--create-timeout", type=float, default=DEFAULT_SETTINGS.create_timeout,
                   help="Seconds to wait for a new CA to leave CREATING (default: 60)")
    p.add_argument("--poll-interval", type=float, default=DEFAULT_SETTINGS.poll_interval,
                   help="Seconds between status checks (default: 5)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ---- CA commands ----
    ca = sub.add_parser("ca", help="Certificate authority operations")
    ca_sub = ca.add_subparsers(dest="ca_cmd", required=True)

    p_create = ca_sub.add_parser("create", help="Create a CA from a v1 document (JSON or YAML)")
    p_create.add_argument("--file", required=True, help="Document path or '-' (stdin)")
    p_create.set_defaults(func=cmd_ca_create)

    p_show = ca_sub.add_parser("show", help="Show current state of a CA")
    p_show.add_argument("--arn", required=True)
    p_show.set_defaults(func=cmd_ca_show)

    p_update = ca_sub.add_parser("update", help="Apply enabled / revocation / tags from a v1 document")
    p_update.add_argument("--arn", required=True)
    p_update.add_argument("--file", required=True, help="Document path or '-' (stdin)")
    p_update.set_defaults(func=cmd_ca_update)

    p_delete = ca_sub.add_parser("delete", help="Schedule deletion of a CA")
    p_delete.add_argument("--arn", required=True)
    p_delete.add_argument("--retention-days", type=int, default=30, help="Days before permanent deletion (7-30)")
    p_delete.set_defaults(func=cmd_ca_delete)

    p_complete = ca_sub.add_parser("complete-root", help="Finish self-signing a ROOT CA left in PENDING_CERTIFICATE")
    p_complete.add_argument("--arn", required=True)
    p_complete.add_argument("--validity-length", type=int, required=True)
    p_complete.add_argument("--validity-unit", choices=[u.value for u in ValidityUnit], required=True)
    p_complete.set_defaults(func=cmd_ca_complete_root)

    p_attach = ca_sub.add_parser("attach-certificate", help="Import a signed CA certificate (one-way)")
    p_attach.add_argument("--arn", required=True)
    p_attach.add_argument("--certificate", required=True, help="PEM certificate path")
    p_attach.add_argument("--chain", default=None, help="PEM chain path")
    p_attach.set_defaults(func=cmd_ca_attach)

    p_detach = ca_sub.add_parser("detach-certificate", help="No-op: CA certificates can only be overwritten")
    p_detach.add_argument("--arn", required=True)
    p_detach.set_defaults(func=cmd_ca_detach)

    # ---- Certificate commands ----
    cert = sub.add_parser("cert", help="End-entity certificate operations")
    cert_sub = cert.add_subparsers(dest="cert_cmd", required=True)

    c_issue = cert_sub.add_parser("issue", help="Issue a certificate from a CSR")
    c_issue.add_argument("--ca-arn", required=True)
    c_issue.add_argument("--csr", required=True, help="PEM CSR path or '-'")
    c_issue.add_argument("--signing-algorithm", choices=[a.value for a in SigningAlgorithm], required=True)
    c_issue.add_argument("--validity-length", type=int, required=True)
    c_issue.add_argument("--validity-unit", choices=[u.value for u in ValidityUnit], required=True)
    c_issue.add_argument("--template-arn", default=END_ENTITY_TEMPLATE_ARN)
    c_issue.set_defaults(func=cmd_cert_issue)

    c_show = cert_sub.add_parser("show", help="Show an issued certificate")
    c_show.add_argument("--arn", required=True)
    c_show.add_argument("--ca-arn", required=True)
    c_show.set_defaults(func=cmd_cert_show)

    c_revoke = cert_sub.add_parser("revoke", help="Revoke an issued certificate")
    c_revoke.add_argument("--arn", required=True)
    c_revoke.add_argument("--ca-arn", required=True)
    c_revoke.add_argument("--serial", required=True, help="Certificate serial, hex with colons")
    c_revoke.add_argument("--reason", choices=REVOCATION_REASONS, default="UNSPECIFIED")
    c_revoke.set_defaults(func=cmd_cert_revoke)

    return p


def _pca(args):
    return PcaClient(region=args.region, profile=args.profile, endpoint_url=args.endpoint_url)


def _settings(args):
    return replace(DEFAULT_SETTINGS, create_timeout=args.create_timeout, poll_interval=args.poll_interval)


def _manager(args):
    return CertificateAuthorityManager(_pca(args), settings=_settings(args))


def _plain(obj):
    doc = asdict(obj)
    for k, v in list(doc.items()):
        if hasattr(v, "value"):
            doc[k] = v.value
        elif isinstance(v, dict):
            doc[k] = {sk: getattr(sv, "value", sv) for sk, sv in v.items()}
    return doc


# CA dispatchers
def cmd_ca_create(args):
    config = read_authority(args.file)
    snap = _manager(args).create(config, on_created=lambda arn: print(f"created {arn}", file=sys.stderr))
    output(dump_snapshot(snap), args.output)


def cmd_ca_show(args):
    snap = _manager(args).read(args.arn)
    if snap is None:
        raise SystemExit(f"CA '{args.arn}' not found.")
    output(dump_snapshot(snap), args.output)


def cmd_ca_update(args):
    snap = _manager(args).apply(args.arn, read_authority(args.file))
    output(dump_snapshot(snap), args.output)


def cmd_ca_delete(args):
    _manager(args).delete(args.arn, retention_days=args.retention_days)
    output({"result": "scheduled", "arn": args.arn, "retention_days": args.retention_days}, args.output)


def cmd_ca_complete_root(args):
    validity = Validity(length=args.validity_length, unit=ValidityUnit(args.validity_unit))
    snap = _manager(args).complete_root(args.arn, validity)
    output(dump_snapshot(snap), args.output)


def cmd_ca_attach(args):
    chain = read_text(args.chain) if args.chain else None
    snap = CertificateAttachment(_pca(args)).create(args.arn, read_text(args.certificate), chain)
    output(_plain(snap), args.output)


def cmd_ca_detach(args):
    CertificateAttachment(_pca(args)).delete(args.arn)
    output({"result": "unchanged", "arn": args.arn}, args.output)


# Cert dispatchers
def cmd_cert_issue(args):
    validity = Validity(length=args.validity_length, unit=ValidityUnit(args.validity_unit))
    issued = PrivateCertificate(_pca(args), settings=_settings(args)).issue(
        args.ca_arn, read_text(args.csr), args.signing_algorithm, validity, template_arn=args.template_arn)
    output(_plain(issued), args.output)


def cmd_cert_show(args):
    issued = PrivateCertificate(_pca(args)).read(args.arn, args.ca_arn)
    if issued is None:
        raise SystemExit(f"Certificate '{args.arn}' not found.")
    output(_plain(issued), args.output)


def cmd_cert_revoke(args):
    PrivateCertificate(_pca(args)).revoke(args.arn, args.ca_arn, args.serial, args.reason)
    output({"result": "revoked", "arn": args.arn}, args.output)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except PcaError as e:
        log.debug("command failed", exc_info=True)
        raise SystemExit(f"error: {e}") from e
