#!/usr/bin/env python3
"""Command line interface for provisioning and removing development certificates."""

import argparse
import sys
from pathlib import Path

from devcert.lib.config import DevcertConfig
from devcert.lib.errors import DevcertError
from devcert.lib.logging_config import LOGGER
from devcert.lib.models import ProvisionOptions
from devcert.lib.provisioner import CertificateProvisioner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devcert", description="Locally trusted development certificates")
    parser.add_argument(
        "--config-root",
        type=Path,
        default=None,
        help="devcert data directory (default: platform config directory or $DEVCERT_CONFIG_ROOT)",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask before privileged trust store and hosts file changes",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    certificate = subparsers.add_parser("certificate", help="Create or reuse a certificate for domains")
    certificate.add_argument("domains", nargs="+", help="Domain names to include in the certificate")
    certificate.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory receiving key.pem, cert.pem and ca.pem (default: current directory)",
    )
    certificate.add_argument("--skip-hosts-file", action="store_true", help="Leave the hosts file untouched")
    certificate.add_argument(
        "--skip-certutil-install",
        action="store_true",
        help="Do not install NSS certutil to update Firefox/Chrome trust stores",
    )

    remove = subparsers.add_parser("remove", help="Revoke and delete the certificate for domains")
    remove.add_argument("domains", nargs="+")

    subparsers.add_parser("uninstall", help="Untrust and delete the root CA and all certificates")
    subparsers.add_parser("list", help="List cached domain certificates")

    expiry = subparsers.add_parser("expiry", help="Days before the root CA (or a domain certificate) expires")
    expiry.add_argument("domain", nargs="?")

    subparsers.add_parser("location", help="Print the devcert data directory")
    return parser


def _write_certificate(provisioner: CertificateProvisioner, args: argparse.Namespace) -> None:
    options = ProvisionOptions(
        get_ca_buffer=True,
        skip_hosts_file=args.skip_hosts_file,
        skip_certutil_install=args.skip_certutil_install,
    )
    result = provisioner.certificate_for(args.domains, options)

    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    key_path = output_dir / "key.pem"
    key_path.write_bytes(result.key)
    key_path.chmod(0o600)
    (output_dir / "cert.pem").write_bytes(result.cert)
    if result.ca is not None:
        (output_dir / "ca.pem").write_bytes(result.ca)

    # hosts updates run in daemon threads that would die with the interpreter
    for task in provisioner.host_tasks:
        task.join()

    LOGGER.info("Certificate for %s written to %s", ", ".join(args.domains), output_dir)
    print(f"key:  {key_path}")
    print(f"cert: {output_dir / 'cert.pem'}")


def main(argv: list[str] | None = None) -> int:
    """Run the devcert command line.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = build_parser().parse_args(argv)

    config = DevcertConfig(skip_confirmation=args.yes)
    if args.config_root is not None:
        config.config_root = args.config_root
    provisioner = CertificateProvisioner(config)

    try:
        if args.command == "certificate":
            _write_certificate(provisioner, args)
        elif args.command == "remove":
            provisioner.remove_domain(args.domains)
            print(f"Removed certificate for {', '.join(args.domains)}")
        elif args.command == "uninstall":
            provisioner.remove_all()
            print("Root CA and all domain certificates removed")
        elif args.command == "list":
            for domain in provisioner.configured_domains():
                print(domain)
        elif args.command == "expiry":
            if args.domain:
                print(provisioner.certificate_expiry_in_days(args.domain))
            else:
                print(provisioner.ca_expiry_in_days())
        elif args.command == "location":
            print(provisioner.location())
        return 0

    except DevcertError as e:
        LOGGER.error("devcert %s failed: %s", args.command, e)
        return 1
    except OSError as e:
        LOGGER.error("devcert %s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
