"""upgrade-gate CLI: precheck-gated cluster upgrades."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from typing import List, Optional

from upgrade_gate.codes import Component
from upgrade_gate.errors import UpgradeGateError


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all upgrade-gate commands."""
    # Get version for --version argument (handle PackageNotFoundError)
    try:
        gate_version = get_version("upgrade-gate")
    except PackageNotFoundError:
        gate_version = "dev"

    parser = argparse.ArgumentParser(
        prog="upgrade-gate",
        description="upgrade-gate: parameter precheck and confirmation for TiDB cluster upgrades"
    )
    parser.add_argument("--version", action="version", version=f"upgrade-gate {gate_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # upgrade command
    upgrade_parser = subparsers.add_parser(
        "upgrade",
        help="Upgrade a specified TiDB cluster (upgrade [precheck] <cluster-name> <version>)",
        parents=[parent_parser]
    )
    upgrade_parser.add_argument(
        "args",
        nargs="+",
        metavar="[precheck] <cluster-name> <version>",
        help="Cluster name and target version; prefix with 'precheck' to only run the precheck"
    )
    upgrade_parser.add_argument(
        "--precheck",
        dest="precheck_only",
        action="store_true",
        help="Run parameter precheck and exit without upgrading"
    )
    upgrade_parser.add_argument(
        "--without-precheck",
        dest="without_precheck",
        action="store_true",
        help="Skip parameter precheck (dangerous); takes precedence over --precheck"
    )
    upgrade_parser.add_argument(
        "--precheck-output",
        default="text",
        help="Format for the precheck report (text, markdown, html)"
    )
    upgrade_parser.add_argument(
        "--precheck-output-file",
        default=None,
        help="Write the precheck report to a file instead of stdout"
    )
    upgrade_parser.add_argument(
        "--on-precheck-error",
        choices=["continue", "abort"],
        default="continue",
        help="What to do when the precheck cannot run outside --precheck mode"
    )
    upgrade_parser.add_argument(
        "-y", "--yes",
        dest="skip_confirm",
        action="store_true",
        help="Skip the confirmation prompt"
    )
    upgrade_parser.add_argument(
        "--force",
        action="store_true",
        help="Force upgrade without transferring PD leader"
    )
    upgrade_parser.add_argument(
        "--transfer-timeout",
        type=int,
        default=600,
        help="Timeout in seconds when transferring PD and TiKV store leaders"
    )
    upgrade_parser.add_argument(
        "--ignore-config-check",
        action="store_true",
        help="Ignore the config check result"
    )
    upgrade_parser.add_argument(
        "--offline",
        action="store_true",
        help="Upgrade a stopped cluster"
    )
    upgrade_parser.add_argument(
        "--ignore-version-check",
        action="store_true",
        help="Ignore checking if target version is bigger than current version"
    )
    upgrade_parser.add_argument(
        "--restart-timeout",
        default="0s",
        help="Timeout for after upgrade prompt (e.g. 30s, 5m, 1h30m)"
    )
    upgrade_parser.add_argument(
        "--home",
        default=None,
        help="TiUP cluster storage directory (defaults to $TIUP_HOME/storage/cluster)"
    )
    upgrade_parser.add_argument(
        "--tiup",
        dest="tiup_binary",
        default="tiup",
        help="tiup executable used to perform the upgrade"
    )
    for component in Component:
        upgrade_parser.add_argument(
            component.flag,
            dest=f"{component.name.lower()}_version",
            default="",
            help=f"Fix the version of {component.value} and no longer follows the cluster version."
        )
    return parser


def _configure_logging(quiet: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        format="%(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _component_versions(args: argparse.Namespace) -> dict:
    from .kernel.version import format_version

    versions = {}
    for component in Component:
        pinned = getattr(args, f"{component.name.lower()}_version") or ""
        # Empty means "follow the cluster version".
        versions[component.value] = format_version(pinned) if pinned.strip() else ""
    return versions


def main(argv: Optional[List[str]] = None, upgrade_action=None, metadata_lookup=None, console=None):
    """Main CLI entry point for upgrade-gate commands.

    ``upgrade_action``, ``metadata_lookup`` and ``console`` replace the TiUP
    upgrader, the on-disk metadata store and stdin/stdout when given.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "upgrade":
        _configure_logging(args.quiet)
        try:
            from .kernel.duration import parse_duration
            from .kernel.version import format_version
            from .metadata import ClusterMetadataStore
            from .orchestrator import UpgradeOrchestrator, UpgradeRequest
            from .render import parse_output_format
            from .upgrader import TiUPClusterUpgrader

            output_format = parse_output_format(args.precheck_output)

            positional = list(args.args)
            standalone = len(positional) > 0 and positional[0] == "precheck"
            if standalone:
                positional = positional[1:]
            if len(positional) != 2:
                print("Error: usage: upgrade-gate upgrade [precheck] <cluster-name> <version>", file=sys.stderr)
                sys.exit(1)
            cluster_name, target_raw = positional
            target_version = format_version(target_raw)

            if upgrade_action is None:
                upgrade_action = TiUPClusterUpgrader(
                    binary=args.tiup_binary,
                    force=args.force,
                    ignore_config_check=args.ignore_config_check,
                    transfer_timeout=args.transfer_timeout,
                )
            if metadata_lookup is None:
                metadata_lookup = ClusterMetadataStore(args.home)

            orchestrator = UpgradeOrchestrator(
                upgrade_action=upgrade_action,
                metadata_lookup=metadata_lookup,
                console=console,
                failure_policy=args.on_precheck_error,
            )

            if standalone:
                orchestrator.precheck(
                    cluster_name,
                    target_version,
                    output_format=output_format,
                    output_path=args.precheck_output_file,
                )
                sys.exit(0)

            request = UpgradeRequest(
                cluster_name=cluster_name,
                target_version=target_version,
                component_versions=_component_versions(args),
                precheck_only=args.precheck_only,
                skip_precheck=args.without_precheck,
                skip_confirm=args.skip_confirm,
                offline=args.offline,
                ignore_version_check=args.ignore_version_check,
                restart_timeout=parse_duration(args.restart_timeout),
                output_format=output_format,
                output_path=args.precheck_output_file,
            )
            orchestrator.upgrade(request)
            sys.exit(0)
        except (UpgradeGateError, ValueError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            print("Error: interrupted", file=sys.stderr)
            sys.exit(1)
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            import traceback
            traceback.print_exc()
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
