"""
CLI for composeshift - Docker Compose to Kubernetes, Swarm and Helm converter.

Commands:
    parse       Parse a compose file and display its services
    convert     Convert a compose file into every selected target
    validate    Validate Kubernetes manifests or a Docker stack file
    helm        Generate a Helm chart for a compose file
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .helm import generate_helm_chart, to_chart_name, validate_helm_chart
from .parser import find_compose_file, load_compose_file
from .pipeline import convert_project, load_conversion_options, write_files
from .types import ConversionOptions, HelmGenerationError, ValidationResult
from .validator import validate_docker_stack, validate_kubernetes_manifests


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="composeshift",
        description="Convert Docker Compose to Kubernetes, Docker Swarm and Helm",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse a compose file and display its services",
    )
    parse_parser.add_argument(
        "path",
        help="Compose file, or directory containing docker-compose.yaml",
    )
    parse_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # convert command
    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert a compose file into every selected target",
    )
    convert_parser.add_argument(
        "path",
        help="Compose file, or directory containing docker-compose.yaml",
    )
    convert_parser.add_argument(
        "-o", "--output",
        help="Output directory (default: stdout)",
    )
    convert_parser.add_argument(
        "-n", "--name",
        help="Project name (default: compose directory name)",
    )
    convert_parser.add_argument(
        "--options",
        help="YAML file with conversion options",
    )
    convert_parser.add_argument(
        "-t", "--target",
        choices=["kubernetes", "swarm", "both"],
        help="Target platform (overrides --options)",
    )
    convert_parser.add_argument(
        "--profile",
        choices=["small", "medium", "large"],
        help="Resource profile (overrides --options)",
    )
    convert_parser.add_argument(
        "--namespace",
        help="Kubernetes namespace (overrides --options)",
    )
    convert_parser.add_argument(
        "--optimize",
        action="store_true",
        help="Apply production optimizations to the Docker stack",
    )
    convert_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the conversion report as JSON",
    )

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate Kubernetes manifests or a Docker stack file",
    )
    validate_parser.add_argument(
        "kind",
        choices=["kubernetes", "stack"],
        help="What the file contains",
    )
    validate_parser.add_argument(
        "file",
        help="YAML file to validate",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # helm command
    helm_parser = subparsers.add_parser(
        "helm",
        help="Generate a Helm chart for a compose file",
    )
    helm_parser.add_argument(
        "path",
        help="Compose file, or directory containing docker-compose.yaml",
    )
    helm_parser.add_argument(
        "-n", "--name",
        help="Chart name (default: compose directory name)",
    )
    helm_parser.add_argument(
        "-o", "--output",
        help="Output directory (default: stdout)",
    )
    helm_parser.add_argument(
        "--chart-version",
        default="0.1.0",
        help="Chart version (default: 0.1.0)",
    )
    helm_parser.add_argument(
        "--app-version",
        default="1.0.0",
        help="Application version (default: 1.0.0)",
    )

    return parser


def configure_logging(verbose: bool) -> None:
    """Log to stderr, DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def project_name_for(path: str, name: Optional[str] = None) -> str:
    """Project name from --name, or the directory holding the compose file."""
    if name:
        return name
    candidate = Path(path).resolve()
    if candidate.is_file():
        candidate = candidate.parent
    return candidate.name or "app"


def build_options(args: argparse.Namespace) -> ConversionOptions:
    """Merge the --options file with command-line overrides."""
    options = load_conversion_options(args.options) if args.options else ConversionOptions()

    overrides = {
        "target_platform": args.target or options.target_platform.value,
        "proxy_type": options.proxy_type.value,
        "add_health_checks": options.add_health_checks,
        "add_resource_limits": options.add_resource_limits,
        "resource_profile": args.profile or (
            options.resource_profile.value if options.resource_profile else None
        ),
        "add_security": options.add_security,
        "namespace": args.namespace or options.namespace,
        "lets_encrypt_email": options.lets_encrypt_email,
        "custom_domains": options.custom_domains,
    }
    return ConversionOptions.from_dict(overrides)


def print_written(paths: List[Path]) -> None:
    for path in paths:
        print(f"Written: {path}", file=sys.stderr)


def print_files(files: Dict[str, str]) -> None:
    """Print files as one YAML stream, each tagged with its relative path."""
    for relative, content in files.items():
        print(f"# Source: {relative}")
        print("---")
        print(content.rstrip("\n"))


def print_validation(label: str, result: ValidationResult) -> None:
    """Print a validation report in human-readable form."""
    status = "valid" if result.valid else "invalid"
    print(f"{label}: {status} (score {result.score}/100)")
    for issue in result.errors + result.warnings + result.info:
        location = f"{issue.kind}/{issue.resource}"
        if issue.field:
            location += f" [{issue.field}]"
        print(f"  {issue.severity.value.upper():<8} {location}: {issue.message}")
    for suggestion in result.suggestions:
        print(f"  - {suggestion}")


def cmd_parse(args: argparse.Namespace) -> int:
    """Handle parse command."""
    try:
        result = load_compose_file(args.path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not result.success or result.metadata is None:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    metadata = result.metadata

    if args.json:
        data = metadata.to_dict()
        data["warnings"] = result.warnings
        print(json.dumps(data, indent=2))
        return 0

    print(f"Services: {len(metadata.services)}")
    print(f"Volumes: {len(metadata.volume_names)}")
    print(f"Networks: {len(metadata.network_names)}")
    print()

    for svc in metadata.services:
        print(f"  Service: {svc.name}")
        if svc.image:
            print(f"    Image: {svc.image}")
        if svc.ports:
            ports_str = ", ".join(
                f"{p.host_port}:{p.container_port}/{p.protocol}"
                for p in svc.ports
            )
            print(f"    Ports: {ports_str}")
        if svc.volumes:
            print(f"    Volumes: {len(svc.volumes)}")
        if svc.environment_variables:
            print(f"    Environment: {len(svc.environment_variables)} vars")
        if svc.depends_on:
            print(f"    Depends on: {', '.join(svc.depends_on)}")
        print()

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    """Handle convert command."""
    try:
        options = build_options(args)
        compose_text = find_compose_file(args.path).read_text()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    name = project_name_for(args.path, args.name)
    bundle = convert_project(
        compose_text,
        options,
        project_name=name,
        optimize_stack=args.optimize,
    )

    for error in bundle.errors:
        print(f"Error: {error}", file=sys.stderr)

    if bundle.files:
        if args.output:
            print_written(bundle.write(args.output))
        else:
            print_files(bundle.files)

    if args.json:
        # stdout carries the manifests unless they went to a directory
        stream = sys.stdout if args.output else sys.stderr
        print(json.dumps(bundle.to_dict(), indent=2), file=stream)
    else:
        for warning in bundle.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        if args.verbose:
            for label, result in bundle.validation.items():
                print(
                    f"{label}: score {result.score}/100, "
                    f"{result.summary.error_count} errors, "
                    f"{result.summary.warning_count} warnings",
                    file=sys.stderr,
                )

    return 0 if bundle.success else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Handle validate command."""
    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    content = path.read_text()
    if args.kind == "kubernetes":
        result = validate_kubernetes_manifests(content)
        label = "Kubernetes manifests"
    else:
        result = validate_docker_stack(content)
        label = "Docker stack"

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_validation(label, result)

    return 0 if result.valid else 1


def cmd_helm(args: argparse.Namespace) -> int:
    """Handle helm command."""
    try:
        result = load_compose_file(args.path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not result.success or result.data is None:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    name = project_name_for(args.path, args.name)
    try:
        chart = generate_helm_chart(
            name,
            result.data,
            version=args.chart_version,
            app_version=args.app_version,
        )
    except HelmGenerationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    validation = validate_helm_chart(chart)
    for error in validation.errors:
        print(f"Error: {error}", file=sys.stderr)
    for warning in validation.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    files = chart.files()
    if args.output:
        files = {f"{to_chart_name(name)}/{k}": v for k, v in files.items()}
        print_written(write_files(files, args.output))
    else:
        print_files(files)

    return 0 if validation.valid else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.verbose)

    commands = {
        "parse": cmd_parse,
        "convert": cmd_convert,
        "validate": cmd_validate,
        "helm": cmd_helm,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)

    return 1


if __name__ == "__main__":
    sys.exit(main())
