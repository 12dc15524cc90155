#!/usr/bin/env python3
from __future__ import annotations

import argparse
import csv
import getpass
import json
import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from dateutil.relativedelta import relativedelta
from typing import Any, Dict, List, Optional

from glops import GreenLake, GreenLakeAuthConfig, GreenLakeConfig
from glops.errors import GreenLakeError
from glops.logs import configure_logging
from glops.pipeline.payloads import ClientCredential

from importlib.metadata import version, PackageNotFoundError

SN_CLIENT_SECRET_ENV = "GREENLAKE_SN_CLIENT_SECRET"
SN_REFRESH_TOKEN_ENV = "GREENLAKE_SN_REFRESH_TOKEN"

# ------------- helpers -------------


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    v = value.strip()
    # Allow 'Z' suffix
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(v)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid datetime format: {value}. Use ISO 8601, e.g. 2025-01-01T12:00:00+00:00"
        )


def parse_header(value: str) -> tuple:
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"Invalid header '{value}'. Use NAME=VALUE")
    return key.strip(), val.strip()


def _as_rows(result: Any) -> List[Dict[str, Any]]:
    if result is None:
        return []
    if not isinstance(result, (list, tuple)):
        result = [result]
    rows = []
    for item in result:
        to_dict = getattr(item, "to_dict", None)
        rows.append(to_dict() if callable(to_dict) else item)
    return rows


def print_result(result, output: str = "json") -> None:
    """
    Print statuses or resource handles in the desired format.

    output: "json" (default) or "csv"
    """
    rows = _as_rows(result)

    if output == "csv" and rows:
        # Collect all fieldnames across rows
        fieldnames = set()
        for row in rows:
            if isinstance(row, dict):
                fieldnames.update(row.keys())

        writer = csv.DictWriter(sys.stdout, fieldnames=sorted(fieldnames))
        writer.writeheader()
        for row in rows:
            if isinstance(row, dict):
                writer.writerow(
                    {k: json.dumps(v) if isinstance(v, (dict, list)) else v for k, v in row.items()}
                )
        return

    print(json.dumps(rows, indent=2, default=str))


def prompt_confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/N]: ")
    return answer.strip().lower() in ("y", "yes")


def build_client(args: argparse.Namespace) -> GreenLake:
    auth = GreenLakeAuthConfig(token=args.token or None)

    config = GreenLakeConfig(
        dry_run=args.dry_run,
        force=args.force,
        poll_interval=args.poll_interval,
        poll_max_attempts=args.poll_max_attempts,
        confirm=None if args.yes else prompt_confirm,
    )
    return GreenLake(auth=auth, config=config)


def read_secret(value: Optional[str], env_var: str, prompt: str) -> str:
    if value:
        return value
    env_val = os.getenv(env_var)
    if env_val:
        return env_val
    return getpass.getpass(f"{prompt}: ")


def require_region(args: argparse.Namespace) -> str:
    if not args.region:
        raise SystemExit("You must provide --region for this command")
    return args.region


# ------------- COM command handlers -------------


def handle_com_webhook_list(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.webhooks.list(require_region(args), name=args.name)
    print_result(res, output=args.output)


def handle_com_webhook_create(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.webhooks.create(
        args.name,
        require_region(args),
        destination=args.destination,
        event_filter=args.event_filter,
        headers=dict(args.header) if args.header else None,
    )
    print_result(res, output=args.output)


def handle_com_webhook_update(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.webhooks.update(
        args.name,
        require_region(args),
        new_name=args.new_name,
        destination=args.destination,
        event_filter=args.event_filter,
        state=args.state,
        headers=dict(args.header) if args.header else None,
    )
    print_result(res, output=args.output)


def handle_com_webhook_remove(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.webhooks.remove(args.names, require_region(args))
    print_result(res, output=args.output)


def handle_com_webhook_test(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.webhooks.test(args.name, require_region(args))
    print_result(res, output=args.output)


def handle_com_external_service_list(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.external_services.list(require_region(args), name=args.name)
    print_result(res, output=args.output)


def handle_com_external_service_create(args: argparse.Namespace) -> None:
    gl = build_client(args)
    credential = ClientCredential(
        client_id=args.client_id,
        client_secret=read_secret(args.client_secret, SN_CLIENT_SECRET_ENV, "ServiceNow client secret"),
    )
    res = gl.com.external_services.create(
        args.name,
        require_region(args),
        credential=credential,
        refresh_token=read_secret(args.refresh_token, SN_REFRESH_TOKEN_ENV, "ServiceNow refresh token"),
        oauth_url=args.oauth_url,
        incident_url=args.incident_url,
        description=args.description,
        refresh_token_expiry_days=args.refresh_token_expiry_days,
    )
    print_result(res, output=args.output)


def handle_com_external_service_update(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.external_services.update(
        args.name,
        require_region(args),
        new_name=args.new_name,
        description=args.description,
        incident_url=args.incident_url,
        refresh_token_expiry_days=args.refresh_token_expiry_days,
    )
    print_result(res, output=args.output)


def handle_com_external_service_remove(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.external_services.remove(args.names, require_region(args))
    print_result(res, output=args.output)


def handle_com_external_service_test(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.com.external_services.test(args.name, require_region(args))
    print_result(res, output=args.output)


def handle_com_activity_list(args: argparse.Namespace) -> None:
    gl = build_client(args)

    if args.today:
        since = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    elif args.week_ago or args.month_ago:
        since, _ = compute_relative_range(
            weeks_ago=args.week_ago,
            months_ago=args.month_ago,
        )
    else:
        since = args.start_time

    res = gl.com.activities.list(
        require_region(args),
        since=since,
        category=args.category,
        source_name=args.source_name,
        limit=args.limit,
    )
    print_result(res, output=args.output)


# ------------- GLP command handlers -------------


def handle_glp_service_list(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.services.list_provisions(args.region)
    print_result(res, output=args.output)


def handle_glp_service_provision(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.services.provision(args.service, require_region(args))
    print_result(res, output=args.output)


def handle_glp_service_deprovision(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.services.deprovision(args.service, require_region(args), force=args.force)
    print_result(res, output=args.output)


def handle_glp_device_list(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.devices.list(args.serial_numbers or None)
    print_result(res, output=args.output)


def handle_glp_device_assign(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.devices.assign(args.serial_numbers, args.service, require_region(args))
    print_result(res, output=args.output)


def handle_glp_device_unassign(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.devices.unassign(args.serial_numbers)
    print_result(res, output=args.output)


def handle_glp_api_credential_list(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.api_credentials.list()
    print_result(res, output=args.output)


def handle_glp_api_credential_create(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.api_credentials.create(args.name, args.service, require_region(args))
    print_result(res, output=args.output)
    cred = gl.context.find_credential(args.name)
    if cred is not None and args.show_secret:
        # Only shown once; GreenLake never returns the secret again
        print(json.dumps({"client_id": cred.client_id, "client_secret": cred.client_secret}, indent=2))


def handle_glp_api_credential_remove(args: argparse.Namespace) -> None:
    gl = build_client(args)
    res = gl.platform.api_credentials.remove(args.names, force=args.force)
    print_result(res, output=args.output)


# ------------- argparse wiring -------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glops-cli",
        description="HPE GreenLake and Compute Ops Management operations CLI",
    )

    # Global options
    parser.add_argument(
        "--region",
        dest="region",
        help="Region (e.g. eu-central, us-west)",
        default=None,
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Bearer token (otherwise uses the GREENLAKE_TOKEN env var)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the requests that would be sent instead of sending them",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation for destructive operations",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Answer yes to every confirmation prompt",
    )
    parser.add_argument("--poll-interval", type=float, default=2.0, help="Seconds between status polls")
    parser.add_argument("--poll-max-attempts", type=int, default=10, help="Status polls before giving up")
    parser.add_argument(
        "--output",
        choices=["json", "csv"],
        default="json",
        help="Output format (json or csv, default json)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests to stderr")

    # --version flag
    try:
        glops_version = version("glops")
    except PackageNotFoundError:
        glops_version = "development"

    parser.add_argument(
        "--version",
        action="version",
        version=f"glops {glops_version}",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- COM webhooks ---

    p = subparsers.add_parser("com-webhook-list", help="List Compute Ops Management webhooks")
    p.add_argument("--name", default=None, help="Only the webhook with this name")
    p.set_defaults(func=handle_com_webhook_list)

    p = subparsers.add_parser("com-webhook-create", help="Create a webhook")
    p.add_argument("--name", required=True, help="Webhook name")
    p.add_argument("--destination", required=True, help="https URL receiving the events")
    p.add_argument("--event-filter", required=True, help="OData event filter, e.g. type eq 'compute-ops/server'")
    p.add_argument("--header", action="append", type=parse_header, help="Extra header NAME=VALUE (repeatable)")
    p.set_defaults(func=handle_com_webhook_create)

    p = subparsers.add_parser("com-webhook-update", help="Update a webhook (unset fields keep their value)")
    p.add_argument("--name", required=True, help="Current webhook name")
    p.add_argument("--new-name", default=None)
    p.add_argument("--destination", default=None)
    p.add_argument("--event-filter", default=None)
    p.add_argument("--state", choices=["ENABLED", "DISABLED"], default=None)
    p.add_argument("--header", action="append", type=parse_header, help="Header NAME=VALUE (repeatable)")
    p.set_defaults(func=handle_com_webhook_update)

    p = subparsers.add_parser("com-webhook-remove", help="Delete one or more webhooks")
    p.add_argument("names", nargs="+", help="Webhook names")
    p.set_defaults(func=handle_com_webhook_remove)

    p = subparsers.add_parser("com-webhook-test", help="Send a test event to a webhook")
    p.add_argument("--name", required=True, help="Webhook name")
    p.set_defaults(func=handle_com_webhook_test)

    # --- COM external services ---

    p = subparsers.add_parser("com-external-service-list", help="List external-service integrations")
    p.add_argument("--name", default=None)
    p.set_defaults(func=handle_com_external_service_list)

    p = subparsers.add_parser("com-external-service-create", help="Create a ServiceNow integration")
    p.add_argument("--name", required=True)
    p.add_argument("--client-id", required=True, help="ServiceNow OAuth client id")
    p.add_argument(
        "--client-secret",
        default=None,
        help=f"ServiceNow OAuth client secret (otherwise {SN_CLIENT_SECRET_ENV} or a prompt)",
    )
    p.add_argument(
        "--refresh-token",
        default=None,
        help=f"ServiceNow refresh token (otherwise {SN_REFRESH_TOKEN_ENV} or a prompt)",
    )
    p.add_argument("--oauth-url", required=True)
    p.add_argument("--incident-url", required=True)
    p.add_argument("--description", default=None)
    p.add_argument("--refresh-token-expiry-days", type=int, default=100)
    p.set_defaults(func=handle_com_external_service_create)

    p = subparsers.add_parser("com-external-service-update", help="Update a ServiceNow integration")
    p.add_argument("--name", required=True)
    p.add_argument("--new-name", default=None)
    p.add_argument("--description", default=None)
    p.add_argument("--incident-url", default=None)
    p.add_argument("--refresh-token-expiry-days", type=int, default=None)
    p.set_defaults(func=handle_com_external_service_update)

    p = subparsers.add_parser("com-external-service-remove", help="Delete external-service integrations")
    p.add_argument("names", nargs="+")
    p.set_defaults(func=handle_com_external_service_remove)

    p = subparsers.add_parser("com-external-service-test", help="Test an external-service integration")
    p.add_argument("--name", required=True)
    p.set_defaults(func=handle_com_external_service_test)

    # --- COM activities ---

    p = subparsers.add_parser("com-activity-list", help="List Compute Ops Management activities")
    p.add_argument("--category", default=None, help="Source type, e.g. server")
    p.add_argument("--source-name", default=None, help="Display name of the resource")
    p.add_argument("--start-time", type=parse_iso_datetime, default=None, help="Start time (ISO 8601)")
    p.add_argument("--limit", type=int, default=None)
    p.add_argument("--today", action="store_true", help="Only today's activities (UTC)")
    p.add_argument("--week-ago", type=int, help="Return activities from N weeks ago until now")
    p.add_argument("--month-ago", type=int, help="Return activities from N months ago until now")
    p.set_defaults(func=handle_com_activity_list)

    # --- GLP services ---

    p = subparsers.add_parser("glp-service-list", help="List service provisions")
    p.set_defaults(func=handle_glp_service_list)

    p = subparsers.add_parser("glp-service-provision", help="Provision a service in a region")
    p.add_argument("--service", required=True, help="Service manager name")
    p.set_defaults(func=handle_glp_service_provision)

    p = subparsers.add_parser("glp-service-deprovision", help="Deprovision a service from a region")
    p.add_argument("--service", required=True, help="Service manager name")
    p.set_defaults(func=handle_glp_service_deprovision)

    # --- GLP devices ---

    p = subparsers.add_parser("glp-device-list", help="List devices")
    p.add_argument("serial_numbers", nargs="*", help="Optional serial numbers")
    p.set_defaults(func=handle_glp_device_list)

    p = subparsers.add_parser("glp-device-assign", help="Assign devices to a provisioned service")
    p.add_argument("serial_numbers", nargs="+", help="One or more serial numbers")
    p.add_argument("--service", required=True, help="Service manager name")
    p.set_defaults(func=handle_glp_device_assign)

    p = subparsers.add_parser("glp-device-unassign", help="Remove devices from their service")
    p.add_argument("serial_numbers", nargs="+", help="One or more serial numbers")
    p.set_defaults(func=handle_glp_device_unassign)

    # --- GLP API credentials ---

    p = subparsers.add_parser("glp-api-credential-list", help="List API credentials")
    p.set_defaults(func=handle_glp_api_credential_list)

    p = subparsers.add_parser("glp-api-credential-create", help="Create an API credential")
    p.add_argument("--name", required=True)
    p.add_argument("--service", required=True, help="Service manager name")
    p.add_argument("--show-secret", action="store_true", help="Print the new client id and secret")
    p.set_defaults(func=handle_glp_api_credential_create)

    p = subparsers.add_parser("glp-api-credential-remove", help="Delete API credentials")
    p.add_argument("names", nargs="+")
    p.set_defaults(func=handle_glp_api_credential_remove)

    return parser


def compute_relative_range(weeks_ago: int = None, months_ago: int = None):
    """
    Returns (start, end) datetimes in UTC based on relative offsets.
    - weeks_ago N → from N weeks ago until now
    - months_ago N → from N months ago until now
    """
    now = datetime.now(timezone.utc)

    if weeks_ago is not None:
        start = now - timedelta(weeks=weeks_ago)
        return start, now

    if months_ago is not None:
        start = now - relativedelta(months=months_ago)
        return start, now

    return None, None


def main():
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        raise SystemExit(1)
    try:
        func(args)
    except (GreenLakeError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1)

if __name__ == "__main__":
    main()
