# tests/test_cli_parsing.py

import argparse
import json

import pytest

from glops import cli as glops_cli
from glops.models import OperationStatus


def test_cli_has_expected_subcommands():
    parser = glops_cli.build_parser()

    # Find the existing subparsers action without creating a new one
    subparsers_action = next(
        a for a in parser._actions if isinstance(a, argparse._SubParsersAction)
    )
    subparsers = subparsers_action.choices

    for cmd in [
        "com-webhook-create",
        "com-webhook-remove",
        "com-external-service-create",
        "com-external-service-test",
        "com-activity-list",
        "glp-service-provision",
        "glp-device-assign",
        "glp-api-credential-create",
    ]:
        assert cmd in subparsers


def test_cli_parses_webhook_create_args():
    parser = glops_cli.build_parser()
    args = parser.parse_args(
        [
            "--region",
            "eu-central",
            "--dry-run",
            "com-webhook-create",
            "--name",
            "WebhookA",
            "--destination",
            "https://example.com/hook",
            "--event-filter",
            "type eq 'compute-ops/server'",
            "--header",
            "X-Env=prod",
        ]
    )

    assert args.command == "com-webhook-create"
    assert args.region == "eu-central"
    assert args.dry_run is True
    assert args.header == [("X-Env", "prod")]
    assert args.func is glops_cli.handle_com_webhook_create


def test_cli_parses_bulk_device_assign():
    parser = glops_cli.build_parser()
    args = parser.parse_args(
        ["--region", "eu-central", "--poll-max-attempts", "3", "glp-device-assign", "SN1", "SN2", "--service", "COM"]
    )

    assert args.serial_numbers == ["SN1", "SN2"]
    assert args.service == "COM"
    assert args.poll_max_attempts == 3


def test_parse_header_rejects_missing_separator():
    with pytest.raises(argparse.ArgumentTypeError):
        glops_cli.parse_header("no-separator")


def test_parse_iso_datetime_accepts_z_suffix():
    dt = glops_cli.parse_iso_datetime("2025-01-01T12:00:00Z")
    assert dt.utcoffset().total_seconds() == 0
    assert dt.hour == 12


def test_print_result_json(capsys):
    status = OperationStatus(name="WebhookA", region="eu-central").complete("done")

    glops_cli.print_result([status])

    rows = json.loads(capsys.readouterr().out)
    assert rows[0]["status"] == "Complete"
    assert rows[0]["name"] == "WebhookA"


def test_compute_relative_range_weeks():
    start, end = glops_cli.compute_relative_range(weeks_ago=2)
    assert (end - start).days == 14


def test_cli_parses_activity_start_time():
    parser = glops_cli.build_parser()
    args = parser.parse_args(
        ["--region", "eu-central", "com-activity-list", "--start-time", "2025-01-01T00:00:00Z"]
    )

    assert args.start_time.year == 2025
    assert args.start_time.utcoffset().total_seconds() == 0


def test_cli_rejects_bad_start_time(capsys):
    parser = glops_cli.build_parser()

    with pytest.raises(SystemExit) as info:
        parser.parse_args(["--region", "eu-central", "com-activity-list", "--start-time", "yesterday"])

    assert info.value.code == 2
    assert "Invalid datetime format" in capsys.readouterr().err
