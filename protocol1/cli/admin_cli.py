"""
Admin CLI for Protocol-1 governance.

Usage:
    protocol1-admin rules [--actor-type <type>] [--severity <severity>]
    protocol1-admin check --actor-type <type> --action <action> [options] [--prometheus]
    protocol1-admin metrics [--date YYYY-MM-DD]
    protocol1-admin score [--date YYYY-MM-DD]
    protocol1-admin alerts [--limit N]
    protocol1-admin violations [--actor-type <type>] [--company-id <id>] [--limit N]
"""

import argparse
import json
import os
import sys
from datetime import datetime

from protocol1.config import SettingsLoader
from protocol1.core.errors import GovernanceViolationException
from protocol1.core.models import ResourceRefs, ValidationContext
from protocol1.core.rules import DEFAULT_CATALOG, PROTOCOL_VERSION, PROTOCOL_VERSION_DATE, Validator
from protocol1.observability.logger import get_logger
from protocol1.observability.metrics import generate_metrics
from protocol1.observability.monitor import Monitor
from protocol1.warehouse import AlertStore, CounterStore, DatabaseConnectionPool, ViolationLogStore

logger = get_logger(__name__)


def format_timestamp(ts: datetime | str | None) -> str:
    """Format timestamp for display."""
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def build_pool(args) -> DatabaseConnectionPool:
    return DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )


def build_monitor(pool: DatabaseConnectionPool, args) -> Monitor:
    settings = SettingsLoader(args.config).load()
    return Monitor(
        violation_store=ViolationLogStore(pool),
        alert_store=AlertStore(pool),
        counter_store=CounterStore(pool),
        settings=settings,
    )


def rules_command(args):
    """
    List catalog rules, optionally filtered by actor type and severity.

    Args:
        args: Command line arguments
    """
    if args.actor_type:
        rules = DEFAULT_CATALOG.get_rules_for_actor(args.actor_type)
    else:
        rules = list(DEFAULT_CATALOG.get_all_rules().values())

    if args.severity:
        rules = [rule for rule in rules if rule.severity.value == args.severity.upper()]

    print(f"\n{'=' * 100}")
    print(f"PROTOCOL-1 RULE CATALOG v{PROTOCOL_VERSION} ({PROTOCOL_VERSION_DATE})")
    print(f"{'=' * 100}\n")

    print(f"{'Rule ID':<42} {'Family':<20} {'Severity':<10} {'Applies To'}")
    print(f"{'-' * 100}")
    for rule in rules:
        print(f"{rule.rule_id:<42} {rule.family.value:<20} {rule.severity.value:<10} {', '.join(sorted(rule.applies_to))}")

    print(f"\nTotal: {len(rules)} rule(s)\n")


def check_command(args):
    """
    Dry-run an action against the catalog (no sub-guards, nothing recorded).

    Args:
        args: Command line arguments
    """
    try:
        payload = json.loads(args.payload) if args.payload else {}
    except json.JSONDecodeError as e:
        print(f"\nError: --payload is not valid JSON: {e}")
        sys.exit(2)

    payload.setdefault("actor_type", args.actor_type)

    try:
        context = ValidationContext(
            actor_type=args.actor_type,
            action=args.action,
            resource_refs=ResourceRefs(
                company_id=args.company_id,
                target_model=args.target_model,
                target_id=args.target_id,
            ),
            actor_id=args.actor_id,
            payload=payload,
        )
    except ValueError as e:
        print(f"\nError: {e}")
        sys.exit(2)

    validator = Validator(enforcement_mode=args.mode)

    try:
        result = validator.validate(context)
        verdict = "ALLOWED"
    except GovernanceViolationException as e:
        result = e.result
        verdict = f"BLOCKED ({e.block_reason})"

    print(f"\nVerdict: {verdict}")
    print(f"Mode: {result.enforcement_mode.value}  Duration: {result.validation_duration_ms}ms\n")

    for violation in result.all_violations():
        print(f"  [{violation.severity.value:<8}] {violation.rule_id}")
        print(f"             {violation.message}")
    if not result.total_violations:
        print("  No violations")
    print()

    if args.prometheus:
        print(generate_metrics().decode("utf-8"))

    if result.should_block:
        sys.exit(1)


def metrics_command(args):
    """
    Display daily violation metrics.

    Args:
        args: Command line arguments
    """
    pool = build_pool(args)

    try:
        pool.open()
        metrics = build_monitor(pool, args).get_metrics(args.date)

        print(f"\n{'=' * 60}")
        print(f"PROTOCOL-1 METRICS FOR {metrics.date}")
        print(f"{'=' * 60}\n")

        print(f"Total violations: {metrics.total_violations}\n")

        print("By Severity:")
        for severity, count in metrics.by_severity.items():
            print(f"  {severity:<12} {count:>8}")

        print("\nBy Actor Type:")
        for actor_type, count in sorted(metrics.by_actor_type.items(), key=lambda x: x[1], reverse=True):
            print(f"  {actor_type:<20} {count:>8}")

        print("\nTop Violated Rules:")
        for rank, rule in enumerate(metrics.top_violated_rules, start=1):
            print(f"  {rank:>2}. {rule.rule_id:<42} {rule.violation_count:>6}")

        print(f"\n{'=' * 60}\n")

    except Exception as e:
        logger.error(f"Error reading metrics: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)

    finally:
        pool.close()


def score_command(args):
    """
    Display the daily compliance score.

    Args:
        args: Command line arguments
    """
    pool = build_pool(args)

    try:
        pool.open()
        score = build_monitor(pool, args).get_compliance_score(args.date)

        print(f"\nCompliance score for {score.date}: {score.score:.2f} ({score.grade})")
        print(f"  Actions:    {score.total_actions}")
        print(f"  Violations: {score.total_violations}\n")

    except Exception as e:
        logger.error(f"Error computing compliance score: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)

    finally:
        pool.close()


def alerts_command(args):
    """
    List unacknowledged alerts.

    Args:
        args: Command line arguments
    """
    pool = build_pool(args)

    try:
        pool.open()
        alerts = AlertStore(pool).list_unacknowledged(limit=args.limit)

        if not alerts:
            print("\nNo unacknowledged alerts.\n")
            return

        print(f"\n{'Time':<20} {'Severity':<10} {'Title':<42} {'Message'}")
        print(f"{'-' * 110}")
        for alert in alerts:
            print(f"{format_timestamp(alert.created_at):<20} {alert.severity.value:<10} {alert.title:<42} {alert.message}")
        print()

    except Exception as e:
        logger.error(f"Error listing alerts: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)

    finally:
        pool.close()


def violations_command(args):
    """
    List recent violations from the audit log.

    Args:
        args: Command line arguments
    """
    pool = build_pool(args)

    try:
        pool.open()
        entries = ViolationLogStore(pool).recent(
            limit=args.limit,
            actor_type=args.actor_type,
            company_id=args.company_id,
        )

        if not entries:
            print("\nNo violations recorded.\n")
            return

        print(f"\n{'Time':<20} {'Severity':<9} {'Rule ID':<40} {'Actor':<18} {'Action':<24} {'Blocked'}")
        print(f"{'-' * 120}")
        for entry in entries:
            blocked = "yes" if entry.was_blocked else "no"
            print(
                f"{format_timestamp(entry.created_at):<20} {entry.severity.value:<9} {entry.rule_id:<40} "
                f"{entry.actor_type:<18} {entry.action:<24} {blocked}"
            )
        print()

    except Exception as e:
        logger.error(f"Error listing violations: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)

    finally:
        pool.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protocol1-admin",
        description="Admin CLI for Protocol-1 governance enforcement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Global database connection options
    parser.add_argument("--db-host", default=os.getenv("DB_HOST", "localhost"), help="Database host")
    parser.add_argument("--db-port", type=int, default=int(os.getenv("DB_PORT", "5432")), help="Database port")
    parser.add_argument("--db-name", default=os.getenv("DB_NAME", "platform"), help="Database name")
    parser.add_argument("--db-user", default=os.getenv("DB_USER", "protocol1"), help="Database user")
    parser.add_argument("--db-password", default=os.getenv("DB_PASSWORD"), help="Database password (default: $DB_PASSWORD)")
    parser.add_argument("--config", help="Protocol-1 YAML settings file (default: $PROTOCOL1_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    rules_parser = subparsers.add_parser("rules", help="List catalog rules")
    rules_parser.add_argument("--actor-type", help="Only rules applying to this actor type")
    rules_parser.add_argument("--severity", choices=["CRITICAL", "HIGH", "MEDIUM", "LOW"], type=str.upper)

    check_parser = subparsers.add_parser("check", help="Dry-run an action against the catalog")
    check_parser.add_argument("--actor-type", required=True, help="Actor type")
    check_parser.add_argument("--action", required=True, help="Action identifier")
    check_parser.add_argument("--company-id", help="Target company")
    check_parser.add_argument("--actor-id", help="Acting user")
    check_parser.add_argument("--target-model", help="Target record type")
    check_parser.add_argument("--target-id", help="Target record id")
    check_parser.add_argument("--payload", help="Request payload as JSON")
    check_parser.add_argument("--mode", choices=["strict", "lenient", "monitor"], default="strict")
    check_parser.add_argument("--prometheus", action="store_true", help="Also print the validator metrics in Prometheus text format")

    metrics_parser = subparsers.add_parser("metrics", help="Daily violation metrics")
    metrics_parser.add_argument("--date", help="Day as YYYY-MM-DD (default: today)")

    score_parser = subparsers.add_parser("score", help="Daily compliance score")
    score_parser.add_argument("--date", help="Day as YYYY-MM-DD (default: today)")

    alerts_parser = subparsers.add_parser("alerts", help="Unacknowledged alerts")
    alerts_parser.add_argument("--limit", type=int, default=50, help="Maximum alerts (default: 50)")

    violations_parser = subparsers.add_parser("violations", help="Recent violations")
    violations_parser.add_argument("--actor-type", help="Filter by actor type")
    violations_parser.add_argument("--company-id", help="Filter by company")
    violations_parser.add_argument("--limit", type=int, default=50, help="Maximum entries (default: 50)")

    return parser


COMMANDS = {
    "rules": rules_command,
    "check": check_command,
    "metrics": metrics_command,
    "score": score_command,
    "alerts": alerts_command,
    "violations": violations_command,
}


def main(argv: list[str] | None = None):
    """Main entry point for admin CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
