import argparse
import sys
from dataclasses import replace
from pathlib import Path

from .env import load_env

from . import __version__
from .config import get_settings
from .logger import get_logger
from .models import Job
from .storage import CredentialStore
from .worker import STATUS_FAILED, STATUS_INVALID, dispatch_message, execute_job


def _settings(args: argparse.Namespace):
    try:
        settings = get_settings()
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    if getattr(args, "db", None):
        settings = replace(settings, db_path=Path(args.db))
    if getattr(args, "region", None):
        settings = replace(settings, discount_region=args.region.upper())
    return settings


def cmd_run(args: argparse.Namespace) -> None:
    settings = _settings(args)
    get_logger().set_level(settings.log_level)
    store = CredentialStore(settings.db_path)
    try:
        outcome = execute_job(Job(job_id=args.job_id, selector=args.where), store, settings)
    finally:
        store.close()
    result = outcome.result
    print(f"Job: {outcome.job_id}")
    print(f"Status: {outcome.status}")
    print(f"Quotes: created={result.quotes_created} failed={result.quotes_failed}")
    print(f"QuoteLineItems: created={result.line_items_created} failed={result.line_items_failed} "
          f"skipped={result.line_items_skipped}")
    if outcome.error:
        print(f"Error: {outcome.error}")
    get_logger().log_metrics_summary()
    if outcome.status == STATUS_FAILED:
        raise SystemExit(1)


def cmd_worker(args: argparse.Namespace) -> None:
    settings = _settings(args)
    get_logger().set_level(settings.log_level)
    if args.input == "-":
        lines = sys.stdin
    else:
        input_path = Path(args.input)
        if not input_path.exists():
            raise SystemExit(f"Input file not found: {input_path}")
        lines = input_path.open("r", encoding="utf-8")
    store = CredentialStore(settings.db_path)

    count = completed = failed = invalid = 0
    try:
        for line in lines:
            message = line.strip()
            if not message or message.startswith("#"):
                continue
            count += 1
            try:
                outcome = dispatch_message(message, store, settings)
            except Exception as e:
                get_logger().error("Unhandled error while executing job", message=message, error=str(e))
                print(f"[error] {message} -> {e}")
                failed += 1
                continue
            if outcome.status == STATUS_INVALID:
                invalid += 1
            elif outcome.status == STATUS_FAILED:
                failed += 1
            else:
                completed += 1
            print(f"[{outcome.status}] {outcome.job_id}")
    finally:
        store.close()
        if lines is not sys.stdin:
            lines.close()
    print(f"Done. total={count} completed={completed} failed={failed} invalid={invalid}")
    get_logger().log_metrics_summary()


def main():
    # Load .env if present (QUOTEGEN_DB_PATH, SALESFORCE_API_VERSION, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="quotegen", description="Pricing engine worker: generate Quotes from Opportunities")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    run = subparsers.add_parser("run", help="Execute one Quote generation job")
    run.add_argument("--job-id", required=True, help="Job id whose Salesforce session was stashed by intake")
    run.add_argument("--where", required=True, help="SOQL WHERE clause selecting Opportunities")
    run.add_argument("--db", help="Credential store path (default: QUOTEGEN_DB_PATH or data/quotegen.db)")
    run.add_argument("--region", help="Discount region (default: QUOTEGEN_DISCOUNT_REGION or US)")
    run.set_defaults(func=cmd_run)

    wrk = subparsers.add_parser("worker", help="Execute queued '<job_id>:<where clause>' messages, one per line")
    wrk.add_argument("--input", required=True, help="File with one message per line, or - for stdin")
    wrk.add_argument("--db", help="Credential store path (default: QUOTEGEN_DB_PATH or data/quotegen.db)")
    wrk.add_argument("--region", help="Discount region (default: QUOTEGEN_DISCOUNT_REGION or US)")
    wrk.set_defaults(func=cmd_worker)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
