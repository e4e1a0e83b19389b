#!/usr/bin/env python3
"""
Run one transaction through the compliance engine and print the response.

Reads a transaction JSON document (file or stdin), processes it with the
active rule set and prints the response JSON.  Errors raised by the engine
are reported as a FAILED response.

Exit codes:
    0  CALCULATED
    1  REJECTED
    2  FAILED (engine error, unreadable input)

Usage:
    python3 scripts/run_transaction.py tx.json
    python3 scripts/run_transaction.py tx.json --customer-type WHOLESALE
    cat tx.json | python3 scripts/run_transaction.py -
    python3 scripts/run_transaction.py tx.json --database-url sqlite:///compliance.db
"""

import argparse
import json
import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from compliance_config import get_active_rules  # noqa: E402
from compliance_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.domain.dtos import TransactionStatus  # noqa: E402
from compliance_kernel.exceptions import ComplianceKernelError  # noqa: E402
from compliance_kernel.logging_config import configure_logging, get_logger  # noqa: E402
from compliance_services.compliance_engine import ComplianceEngine  # noqa: E402
from compliance_services.jurisdiction_lookup import (  # noqa: E402
    SqlJurisdictionLookup,
    seed_from_factory,
)
from compliance_services.transaction_recorder import SqlTransactionRecorder  # noqa: E402

logger = get_logger("scripts.run_transaction")

EXIT_CODES = {
    TransactionStatus.CALCULATED: 0,
    TransactionStatus.REJECTED: 1,
    TransactionStatus.FAILED: 2,
}


def _read_payload(source: str):
    """Decode the transaction; floats become Decimal so amounts stay exact."""
    if source == "-":
        return json.load(sys.stdin, parse_float=Decimal)
    with open(source) as f:
        return json.load(f, parse_float=Decimal)


def _build_context(args: argparse.Namespace) -> dict:
    context = json.loads(args.context) if args.context else {}
    if not isinstance(context, dict):
        raise ValueError(f"--context must be a JSON object (got {type(context).__name__})")
    if args.customer_type:
        context["customerType"] = args.customer_type
    return context


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Process a transaction through the compliance fee engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", help="Transaction JSON file, or - for stdin")
    parser.add_argument("--customer-type", help="Customer type (e.g. WHOLESALE)")
    parser.add_argument("--context", help="Additional context as a JSON object")
    parser.add_argument("--rules", help="Rule set YAML (default: bundled rule set)")
    parser.add_argument(
        "--database-url",
        help="Record transactions and look up jurisdictions in this database",
    )
    parser.add_argument("--compact", action="store_true", help="Single-line JSON output")
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args()

    configure_logging(level=args.log_level)

    try:
        payload = _read_payload(args.input)
        context = _build_context(args)
    except (OSError, ValueError) as e:
        print(f"Cannot read input: {e}", file=sys.stderr)
        return EXIT_CODES[TransactionStatus.FAILED]

    transaction_id = ""
    if isinstance(payload, dict) and isinstance(payload.get("transactionId"), str):
        transaction_id = payload["transactionId"]

    rules = get_active_rules(args.rules)

    recorder = None
    lookup = None
    if args.database_url:
        init_engine_from_url(args.database_url)
        create_tables()
        factory = get_session_factory()
        seed_from_factory(factory, rules)
        recorder = SqlTransactionRecorder(factory)
        lookup = SqlJurisdictionLookup(factory)

    try:
        with ComplianceEngine.from_rules(
            rules, jurisdiction_lookup=lookup, recorder=recorder,
        ) as engine:
            try:
                response = engine.process(payload, context)
            except ComplianceKernelError as e:
                logger.error("transaction_processing_failed", exc_info=True)
                response = ComplianceEngine.failed_response(transaction_id, e)
    finally:
        if args.database_url:
            reset_engine()

    indent = None if args.compact else 2
    print(json.dumps(response.to_dict(), indent=indent))
    return EXIT_CODES[response.status]


if __name__ == "__main__":
    sys.exit(main())
