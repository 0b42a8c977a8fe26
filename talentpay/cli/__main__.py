"""
TalentPay CLI - pricing lookups and ledger audits.

Usage:
    talentpay price --rate-level N --duration D [--json]
    talentpay price --table [--json]
    talentpay audit platform [--json]
    talentpay audit balance USER_ID [--json]

Audit commands read from Supabase (SUPABASE_URL and SUPABASE_SECRET_KEY).
"""

import argparse
import json
import logging
import os
import sys

from talentpay.config import CommerceConfig
from talentpay.errors import CommerceError
from talentpay.ledger.audit import LedgerAudit
from talentpay.pricing import DURATIONS, RATE_LEVELS, price, price_table, quote_settlement

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def build_storage():
    """Create the Supabase storage used by audit commands."""
    from supabase import create_client

    from talentpay.storage.supabase import SupabaseCommerceStorage

    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SECRET_KEY") or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set")
    return SupabaseCommerceStorage(create_client(url, key))


def cmd_price(args):
    """Show a price point or the full price table."""
    config = CommerceConfig.from_env()
    if args.table:
        rows = []
        for row in price_table():
            quote = quote_settlement(row["price"], config.admin_fee_rate)
            rows.append(
                {
                    "rate_level": row["rate_level"],
                    "duration": row["duration"],
                    "price": str(quote.payout),
                    "admin_fee": str(quote.admin_fee),
                    "founder_charge": str(quote.founder_charge),
                }
            )
        if args.json:
            print(json.dumps(rows, indent=2))
        else:
            print(f"{'Level':<6} {'Duration':<9} {'Price':>9} {'Fee':>8} {'Charge':>9}")
            for row in rows:
                print(
                    f"{row['rate_level']:<6} {row['duration']:<9} {row['price']:>9} "
                    f"{row['admin_fee']:>8} {row['founder_charge']:>9}"
                )
        return

    if args.rate_level is None or args.duration is None:
        raise ValueError("--rate-level and --duration are required unless --table is given")

    payout = price(args.rate_level, args.duration)
    quote = quote_settlement(payout, config.admin_fee_rate)
    if args.json:
        print(
            json.dumps(
                {
                    "rate_level": args.rate_level,
                    "duration": args.duration,
                    "price": str(quote.payout),
                    "admin_fee": str(quote.admin_fee),
                    "founder_charge": str(quote.founder_charge),
                },
                indent=2,
            )
        )
    else:
        print(f"Price:          RM{quote.payout}")
        print(f"Admin fee:      RM{quote.admin_fee}")
        print(f"Founder charge: RM{quote.founder_charge}")


def cmd_audit(args, audit: LedgerAudit):
    """Handle audit subcommands."""
    if args.audit_action == "platform":
        report = audit.platform_fee_report()
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            status = "OK" if report.consistent else "MISMATCH"
            print(f"Platform balance: RM{report.platform_balance}")
            print(f"Settlement fees:  RM{report.settlement_fees}")
            print(f"Withdrawal fees:  RM{report.withdrawal_fees}")
            print(f"Expected fees:    RM{report.expected_fees}")
            print(f"Status:           {status}")
        if not report.consistent:
            sys.exit(2)

    elif args.audit_action == "balance":
        drift = audit.balance_drift(args.user_id)
        derived = audit.derived_balance(args.user_id)
        if args.json:
            print(json.dumps({"user_id": args.user_id, "derived": str(derived), "drift": str(drift)}, indent=2))
        else:
            print(f"Derived balance: RM{derived}")
            print(f"Drift:           RM{drift}")
        if drift:
            sys.exit(2)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="talentpay",
        description="Pricing and ledger tools for the talent marketplace",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # price
    p_price = subparsers.add_parser("price", help="Look up campaign prices")
    p_price.add_argument("--rate-level", type=int, choices=RATE_LEVELS, help="Talent rate level")
    p_price.add_argument("--duration", choices=DURATIONS, help="Video duration")
    p_price.add_argument("--table", action="store_true", help="Show every price point")
    p_price.add_argument("--json", action="store_true", help="Output as JSON")

    # audit
    p_audit = subparsers.add_parser("audit", help="Reconcile stored balances with the ledger")
    audit_sub = p_audit.add_subparsers(dest="audit_action", required=True)
    audit_platform = audit_sub.add_parser("platform", help="Check platform fee totals")
    audit_platform.add_argument("--json", action="store_true", help="Output as JSON")
    audit_balance = audit_sub.add_parser("balance", help="Check one user's stored balance")
    audit_balance.add_argument("user_id", help="Profile ID")
    audit_balance.add_argument("--json", action="store_true", help="Output as JSON")

    args = parser.parse_args(argv)

    try:
        if args.command == "price":
            cmd_price(args)
        elif args.command == "audit":
            audit = LedgerAudit(build_storage(), CommerceConfig.from_env())
            cmd_audit(args, audit)
    except (ValueError, CommerceError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
