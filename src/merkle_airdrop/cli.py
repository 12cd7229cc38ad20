"""
Merkle Airdrop Claim Service - Distribution CLI

Off-line tooling for a campaign.

Usage:
    merkle-airdrop sample --out entitlements.csv
    merkle-airdrop build entitlements.csv --dump tree.json --claims claims.json
    merkle-airdrop proof tree.json 0xAddress
    merkle-airdrop verify ROOT 0xAddress AMOUNT '["0x..", "0x.."]'
"""

import argparse
import csv
import json
import sys
from collections.abc import Sequence

import structlog

from merkle_airdrop.core.logging import setup_logging
from merkle_airdrop.crypto.leaf import parse_amount
from merkle_airdrop.crypto.merkle import DistributionError, verify_proof
from merkle_airdrop.services.distribution import (
    CSV_FIELDS,
    build_tree,
    load_entitlements_csv,
    read_dump,
)

logger = structlog.get_logger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2

SAMPLE_ROWS = [
    ("0x1111111111111111111111111111111111111111", "100"),
    ("0x2222222222222222222222222222222222222222", "200"),
    ("0x3333333333333333333333333333333333333333", "300"),
]


def cmd_sample(args: argparse.Namespace) -> int:
    with open(args.out, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_FIELDS)
        writer.writerows(SAMPLE_ROWS)
    print(f"Sample CSV written to {args.out}")
    return EXIT_SUCCESS


def cmd_build(args: argparse.Namespace) -> int:
    distribution = build_tree(load_entitlements_csv(args.csv))
    distribution.write_dump(args.dump)
    distribution.write_claims(args.claims)

    print(f"Merkle root: {distribution.root}")
    print(f"Recipients:  {len(distribution.proofs)}")
    print(f"Token total: {distribution.total_amount}")
    print(f"Max proof:   {distribution.depth}")
    return EXIT_SUCCESS


def cmd_proof(args: argparse.Namespace) -> int:
    distribution = read_dump(args.dump)
    try:
        proof = distribution.proof_for(args.address)
    except KeyError:
        print(f"No entitlement for {args.address}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    print(json.dumps(proof.to_dict(), indent=2))
    return EXIT_SUCCESS


def cmd_verify(args: argparse.Namespace) -> int:
    try:
        proof = json.loads(args.proof)
    except json.JSONDecodeError as e:
        print(f"Proof must be a JSON list of hashes: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    if not isinstance(proof, list):
        print("Proof must be a JSON list of hashes", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    verified = verify_proof(args.root, args.address, parse_amount(args.amount), proof)
    print("VALID" if verified else "INVALID")
    return EXIT_SUCCESS if verified else EXIT_VERIFICATION_FAILED


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="merkle-airdrop",
        description="Build Merkle airdrop distributions and check proofs.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sample = subparsers.add_parser("sample", help="Write an example entitlement CSV")
    sample.add_argument("--out", default="entitlements.csv")
    sample.set_defaults(func=cmd_sample)

    build = subparsers.add_parser("build", help="Build root and proofs from a CSV")
    build.add_argument("csv", help="CSV with address,amount header")
    build.add_argument("--dump", default="tree.json", help="Tree dump output path")
    build.add_argument("--claims", default="claims.json", help="Claims file output path")
    build.set_defaults(func=cmd_build)

    proof = subparsers.add_parser("proof", help="Print the proof for one address")
    proof.add_argument("dump", help="Tree dump written by build")
    proof.add_argument("address")
    proof.set_defaults(func=cmd_proof)

    verify = subparsers.add_parser("verify", help="Verify a proof against a root")
    verify.add_argument("root")
    verify.add_argument("address")
    verify.add_argument("amount")
    verify.add_argument("proof", help="JSON list of sibling hashes")
    verify.set_defaults(func=cmd_verify)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = create_parser().parse_args(argv)
    setup_logging(level="INFO" if args.verbose else "WARNING", stream=sys.stderr)
    try:
        return args.func(args)
    except (DistributionError, ValueError, OSError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
