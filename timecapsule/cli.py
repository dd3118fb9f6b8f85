"""CLI tool for hashing, sanitizing, stamping and verifying evidence files."""

import argparse
import asyncio
import sys
from pathlib import Path

from bs4 import UnicodeDammit

from timecapsule.exceptions import EmptyInputError
from timecapsule.hashing import aggregate, digest
from timecapsule.logging import setup_logging
from timecapsule.models import ProofStatus, RenderedPage
from timecapsule.proofs import OpenTimestampsLedger, ProofEngine
from timecapsule.sanitizer import Sanitizer
from timecapsule.settings import settings

PROOF_SUFFIX = ".ots"


def _proof_engine() -> ProofEngine:
    return ProofEngine(OpenTimestampsLedger.from_settings(settings))


def _read(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except OSError as e:
        print(f"Error: cannot read {path}: {e.strerror or e}", file=sys.stderr)
        return None


def _target_for(proof_path: Path) -> Path:
    if proof_path.suffix == PROOF_SUFFIX:
        return proof_path.with_suffix("")
    return proof_path


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_digest(args: argparse.Namespace) -> int:
    """Print the SHA-256 digest of each file, or their aggregate."""
    digests = []
    for path in args.files:
        data = _read(path)
        if data is None:
            return 1
        file_digest = digest(data)
        digests.append(file_digest)
        if not args.aggregate:
            print(f"{file_digest.hex()}  {path}")

    if args.aggregate:
        try:
            print(aggregate(digests).hex())
        except EmptyInputError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    return 0


def _cmd_sanitize(args: argparse.Namespace) -> int:
    """Sanitize an HTML snapshot into its canonical evidence form."""
    data = _read(args.input)
    if data is None:
        return 1

    sanitizer = Sanitizer() if args.no_images else Sanitizer.from_settings(settings)
    markup = UnicodeDammit(data, is_html=True).unicode_markup
    if markup is None:
        print(f"Error: cannot detect the encoding of {args.input}", file=sys.stderr)
        return 1
    page = RenderedPage(html=markup, url=args.base_url)
    blob = asyncio.run(sanitizer.sanitize(page))

    if args.output is None:
        sys.stdout.buffer.write(blob.data)
        sys.stdout.buffer.flush()
    else:
        args.output.write_bytes(blob.data)
    print(f"{digest(blob.data).hex()}  {args.output or '-'}", file=sys.stderr)
    return 0


def _cmd_stamp(args: argparse.Namespace) -> int:
    """Submit a file's digest to the ledger and write the pending proof next to it."""
    data = _read(args.file)
    if data is None:
        return 1

    file_digest = digest(data)
    result = asyncio.run(_proof_engine().create(file_digest))
    if result.status is ProofStatus.PENDING:
        print(f"Error: no calendar accepted {file_digest.hex()}", file=sys.stderr)
        return 1

    proof_path = args.file.with_name(args.file.name + PROOF_SUFFIX)
    proof_path.write_bytes(result.proof)
    print(f"Submitted {file_digest.hex()}, proof written to {proof_path}")
    return 0


def _cmd_upgrade(args: argparse.Namespace) -> int:
    """Upgrade a proof in place once it carries a confirmed anchor."""
    proof = _read(args.proof)
    if proof is None:
        return 1

    result = asyncio.run(_proof_engine().upgrade(proof))
    if result.status is not ProofStatus.COMPLETE:
        print(f"{args.proof}: not confirmed yet ({result.status})")
        return 1

    if result.proof != proof:
        args.proof.write_bytes(result.proof)
    print(f"{args.proof}: {result.status}")
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    """Verify a proof against the file it was created for."""
    proof = _read(args.proof)
    if proof is None:
        return 1
    target = args.target or _target_for(args.proof)
    data = _read(target)
    if data is None:
        return 1

    outcome = asyncio.run(_proof_engine().verify(proof, digest(data)))
    print(outcome.message)
    if outcome.anchor is not None:
        print(f"Block time: {outcome.anchor.time.isoformat()}")
    return 0 if outcome.verified else 1


def _cmd_info(args: argparse.Namespace) -> int:
    """Show the structure of a proof."""
    proof = _read(args.proof)
    if proof is None:
        return 1
    print(_proof_engine().info(proof))
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for evidence operations."""
    parser = argparse.ArgumentParser(prog="timecapsule", description="TimeCapsule evidence CLI")
    parser.add_argument("--log-level", default=None, help="Override the TimeCapsule log level")
    subparsers = parser.add_subparsers(dest="command")

    # digest
    digest_parser = subparsers.add_parser("digest", help="Print SHA-256 digests of files")
    digest_parser.add_argument("files", nargs="+", type=Path, help="Files to hash")
    digest_parser.add_argument("--aggregate", action="store_true", help="Print the aggregate digest of all files instead")

    # sanitize
    sanitize_parser = subparsers.add_parser("sanitize", help="Sanitize an HTML snapshot")
    sanitize_parser.add_argument("input", type=Path, help="HTML file to sanitize")
    sanitize_parser.add_argument("-o", "--output", type=Path, default=None, help="Output file (default: stdout)")
    sanitize_parser.add_argument("--base-url", default=None, help="URL the snapshot was captured from, for resolving images")
    sanitize_parser.add_argument("--no-images", action="store_true", help="Do not fetch and inline images")

    # stamp
    stamp_parser = subparsers.add_parser("stamp", help="Timestamp a file, writing FILE.ots")
    stamp_parser.add_argument("file", type=Path, help="File to timestamp")

    # upgrade
    upgrade_parser = subparsers.add_parser("upgrade", help="Upgrade a pending proof in place")
    upgrade_parser.add_argument("proof", type=Path, help="Proof file")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a proof against its file")
    verify_parser.add_argument("proof", type=Path, help="Proof file")
    verify_parser.add_argument("--target", type=Path, default=None, help="File the proof is for (default: PROOF without .ots)")

    # info
    info_parser = subparsers.add_parser("info", help="Show proof details")
    info_parser.add_argument("proof", type=Path, help="Proof file")

    args = parser.parse_args(argv)

    handlers = {
        "digest": _cmd_digest,
        "sanitize": _cmd_sanitize,
        "stamp": _cmd_stamp,
        "upgrade": _cmd_upgrade,
        "verify": _cmd_verify,
        "info": _cmd_info,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    setup_logging(level=args.log_level)
    return handler(args)


__all__ = ["main"]
