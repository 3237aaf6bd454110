"""Command line interface for enrollment and verification.

Usage:
    faceverify enroll user-42 photos/user42.jpg
    faceverify verify live.jpg
    faceverify verify live.jpg --json
    faceverify remove user-42
    faceverify list

Configuration comes from environment variables (.env), see
``faceverify.core.config``. --store, --backend, --matcher and --threshold
override it for a single run.

Exit codes: 0 on success or match, 1 on no match, ambiguous match or
rejected photo, 2 when a photo could not be evaluated or the command is
misconfigured (``list`` and ``remove`` need a persistent store).
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import os
from pathlib import Path
from typing import List, Optional

from faceverify.backends.factory import create_service, create_store
from faceverify.core.config import BACKEND_DIMENSIONS, BACKEND_THRESHOLDS, Config
from faceverify.core.exceptions import EnrollmentRejected, FaceVerifyError
from faceverify.core.logging_config import setup_logging
from faceverify.core.results import Ambiguous, ExtractionFailed, Matched, MatchResult

logger = setup_logging(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_ERROR = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="faceverify",
        description="Enroll faces and verify photos against enrolled identities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--store", type=str, default=None, help="Enrollment pickle file")
    parser.add_argument(
        "--backend",
        type=str,
        choices=["dlib", "insightface"],
        default=None,
        help="Extraction backend (default: BACKEND from environment)",
    )
    parser.add_argument(
        "--matcher",
        type=str,
        choices=["euclidean", "faiss"],
        default=None,
        help="Matcher implementation (default: MATCHER from environment)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Maximum Euclidean distance for a match (default: MATCH_THRESHOLD)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    enroll = subparsers.add_parser("enroll", help="Enroll or re-enroll an identity")
    enroll.add_argument("identity", type=str, help="Identity key")
    enroll.add_argument("photo", type=Path, help="Photo showing exactly one face")

    verify = subparsers.add_parser("verify", help="Identify the face in a photo")
    verify.add_argument("photo", type=Path, help="Query photo")
    verify.add_argument("--json", action="store_true", help="Print the result as JSON")

    remove = subparsers.add_parser("remove", help="Remove an enrolled identity")
    remove.add_argument("identity", type=str, help="Identity key")

    subparsers.add_parser("list", help="List enrolled identities")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Load Config from the environment and apply command-line overrides."""
    config = Config.from_env()
    overrides = {}

    if args.backend is not None and args.backend != config.backend:
        overrides["backend"] = args.backend
        overrides["descriptor_dim"] = BACKEND_DIMENSIONS[args.backend]
        # An explicit MATCH_THRESHOLD still wins over the backend default
        if not os.getenv("MATCH_THRESHOLD"):
            overrides["match_threshold"] = BACKEND_THRESHOLDS[args.backend]
    if args.matcher is not None:
        overrides["matcher"] = args.matcher
    if args.threshold is not None:
        if args.threshold <= 0.0:
            raise ValueError(f"--threshold must be > 0, got {args.threshold}")
        overrides["match_threshold"] = args.threshold
    if args.store is not None:
        overrides["store_path"] = Path(args.store) if args.store else None

    return dataclasses.replace(config, **overrides)


def result_to_dict(result: MatchResult) -> dict:
    """Convert a MatchResult to a JSON-serializable dict."""
    data = {"result": type(result).__name__, "is_match": result.is_match}
    data.update(dataclasses.asdict(result))
    if isinstance(result, Ambiguous):
        data["identity_keys"] = list(result.identity_keys)
    return data


def describe(result: MatchResult) -> str:
    """Human readable one-line description of a MatchResult."""
    if isinstance(result, Matched):
        return f"Match: {result.identity_key} (distance={result.distance:.4f})"
    if isinstance(result, Ambiguous):
        keys = ", ".join(result.identity_keys)
        return f"Ambiguous: {keys} tie at distance={result.distance:.4f}"
    if isinstance(result, ExtractionFailed):
        return f"Photo rejected: {result.reason} ({result.num_faces} face(s))"
    if result.best_distance is None:
        return "No match (no enrolled identities)"
    return f"No match (closest distance={result.best_distance:.4f})"


def run(args: argparse.Namespace, config: Config) -> int:
    """Execute a parsed command and return the exit code."""
    if args.command in ("list", "remove") and config.store_path is None:
        raise ValueError(
            f"'{args.command}' needs a persistent store, set STORE_PATH or --store"
        )

    if args.command == "list":
        store = create_store(config)
        keys = store.keys()
        for key in keys:
            print(key)
        logger.info(f"{len(keys)} enrolled identit{'y' if len(keys) == 1 else 'ies'}")
        return EXIT_OK

    if args.command == "remove":
        store = create_store(config)
        store.remove(args.identity)
        print(f"Removed: {args.identity}")
        return EXIT_OK

    image_bytes = args.photo.read_bytes()
    service = create_service(config)

    if args.command == "enroll":
        try:
            record = service.enroll(args.identity, image_bytes)
        except EnrollmentRejected as e:
            print(f"Enrollment rejected: {e.reason}")
            return EXIT_REJECTED
        print(f"Enrolled: {record.identity_key} (dim={record.dimension})")
        return EXIT_OK

    result = service.verify(image_bytes)
    if args.json:
        print(json.dumps(result_to_dict(result), indent=2))
    else:
        print(describe(result))
    return EXIT_OK if result.is_match else EXIT_REJECTED


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the faceverify console script."""
    args = parse_args(argv)

    try:
        config = build_config(args)
        return run(args, config)
    except (FaceVerifyError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
