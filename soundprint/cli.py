"""
soundprint - command-line interface.

Example usage:
    soundprint teach doorbell.m4a --id doorbell --owner johns-iphone
    soundprint match capture.wav --owner johns-iphone --own-only
    soundprint match capture.wav --threshold 0.8 --json
    soundprint list --owner johns-iphone
    soundprint delete doorbell
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from soundprint.core.models import MatchResult
from soundprint.utils.config import load_config
from soundprint.utils.errors import AudioLoadError, ConfigurationError, SoundprintError
from soundprint.utils.logging import setup_logging


def print_match_result(file_path: Path, result: MatchResult) -> None:
    """Print a match result to console."""
    print("\n" + "=" * 60)
    print("SOUNDPRINT MATCH RESULT")
    print("=" * 60)
    print(f"File: {file_path.name}")
    if result.matched:
        print(f"Match: {result.best_id}")
        print(f"Confidence: {result.best_score:.1%}")
    else:
        print("Match: none")
        print(f"Best Score: {result.best_score:.1%} (threshold {result.threshold:.0%})")
    print("-" * 60)

    if result.ranked:
        print("Top matches:")
        for ranked in result.top(3):
            owner = ranked.owner_id or "unknown"
            print(f"  {ranked.audio_id:<24} {ranked.score:.3f}  (owner: {owner})")
    else:
        print("Library is empty.")
    print("-" * 60)


def teach_sound(engine, audio_file: Path, audio_id: str, owner_id: Optional[str]) -> int:
    entry = engine.teach(audio_file, audio_id, owner_id)
    print(f"Fingerprint stored for: {entry.audio_id} (user: {entry.owner_id or 'unknown'})")
    print(f"  Windows: {len(entry.fingerprint)}")
    return 0


def match_sound(
    engine,
    audio_file: Path,
    threshold: Optional[float],
    owner_id: Optional[str],
    own_only: bool,
    as_json: bool,
) -> int:
    result = engine.identify(
        audio_file,
        threshold=threshold,
        owner_id=owner_id,
        match_own_only=own_only,
    )
    if as_json:
        print(result.to_json(indent=2))
    else:
        print_match_result(audio_file, result)
    return 0


def list_sounds(engine, owner_id: Optional[str], as_json: bool) -> int:
    entries = engine.list_entries(owner_id)
    if as_json:
        print(json.dumps(
            {"count": len(entries), "fingerprints": entries, "filteredBy": owner_id or "none"},
            indent=2,
        ))
        return 0

    if not entries:
        print("No fingerprints stored.")
        return 0

    print("\n" + "=" * 70)
    print("STORED FINGERPRINTS")
    print("=" * 70)
    print(f"{'ID':<24} {'Owner':<20} {'Windows':<8} {'Created':<20}")
    print("-" * 70)
    for entry in entries:
        created = (entry['timestamp'] or "")[:19]
        print(
            f"{entry['audioId']:<24} {entry['ownerId'] or 'unknown':<20} "
            f"{entry['fingerprintLength']:<8} {created:<20}"
        )
    print("-" * 70)
    print(f"{len(entries)} fingerprint(s) total")
    return 0


def delete_sound(engine, audio_id: str) -> int:
    if engine.delete(audio_id):
        print(f"Fingerprint deleted: {audio_id}")
        return 0
    print(f"Fingerprint not found: {audio_id}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="soundprint",
        description="Teach reference sounds and recognize them in new recordings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  soundprint teach doorbell.m4a --id doorbell --owner johns-iphone
  soundprint match capture.wav --owner johns-iphone --own-only
  soundprint list --json
  soundprint delete doorbell
        """
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--library",
        type=Path,
        default=None,
        help="Path to the fingerprint library JSON (overrides config)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="soundprint 1.0.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    teach = subparsers.add_parser("teach", help="Fingerprint and store a reference sound")
    teach.add_argument("audio_file", type=Path, help="Reference recording")
    teach.add_argument("--id", dest="audio_id", required=True, help="Identifier to store it under")
    teach.add_argument("--owner", default=None, help="Owner (user or device) id")

    match = subparsers.add_parser("match", help="Identify a recording against the library")
    match.add_argument("audio_file", type=Path, help="Recording to identify")
    match.add_argument("--threshold", type=float, default=None, help="Acceptance threshold (default from config)")
    match.add_argument("--owner", default=None, help="Caller's owner id")
    match.add_argument("--own-only", action="store_true", help="Only match the owner's own sounds")
    match.add_argument("--json", action="store_true", help="Print the full result as JSON")

    listing = subparsers.add_parser("list", help="List stored fingerprints")
    listing.add_argument("--owner", default=None, help="Only this owner's fingerprints")
    listing.add_argument("--json", action="store_true", help="Print as JSON")

    delete = subparsers.add_parser("delete", help="Delete a stored fingerprint")
    delete.add_argument("audio_id", help="Identifier to delete")

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command and return the exit code."""
    from soundprint.core.engine import create_fingerprint_engine

    args = build_parser().parse_args(argv)

    config_path = str(args.config) if args.config else None
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1
    if args.library is not None:
        config.setdefault("library", {})["path"] = str(args.library)

    log_config = config.get("logging", {})
    log_level = "DEBUG" if args.verbose else log_config.get("level", "INFO")
    setup_logging(
        level=log_level,
        log_format="text",
        log_file=log_config.get("file"),
        colored=True,
        console_enabled=True
    )

    engine = None
    try:
        engine = create_fingerprint_engine(config)

        if args.command == "teach":
            return teach_sound(engine, args.audio_file, args.audio_id, args.owner)
        if args.command == "match":
            return match_sound(
                engine, args.audio_file, args.threshold, args.owner, args.own_only, args.json
            )
        if args.command == "list":
            return list_sounds(engine, args.owner, args.json)
        return delete_sound(engine, args.audio_id)

    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1
    except AudioLoadError as e:
        print(f"Error: could not process audio: {e}")
        return 2
    except SoundprintError as e:
        print(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        if engine is not None:
            engine.shutdown()


def main():
    """Main entry point for the soundprint CLI."""
    sys.exit(run())


if __name__ == "__main__":
    main()
