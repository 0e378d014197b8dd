"""Command-line entry points for decoding object streams and inspecting allow-lists."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

# Allow `python cli/main.py ...` execution from IDEs by adding repo root to sys.path.
if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from configs.loader import ConfigLoader, DeserializerConfig, apply_config
from core.errors import ObjectStreamError
from core.fingerprint_registry import FingerprintRegistry
from data.serializer import VersionTolerantDeserializer


def _parse_allow(entry: str) -> tuple[str, str]:
    name, sep, fingerprint = entry.rpartition("=")
    if not sep or not name or not fingerprint:
        raise argparse.ArgumentTypeError(f"Expected NAME=FINGERPRINT, got '{entry}'.")
    return name.strip(), fingerprint.strip()


def _build_deserializer(config: DeserializerConfig, extra_allow: list[tuple[str, str]]) -> VersionTolerantDeserializer:
    deserializer = VersionTolerantDeserializer.from_config(config)
    for name, fingerprint in extra_allow:
        deserializer.allow(name, fingerprint)
    return deserializer


def run_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="vtos")
    sub = parser.add_subparsers(dest="command", required=True)

    decode_cmd = sub.add_parser("decode")
    decode_cmd.add_argument("path")
    decode_cmd.add_argument("--config")
    decode_cmd.add_argument("--allow", action="append", default=[], type=_parse_allow, metavar="NAME=FP")
    decode_cmd.add_argument("--log-level")

    allowed_cmd = sub.add_parser("allowed")
    allowed_cmd.add_argument("--config", required=True)

    args = parser.parse_args(argv)

    config = ConfigLoader.load(args.config) if args.config else DeserializerConfig()

    if args.command == "allowed":
        for identity, fingerprints in apply_config(config, FingerprintRegistry()).snapshot().items():
            for fingerprint in fingerprints:
                print(f"{identity} {fingerprint}")
        return 0

    if args.command == "decode":
        logging.basicConfig(level=getattr(logging, (args.log_level or config.log_level).upper(), logging.WARNING))
        try:
            deserializer = _build_deserializer(config, args.allow)
            value = deserializer.load(Path(args.path))
        except (ObjectStreamError, ValueError, OSError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
        print(repr(value))
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(run_cli())
