#!/usr/bin/env python3
"""
blobverify CLI — verify every blob in a blob store.

"verify" here means "read the contents of a blob and check that the contents
match the hash". This catches hardware failure and other data corruption. It
only checks each individual blob: it does not check that the set of blobs is
the one you expect, beyond telling you how many blobs it verified.

Usage:
    blobverify [-v] <path to server config file>

Examples:
    blobverify ~/.config/blobstore/server-config.json
    python -m blobverify -v server-config.yaml

Exit status:
    0  every blob verified
    1  the tool failed (config, storage setup, streaming)
    2  corruption detected
"""

import argparse
import logging
import sys
from typing import List, NoReturn, Optional

from dotenv import find_dotenv, load_dotenv

from .config import VerifySettings, load_file, parse_low_level_config
from .errors import ConfigError, ResolveError, StreamingError, UnsupportedBackendError
from .registry import Loader
from .verify import ConsoleReporter, TallyResult, VerificationPipeline

PROG = "blobverify"
BLOB_PREFIX = "/bs/"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CORRUPTION = 2


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s' if verbose else '%(message)s'
    )
    # Quiet down noisy loggers
    if not verbose:
        logging.getLogger("fsspec").setLevel(logging.WARNING)


def stderrln(*lines: str):
    for line in lines:
        print(line, file=sys.stderr)


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with exit status 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        stderrln("", f"Example: {self.prog} ~/.config/blobstore/server-config.json")
        self.exit(EXIT_FAILURE)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog=PROG,
        usage="%(prog)s [-v] <path to server config file>",
        description="Verify that the contents of every blob in a blob store match its ref.",
    )
    parser.add_argument("config", help="Server config file (.json, .yaml or .yml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    return parser


def exit_code(result: TallyResult) -> int:
    """Exit status of a run that streamed to completion."""
    return EXIT_OK if result.ok else EXIT_CORRUPTION


def verify_config_file(path: str) -> int:
    """
    Run a full verification for the server config at ``path``.

    Returns:
        Process exit status.
    """
    # Parse config and find the handler for /bs/, the main blob handler.
    try:
        settings = VerifySettings.from_env()
        doc = load_file(path)
    except ConfigError as e:
        stderrln(f"{PROG}: {e}")
        return EXIT_FAILURE

    try:
        config = parse_low_level_config(doc)
    except ConfigError as e:
        stderrln(
            f"{PROG}: I do not recognize the format of this server config, and cannot continue :(",
            "",
            "Here's specifically what surprised me in the (low-level) config:",
            "",
            f"\t{e}",
        )
        return EXIT_FAILURE

    bs = config.prefixes.get(BLOB_PREFIX)
    if bs is None:
        stderrln(
            f"{PROG}: I do not recognize the format of this server config, and cannot continue :(",
            "",
            f'Specifically, I expect the low-level config to contain a "{BLOB_PREFIX}" prefix, and it does not.',
        )
        return EXIT_FAILURE

    # Initialize the storage for /bs/. This may recursively initialize other
    # storages that it uses.
    loader = Loader(config)
    try:
        storage = loader.get_storage(BLOB_PREFIX)
    except ResolveError as e:
        stderrln(f"{PROG}: failed to load blob storage: {e}")
        return EXIT_FAILURE

    reporter = ConsoleReporter()
    pipeline = VerificationPipeline(storage, bs.handler_type, settings=settings, reporter=reporter)
    try:
        result = pipeline.run()
    except UnsupportedBackendError as e:
        stderrln(
            f"{PROG} does not support the {e.handler_type!r} storage type. :(",
            "",
            "I can only handle storages that can stream all of their blobs "
            "(that is, storages with a fast interface to the contents of every blob).",
        )
        return EXIT_FAILURE
    except StreamingError as e:
        # Still report what was verified before the failure
        reporter.summary(e.result)
        stderrln(f"{PROG}: {e}")
        return EXIT_FAILURE

    reporter.summary(result)
    return exit_code(result)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    load_dotenv(find_dotenv(usecwd=True))
    return verify_config_file(args.config)


if __name__ == "__main__":
    sys.exit(main())
