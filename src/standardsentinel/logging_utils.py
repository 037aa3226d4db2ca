from __future__ import annotations

import logging
import sys


def configure_logging(*, verbose: bool, quiet: bool) -> None:
    """
    Configure process-wide logging defaults for CLI and build usage.

    - Default: INFO
    - --verbose: DEBUG
    - --quiet: WARNING

    Logging is written to stderr so it does not corrupt machine-readable stdout
    outputs (JSON/XML reports).
    """

    if verbose and quiet:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    fmt = "StandardSentinel: %(message)s"
    if verbose:
        fmt = "StandardSentinel [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(level=level, format=fmt, stream=sys.stderr, force=True)
