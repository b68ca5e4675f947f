"""File discovery — find Go source files respecting exclusion rules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

from go_audit.core.config import AuditConfig
from go_audit.errors import TraversalError

TEST_FILE_SUFFIX = "_test.go"


def is_test_file(path: str | Path) -> bool:
    return str(path).endswith(TEST_FILE_SUFFIX)


def is_vendored(rel_parts: tuple[str, ...], cfg: AuditConfig) -> bool:
    """True if any directory segment marks vendored third-party code."""
    return any(part in cfg.vendor_dirs for part in rel_parts)


def _raise_traversal(err: OSError) -> None:
    raise TraversalError(str(err.filename or ""), err) from err


def iter_source_files(root: Path | str, cfg: AuditConfig | None = None) -> Iterator[Path]:
    """Yield Go files under *root* in depth-first, lexical order.

    Inclusion rules:
      - name ends with one of ``cfg.extensions`` (suffix check only)
      - no path segment below *root* is a vendored-dependency directory
      - ``*_test.go`` only when ``cfg.include_tests``

    Symlinked directories are not descended into.  Directory enumeration
    errors (including a missing *root*) raise :class:`TraversalError`.
    """
    cfg = cfg or AuditConfig()
    root = Path(root)

    if root.is_file():
        # A single file is treated as a one-entry tree
        if root.name.endswith(cfg.extensions):
            if cfg.include_tests or not is_test_file(root):
                yield root
        return

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_traversal):
        # Prune vendored directories; sort for a stable traversal order.
        dirnames[:] = sorted(d for d in dirnames if d not in cfg.vendor_dirs)
        rel_parts = Path(dirpath).relative_to(root).parts
        if is_vendored(rel_parts, cfg):
            continue
        for name in sorted(filenames):
            if not name.endswith(cfg.extensions):
                continue
            if not cfg.include_tests and is_test_file(name):
                continue
            path = Path(dirpath) / name
            if path.is_dir():
                continue
            yield path
