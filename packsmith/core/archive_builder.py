"""Archive builder — turns path, glob and URL inputs into one archive location.

Rules, in order:

1. HTTP(S) inputs are never globbed or bundled; a sole URL is passed through
   unchanged.
2. Every other input is glob-expanded; any input matching nothing is an
   input error, reported together with the other misses.
3. A single resulting file that is already a zip, or any single file when
   ``no_zip`` is set, is used verbatim.  ``no_zip`` is ignored when the
   inputs yield more than one file.
4. Otherwise a new zip is written into the caller's scratch directory as
   ``<hint>-<random>.zip``.

In declarative (spec) mode no file is produced at all: an
``ArchiveUploadSpec`` is recorded, or an existing one with the same globs is
reused by name.
"""

from __future__ import annotations

import glob
import logging
import os
import secrets
import string
import zipfile
from collections.abc import Sequence
from pathlib import Path

from packsmith.core.errors import InputError, NoMatchingFilesError
from packsmith.core.spec_registry import SpecRegistry
from packsmith.models.archive import Archive
from packsmith.models.specs import ArchiveUploadSpec

logger = logging.getLogger(__name__)

# Maximum length of a normalized resource name.
MAX_NAME_LENGTH = 63

_SUFFIX_ALPHABET = string.ascii_letters + string.digits


def is_url(path: str) -> bool:
    return path.startswith("http://") or path.startswith("https://")


def random_suffix(length: int) -> str:
    """Random alphanumeric string; only used to avoid name collisions."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def kubify_name(name: str) -> str:
    """Normalize an arbitrary string into a valid resource name.

    Lowercases, replaces anything outside ``[a-z0-9-]`` with ``-``, strips
    leading characters up to the first letter and trailing characters after
    the last letter or digit, and truncates to 63 characters.

    >>> kubify_name("Hello_World.py")
    'hello-world-py'
    >>> kubify_name("./2fn.py")
    'fn-py'
    """
    lowered = name.lower()
    mapped = "".join(
        ch if ("a" <= ch <= "z" or "0" <= ch <= "9" or ch == "-") else "-"
        for ch in lowered
    )
    start = 0
    while start < len(mapped) and not ("a" <= mapped[start] <= "z"):
        start += 1
    mapped = mapped[start:]
    end = len(mapped)
    while end > 0 and not ("a" <= mapped[end - 1] <= "z" or "0" <= mapped[end - 1] <= "9"):
        end -= 1
    return mapped[:end][:MAX_NAME_LENGTH]


def archive_name(name_hint: str, inputs: Sequence[str]) -> str:
    """Name a new archive: ``<hint>-<4 random chars>``.

    The hint defaults to the normalized base name of the first input; with no
    input at all the name is 8 random characters.
    """
    if name_hint:
        return f"{name_hint}-{random_suffix(4)}"
    if not inputs:
        return random_suffix(8)
    base = kubify_name(os.path.basename(inputs[0].rstrip("/"))) or "archive"
    return f"{base}-{random_suffix(4)}"


def find_all_globs(patterns: Sequence[str]) -> list[str]:
    """Expand glob patterns (``**`` allowed) into a de-duplicated path list."""
    seen: dict[str, None] = {}
    for pattern in patterns:
        for match in sorted(glob.glob(pattern, recursive=True)):
            seen.setdefault(match, None)
    return list(seen)


def make_zip(target: Path, paths: Sequence[str]) -> Path:
    """Write ``paths`` (files or directories) into a new zip at ``target``.

    Entries are stored relative to the deepest directory containing all
    inputs, so a single file keeps its base name and a directory keeps its
    own name as the top-level folder.
    """
    absolute = [os.path.abspath(p) for p in paths]
    root = os.path.commonpath([os.path.dirname(p) for p in absolute])

    written: set[str] = set()

    def add(zf: zipfile.ZipFile, full: str) -> None:
        arcname = os.path.relpath(full, root)
        if arcname not in written:
            written.add(arcname)
            zf.write(full, arcname)

    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in absolute:
            if os.path.isdir(path):
                for dirpath, _dirnames, filenames in os.walk(path):
                    for filename in sorted(filenames):
                        add(zf, os.path.join(dirpath, filename))
            else:
                add(zf, path)
    return target


class ArchiveBuilder:
    """Builds archive locations from user inputs.

    Parameters
    ----------
    registry:
        Declarative artifact registry; required only for ``declare``.
    """

    def __init__(self, registry: SpecRegistry | None = None) -> None:
        self._registry = registry

    def check_inputs(self, inputs: Sequence[str]) -> None:
        """Fail if any local input matches no files or URLs are mixed with files.

        Every missing pattern is collected before raising, so the caller sees
        all of them at once.
        """
        urls = [p for p in inputs if is_url(p)]
        if urls and len(inputs) > 1:
            raise InputError(
                f"URL inputs cannot be combined with other inputs: {', '.join(urls)}"
            )
        missing = [p for p in inputs if not is_url(p) and not find_all_globs([p])]
        if missing:
            raise NoMatchingFilesError(missing)

    def build(
        self,
        inputs: Sequence[str],
        scratch_dir: Path,
        *,
        no_zip: bool = False,
        name_hint: str = "",
    ) -> str:
        """Return the location (local path or URL) of the archive for ``inputs``.

        A new zip, if one is needed, is written under ``scratch_dir``; the
        caller owns that directory and its cleanup.
        """
        self.check_inputs(inputs)

        if len(inputs) == 1 and is_url(inputs[0]):
            return inputs[0]

        files = find_all_globs(inputs)
        if len(files) == 1 and os.path.isfile(files[0]):
            if zipfile.is_zipfile(files[0]) or no_zip:
                logger.debug("Using %s verbatim as archive", files[0])
                return files[0]

        target = Path(scratch_dir) / f"{archive_name(name_hint, inputs)}.zip"
        make_zip(target, files)
        logger.debug("Built archive %s from %d input path(s)", target, len(files))
        return str(target)

    def declare(self, inputs: Sequence[str], spec_file: str) -> Archive:
        """Record (or reuse) an archive description instead of building one.

        Dedup is by exact glob list; file contents are not consulted.
        """
        if self._registry is None:
            raise InputError("declarative archives need a spec registry")
        self.check_inputs(inputs)

        candidate = ArchiveUploadSpec(
            name=archive_name("", inputs), include_globs=list(inputs)
        )
        existing = self._registry.archive_exists(candidate)
        if existing is not None:
            logger.info("Re-using previously created archive %s", existing)
            candidate = candidate.model_copy(update={"name": existing})
        else:
            self._registry.save_archive(candidate, spec_file)
        return candidate.as_archive()
