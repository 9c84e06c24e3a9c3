"""Declarative artifact registry — recorded specs instead of live uploads.

In spec mode, archives and packages are not sent to the control plane;
their descriptions are written to JSON files under the spec directory for a
later apply step.  Before recording something new the registry is searched
for a structurally identical entry so repeated runs reuse existing names.

Layout::

    {spec_dir}/
        package-<name>.json   — list of spec documents
        ...
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from packsmith.core.errors import InputError
from packsmith.models.package import ObjectMeta, Package
from packsmith.models.specs import ArchiveUploadSpec, SpecDocument, SpecKind

logger = logging.getLogger(__name__)


class SpecRegistry:
    """Reads and writes spec documents under ``spec_dir``.

    Parameters
    ----------
    spec_dir:
        Directory holding the spec files.  Created on first save.
    """

    def __init__(self, spec_dir: Path) -> None:
        self._dir = Path(spec_dir)

    @property
    def spec_dir(self) -> Path:
        return self._dir

    # -- Read --------------------------------------------------------------

    def read(self) -> list[SpecDocument]:
        """Load every document from every spec file, in file-name order."""
        if not self._dir.is_dir():
            return []
        documents: list[SpecDocument] = []
        for path in sorted(self._dir.glob("*.json")):
            raw = json.loads(path.read_text(encoding="utf-8"))
            documents.extend(SpecDocument.model_validate(item) for item in raw)
        return documents

    def archive_exists(self, candidate: ArchiveUploadSpec) -> str | None:
        """Return the name of a recorded archive with the same globs, if any."""
        for doc in self.read():
            if doc.kind == SpecKind.ARCHIVE_UPLOAD and doc.archive is not None:
                if doc.archive.same_spec(candidate):
                    return doc.archive.name
        return None

    def package_exists(self, candidate: Package) -> ObjectMeta | None:
        """Return the metadata of a recorded package with an equal spec, if any.

        Metadata is ignored in the comparison; only the spec must match.
        """
        for doc in self.read():
            if doc.kind == SpecKind.PACKAGE and doc.package is not None:
                if doc.package.spec == candidate.spec:
                    return doc.package.metadata
        return None

    # -- Write -------------------------------------------------------------

    def save_archive(self, spec: ArchiveUploadSpec, spec_file: str) -> Path:
        return self._append(SpecDocument(kind=SpecKind.ARCHIVE_UPLOAD, archive=spec), spec_file)

    def save_package(self, package: Package, spec_file: str) -> Path:
        return self._append(SpecDocument(kind=SpecKind.PACKAGE, package=package), spec_file)

    def _resolve(self, spec_file: str) -> Path:
        """Map a spec file name to its path, which must be a ``.json`` file
        directly under the spec directory so that ``read`` sees it again.
        """
        path = Path(spec_file)
        if not path.is_absolute():
            path = self._dir / path
        if path.suffix != ".json" or path.resolve().parent != self._dir.resolve():
            raise InputError(
                f"spec file {spec_file!r} must be a .json file directly under {self._dir}"
            )
        return path

    def _append(self, document: SpecDocument, spec_file: str) -> Path:
        path = self._resolve(spec_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        existing: list = []
        if path.exists():
            existing = json.loads(path.read_text(encoding="utf-8"))
        existing.append(document.model_dump(mode="json", by_alias=True, exclude_none=True))
        path.write_text(json.dumps(existing, indent=2) + "\n", encoding="utf-8")
        logger.info("Saved %s spec to %s", document.kind.value, path)
        return path
