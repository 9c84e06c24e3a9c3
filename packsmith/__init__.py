"""Packsmith: build, upload and manage function packages.

  - Archive building from files, globs and URLs (zip or single file)
  - Literal embedding of small archives, checksummed upload of large ones
  - Package records with optimistic concurrency on the control plane
  - Build status decided from what an update actually changed
  - Re-pinning of dependent functions after each package revision
  - Declarative spec mode that records archives and packages as JSON
"""

__version__ = "0.1.0"
__description__ = "Package builder and manager for a serverless function platform"

from packsmith.config import ClientConfig
from packsmith.core.orchestrator import PackageOrchestrator
from packsmith.cli.app import app as cli

__all__ = ["ClientConfig", "PackageOrchestrator", "cli", "__version__"]
