"""Per-invocation CLI state shared with subcommands through ``ctx.obj``."""

from __future__ import annotations

from collections.abc import Callable

from packsmith.config import ClientConfig
from packsmith.core.orchestrator import PackageOrchestrator


class CliState:
    """Resolved configuration plus the orchestrator factory.

    ``factory`` builds the orchestrator from the resolved config; tests pass
    one that injects in-memory backends.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        factory: Callable[[ClientConfig], PackageOrchestrator] | None = None,
    ) -> None:
        self.config = config
        self.factory = factory

    def orchestrator(self) -> PackageOrchestrator:
        config = self.config or ClientConfig()
        if self.factory is not None:
            return self.factory(config)
        return PackageOrchestrator(config)
