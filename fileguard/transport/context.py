"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from fileguard.bootstrap.config import ServerConfig
from fileguard.domain.sandbox import SandboxResolver
from fileguard.lifecycle.state import ServerLifecycle


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads.

    The resolver holds only immutable configuration, so every worker can use
    the same instance without locking.
    """

    resolver: SandboxResolver
    lifecycle: Optional[ServerLifecycle] = None
    config: Optional[ServerConfig] = None
