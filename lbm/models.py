"""Data models for lxd-backup-manager."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Remote:
    """A configured LXD endpoint other than the local one."""
    name: str


@dataclass(frozen=True)
class Instance:
    """A container or VM on a remote: remote:name."""
    remote: str
    name: str
    status: str = "RUNNING"

    @property
    def ref(self) -> str:
        return f"{self.remote}:{self.name}"

    @property
    def is_running(self) -> bool:
        return self.status.upper() == "RUNNING"


@dataclass(frozen=True)
class Snapshot:
    """An instance snapshot: remote:instance/name."""
    instance: Instance
    name: str

    @property
    def ref(self) -> str:
        return f"{self.instance.ref}/{self.name}"


@dataclass(frozen=True)
class StoragePool:
    name: str  # pool on the local endpoint


class ErrorKind(str, enum.Enum):
    FATAL_CONFIG = "FatalConfig"
    FATAL_POOL = "FatalPool"
    SNAPSHOT_DELETE_FAILED = "SnapshotDeleteFailed"
    SNAPSHOT_CREATE_FAILED = "SnapshotCreateFailed"
    LOCAL_COPY_DELETE_FAILED = "LocalCopyDeleteFailed"
    COPY_FAILED = "CopyFailed"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one backup stage: ok, or a failure tagged with its kind."""
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls) -> "StepResult":
        return cls()

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "StepResult":
        return cls(error=error, message=message)


@dataclass
class RemoteResult:
    remote: str
    eligible: int = 0
    succeeded: int = 0
    failures: dict[str, StepResult] = field(default_factory=dict)

    def record(self, instance: Instance, result: StepResult) -> None:
        self.eligible += 1
        if result.ok:
            self.succeeded += 1
        else:
            self.failures[instance.name] = result


@dataclass
class BackupResult:
    """Aggregate counts for a whole run."""
    remotes: list[RemoteResult] = field(default_factory=list)

    @property
    def eligible(self) -> int:
        return sum(r.eligible for r in self.remotes)

    @property
    def succeeded(self) -> int:
        return sum(r.succeeded for r in self.remotes)

    @property
    def failed(self) -> int:
        return self.eligible - self.succeeded

    @property
    def exit_code(self) -> int:
        """0 when everything was backed up, else the number left behind."""
        return self.failed


@dataclass
class JobConfig:
    lxc: str = "lxc"
    local_remote: str = "local"
    snapshot_name: str = "backup"
    backup_suffix: str = "-backup"
    storage_pool: str | None = None
    include_remotes: list[str] = field(default_factory=list)
    exclude_remotes: list[str] = field(default_factory=list)
    log_level: str | None = None

    def destination_for(self, instance: Instance) -> str:
        """Return the local instance name a backup lands in.

        Example: web1 -> web1-backup
        """
        return f"{instance.name}{self.backup_suffix}"
