"""LXD operations using an Executor for dependency injection."""
from __future__ import annotations

import csv
import io
import logging
from typing import TYPE_CHECKING

from lbm.executor import ExecutorError
from lbm.models import ErrorKind, Instance, Remote, Snapshot, StepResult, StoragePool

if TYPE_CHECKING:
    from lbm.executor import Executor
    from lbm.models import JobConfig

log = logging.getLogger(__name__)

# Remotes speaking this protocol only serve images, never instances
IMAGE_STREAM_PROTOCOL = "simplestreams"


class PoolError(Exception):
    """No usable storage pool on the local endpoint."""
    kind = ErrorKind.FATAL_POOL


def _csv_rows(output: str) -> list[list[str]]:
    return [row for row in csv.reader(io.StringIO(output)) if row and row[0].strip()]


def list_remotes(executor: "Executor", config: "JobConfig") -> list[Remote]:
    """Return backup-eligible remotes in registry order."""
    output = executor.run([config.lxc, "remote", "list", "--format", "csv"])
    results = []
    for row in _csv_rows(output):
        # name,url,protocol,auth_type,public,static,global
        name = row[0].strip()
        if name.endswith("(current)"):
            name = name[: -len("(current)")].strip()
        protocol = row[2].strip() if len(row) > 2 else ""
        if protocol == IMAGE_STREAM_PROTOCOL:
            log.debug("skipping image server remote %s", name)
            continue
        if name == config.local_remote or name in config.exclude_remotes:
            continue
        if config.include_remotes and name not in config.include_remotes:
            continue
        results.append(Remote(name=name))
    return results


def list_running_instances(remote: Remote, executor: "Executor", config: "JobConfig") -> list[Instance]:
    """Return instances on a remote whose status is RUNNING."""
    output = executor.run([
        config.lxc, "list", f"{remote.name}:", "--format", "csv", "--columns", "ns",
    ])
    results = []
    for row in _csv_rows(output):
        name = row[0].strip()
        status = row[1].strip() if len(row) > 1 else ""
        instance = Instance(remote=remote.name, name=name, status=status)
        if not instance.is_running:
            log.debug("%s is %s, not backing it up", instance.ref, status or "UNKNOWN")
            continue
        results.append(instance)
    return results


def resolve_local_pool(executor: "Executor", config: "JobConfig") -> StoragePool:
    """Return the pool local backups are copied into.

    Uses the configured pool if one is pinned, otherwise the first pool the
    local endpoint lists. Raises PoolError when there is none.
    """
    if config.storage_pool:
        return StoragePool(name=config.storage_pool)
    try:
        output = executor.run([
            config.lxc, "storage", "list", f"{config.local_remote}:", "--format", "csv",
        ])
    except ExecutorError as e:
        raise PoolError(f"Could not list local storage pools: {e}") from e
    rows = _csv_rows(output)
    if not rows:
        raise PoolError(f"No storage pool found on {config.local_remote}")
    return StoragePool(name=rows[0][0].strip())


def _has_snapshot_marker(info: str, name: str) -> bool:
    """Look for a snapshot entry in the Snapshots section of `lxc info`.

    Handles both the indented list layout ("  backup (taken at ...)") and
    the table layout ("| backup | 2024/01/01 ... |").
    """
    in_section = False
    for line in info.splitlines():
        if not in_section:
            in_section = line.strip() == "Snapshots:"
            continue
        if line and not line[0].isspace() and line[0] not in "|+":
            break
        fields = line.replace("|", " ").split()
        if fields and fields[0] == name:
            return True
    return False


def snapshot_exists(snapshot: Snapshot, executor: "Executor", config: "JobConfig") -> bool:
    """Return True if the instance carries the snapshot. Raises ExecutorError."""
    info = executor.run([config.lxc, "info", snapshot.instance.ref])
    return _has_snapshot_marker(info, snapshot.name)


def delete_snapshot(snapshot: Snapshot, executor: "Executor", config: "JobConfig") -> StepResult:
    """Delete a snapshot if it exists. A missing snapshot is success."""
    try:
        exists = snapshot_exists(snapshot, executor, config)
    except ExecutorError as e:
        return StepResult.failure(
            ErrorKind.SNAPSHOT_DELETE_FAILED,
            f"could not inspect {snapshot.instance.ref}: {e.stderr.strip()}",
        )
    if not exists:
        return StepResult.success()
    return remove_snapshot(snapshot, executor, config)


def remove_snapshot(snapshot: Snapshot, executor: "Executor", config: "JobConfig") -> StepResult:
    """Delete a snapshot known to exist, without inspecting the instance."""
    ok, output = executor.execute([config.lxc, "delete", snapshot.ref])
    if not ok:
        return StepResult.failure(
            ErrorKind.SNAPSHOT_DELETE_FAILED,
            f"could not delete snapshot {snapshot.ref}: {output}",
        )
    return StepResult.success()


def create_snapshot(snapshot: Snapshot, executor: "Executor", config: "JobConfig") -> StepResult:
    """Create a fresh snapshot, removing any stale one of the same name first."""
    result = delete_snapshot(snapshot, executor, config)
    if not result.ok:
        return result

    ok, output = executor.execute([
        config.lxc, "snapshot", snapshot.instance.ref, snapshot.name,
    ])
    if not ok:
        return StepResult.failure(
            ErrorKind.SNAPSHOT_CREATE_FAILED,
            f"could not create snapshot {snapshot.ref}: {output}",
        )
    return StepResult.success()


def instance_exists(name: str, executor: "Executor", config: "JobConfig") -> bool:
    """Return True if an instance with this name exists on the local endpoint."""
    try:
        executor.run([config.lxc, "info", f"{config.local_remote}:{name}"])
        return True
    except ExecutorError:
        return False


def copy_snapshot(
    snapshot: Snapshot,
    destination: str,
    pool: StoragePool,
    executor: "Executor",
    config: "JobConfig",
) -> StepResult:
    """
    Replace the local instance `destination` with a stateless copy of snapshot.

    Uses: lxc copy remote:instance/snap local:destination --stateless
          --storage pool --config boot.autostart=false
    """
    target = f"{config.local_remote}:{destination}"
    if instance_exists(destination, executor, config):
        ok, output = executor.execute([config.lxc, "delete", "--force", target])
        if not ok:
            return StepResult.failure(
                ErrorKind.LOCAL_COPY_DELETE_FAILED,
                f"could not delete previous backup {target}: {output}",
            )

    ok, output = executor.execute([
        config.lxc, "copy", snapshot.ref, target,
        "--stateless",
        "--storage", pool.name,
        "--config", "boot.autostart=false",
    ])
    if not ok:
        return StepResult.failure(
            ErrorKind.COPY_FAILED,
            f"could not copy {snapshot.ref} to {target}: {output}",
        )
    return StepResult.success()
