"""Backup job orchestration: snapshot, copy and clean up every running instance."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lbm import lxc
from lbm.executor import ExecutorError
from lbm.models import BackupResult, RemoteResult, Snapshot, StepResult

if TYPE_CHECKING:
    from lbm.executor import Executor
    from lbm.models import Instance, JobConfig, Remote, StoragePool

log = logging.getLogger(__name__)


def backup_instance(
    instance: "Instance",
    pool: "StoragePool",
    executor: "Executor",
    config: "JobConfig",
) -> StepResult:
    """
    Back up one instance. Returns the first failing stage's result, if any.

    Stages:
    1. Snapshot the instance (replacing a stale snapshot of the same name)
    2. Copy the snapshot over the local backup instance
    3. Delete the snapshot on the remote
    """
    snapshot = Snapshot(instance=instance, name=config.snapshot_name)
    destination = config.destination_for(instance)

    log.info("Backing up %s -> %s:%s", instance.ref, config.local_remote, destination)

    result = lxc.create_snapshot(snapshot, executor, config)
    if not result.ok:
        return result

    result = lxc.copy_snapshot(snapshot, destination, pool, executor, config)
    if not result.ok:
        return result

    # Just created above, so it exists even when nothing ran (dry-run)
    return lxc.remove_snapshot(snapshot, executor, config)


def _backup_remote(
    remote: "Remote",
    pool: "StoragePool",
    executor: "Executor",
    config: "JobConfig",
) -> RemoteResult:
    remote_result = RemoteResult(remote=remote.name)

    try:
        instances = lxc.list_running_instances(remote, executor, config)
    except ExecutorError as e:
        log.error("Could not list instances on %s: %s", remote.name, e)
        return remote_result

    log.debug("%s: %d running instance(s)", remote.name, len(instances))

    for instance in instances:
        result = backup_instance(instance, pool, executor, config)
        remote_result.record(instance, result)
        if result.ok:
            log.info("%s: transfer complete", instance.ref)
        else:
            log.error(
                "%s (snapshot %r): %s: %s",
                instance.ref, config.snapshot_name, result.error.value, result.message,
            )

    log.info(
        "%s: backed up %d of %d instance(s)",
        remote.name, remote_result.succeeded, remote_result.eligible,
    )
    return remote_result


def run_backup(executor: "Executor", config: "JobConfig") -> BackupResult:
    """
    Run a backup pass over every remote and return the aggregate result.

    Raises lxc.PoolError before contacting any remote if the local endpoint
    has no storage pool. Per-instance failures never stop the run.
    """
    pool = lxc.resolve_local_pool(executor, config)
    log.debug("Using local storage pool %s", pool.name)

    result = BackupResult()
    for remote in lxc.list_remotes(executor, config):
        result.remotes.append(_backup_remote(remote, pool, executor, config))

    prefix = f"[{executor.label}] " if executor.label == "dry-run" else ""
    log.log(
        logging.INFO if result.failed == 0 else logging.WARNING,
        "%sBacked up %d out of %d instance(s)",
        prefix, result.succeeded, result.eligible,
    )
    return result
