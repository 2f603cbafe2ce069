"""MockExecutor and shared fixtures for testing."""
from __future__ import annotations

import pytest

from lbm.executor import ExecutorError
from lbm.models import JobConfig


class MockExecutor:
    """
    Executor that returns pre-scripted responses for commands.

    responses: dict mapping tuple(cmd) -> stdout string, an Exception to
    raise from run(), or a (success, output) tuple for execute().
    If the command isn't found, raises KeyError (to catch unexpected calls in tests).
    """

    def __init__(self, responses: dict | None = None, label: str = "mock"):
        self.responses: dict = responses or {}
        self._label = label
        self.calls: list[list[str]] = []  # record of all commands run
        self.executed: list[list[str]] = []  # state-changing commands only

    @property
    def label(self) -> str:
        return self._label

    def _lookup(self, cmd: list[str]):
        self.calls.append(cmd)
        key = tuple(cmd)
        if key not in self.responses:
            raise KeyError(f"MockExecutor: unexpected command: {cmd}")
        return self.responses[key]

    def run(self, cmd: list[str]) -> str:
        result = self._lookup(cmd)
        if isinstance(result, Exception):
            raise result
        return result

    def execute(self, cmd: list[str]) -> tuple[bool, str]:
        self.executed.append(cmd)
        result = self._lookup(cmd)
        if isinstance(result, tuple):
            return result
        return True, result


def missing(cmd: tuple) -> ExecutorError:
    return ExecutorError(list(cmd), 1, "Error: Not Found")


# ---------------------------------------------------------------------------
# Command output as printed by `lxc ... --format csv` and `lxc info`
# ---------------------------------------------------------------------------

REMOTE_LIST = (
    "images,https://images.linuxcontainers.org,simplestreams,none,YES,NO,NO\n"
    "local (current),unix://,lxd,file access,NO,YES,NO\n"
    "hv1,https://10.0.0.11:8443,lxd,tls,NO,NO,NO\n"
    "hv2,https://10.0.0.12:8443,lxd,tls,NO,NO,NO\n"
    "ubuntu,https://cloud-images.ubuntu.com/releases,simplestreams,none,YES,YES,NO\n"
)

STORAGE_LIST = "default,,zfs,tank/lxd,12,CREATED\nfast,,dir,/srv/lxd,0,CREATED\n"

INFO_WITH_SNAPSHOT = """\
Name: web1
Status: RUNNING
Type: container
Architecture: x86_64
Created: 2024/03/02 10:11 UTC

Resources:
  Processes: 42

Snapshots:
+--------+----------------------+------------+----------+
|  NAME  |       TAKEN AT       | EXPIRES AT | STATEFUL |
+--------+----------------------+------------+----------+
| daily0 | 2024/05/01 02:00 UTC |            | NO       |
+--------+----------------------+------------+----------+
| backup | 2024/05/02 03:00 UTC |            | NO       |
+--------+----------------------+------------+----------+
"""

INFO_NO_SNAPSHOT = """\
Name: web1
Status: RUNNING
Type: container
Architecture: x86_64
Created: 2024/03/02 10:11 UTC

Resources:
  Processes: 42
"""

INFO_LEGACY_SNAPSHOT = """\
Name: web1
Remote: https://10.0.0.11:8443
Architecture: x86_64
Status: Running
Snapshots:
  daily0 (taken at 2019/05/01 02:00 UTC) (stateless)
  backup (taken at 2019/05/02 03:00 UTC) (stateless)
"""

LOCAL_INFO = "Name: web1-backup\nStatus: STOPPED\nType: container\n"


def instance_responses(
    remote: str,
    name: str,
    *,
    snapshot_present: bool = False,
    local_copy_present: bool = False,
    snapshot_name: str = "backup",
    pool: str = "default",
    create: tuple | str = "",
    copy: tuple | str = "",
    delete: tuple | str = "",
) -> dict:
    """
    Return the responses a full create -> copy -> delete cycle needs.

    With snapshot_present set, a stale snapshot is deleted before the new
    one is taken. The snapshot is always deleted after the copy.
    """
    ref = f"{remote}:{name}"
    snap = f"{ref}/{snapshot_name}"
    dest = f"local:{name}-backup"
    responses = {
        ("lxc", "info", ref): INFO_WITH_SNAPSHOT if snapshot_present else INFO_NO_SNAPSHOT,
        ("lxc", "snapshot", ref, snapshot_name): create,
        ("lxc", "info", dest): LOCAL_INFO if local_copy_present else missing(("lxc", "info", dest)),
        ("lxc", "copy", snap, dest, "--stateless", "--storage", pool,
         "--config", "boot.autostart=false"): copy,
        ("lxc", "delete", snap): delete,
    }
    if local_copy_present:
        responses[("lxc", "delete", "--force", dest)] = ""
    return responses


@pytest.fixture
def config():
    return JobConfig()
