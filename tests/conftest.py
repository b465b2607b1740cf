"""Shared fixtures: a scripted stand-in for the borg binary"""

import json
import os
import subprocess
import time

import pytest

from borg_exporter import borg_api

LOCKED_STDERR = b"Failed to create/acquire the lock /data/backups/myrepo/lock.exclusive (timeout).\n"


def borg_info_json(last_modified="2023-05-01T10:15:30.123456", **stats):
    values = {
        "total_chunks": 1200,
        "total_csize": 500000,
        "total_size": 900000,
        "total_unique_chunks": 800,
        "unique_csize": 300000,
        "unique_size": 600000,
    }
    values.update(stats)
    return json.dumps(
        {
            "cache": {"path": "/root/.cache/borg/abc", "stats": values},
            "encryption": {"mode": "repokey"},
            "repository": {
                "id": "abc123",
                "last_modified": last_modified,
                "location": "/data/backups/myrepo",
            },
            "security_dir": "/root/.config/borg/security/abc123",
        }
    ).encode()


class FakeBorg:
    """Replays queued (returncode, stdout, stderr) results per repository path"""

    def __init__(self):
        self.results = {}
        self.calls = []

    def add(self, repository, returncode=0, stdout=b"", stderr=b""):
        self.results.setdefault(str(repository), []).append((returncode, stdout, stderr))

    def succeed(self, repository, **kwargs):
        self.add(repository, stdout=borg_info_json(**kwargs))

    def lock(self, repository):
        self.add(repository, returncode=2, stderr=LOCKED_STDERR)

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        queue = self.results.get(args[-1])
        if not queue:
            raise AssertionError(f"unexpected borg call: {args}")
        returncode, stdout, stderr = queue.pop(0)
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_borg(monkeypatch):
    borg = FakeBorg()
    monkeypatch.setattr(borg_api.subprocess, "run", borg)
    return borg


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy(sleeps):
    return borg_api.RetryPolicy(sleep=sleeps.append)


@pytest.fixture
def local_tz():
    """Switch the process timezone for the duration of a test"""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    original = os.environ.get("TZ")

    def _set(value):
        os.environ["TZ"] = value
        time.tzset()

    yield _set

    if original is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = original
    time.tzset()
