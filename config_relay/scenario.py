"""
Scripted walkthrough of a hot configuration reload.

A git repository holds ``application.properties`` with ``foo.bar=Hi!``. A
client bootstraps from the config server and binds ``foo.bar``. After a new
commit changes the value the client keeps serving the old one until it is
refreshed explicitly.
"""

import subprocess
from pathlib import Path
from typing import Callable

from config_relay.client import ConfigClient, LocalFetcher
from config_relay.impl.git import GitPropertyStore
from config_relay.server import ConfigServer

APPLICATION = "example-service"
FILE_NAME = "application.properties"


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(
        [
            "git",
            "-c",
            "user.name=config-relay demo",
            "-c",
            "user.email=demo@config-relay.invalid",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


def commit_properties(repo_path: Path, text: str, message: str) -> None:
    (repo_path / FILE_NAME).write_text(text)
    _git(repo_path, "add", FILE_NAME)
    _git(repo_path, "commit", "-m", message)


def run_scenario(workdir: str | Path, out: Callable[[str], None] = print) -> list[str]:
    repo_path = Path(workdir).absolute() / "config-repo"
    repo_path.mkdir(parents=True, exist_ok=False)

    def step(num: int, title: str) -> None:
        out(f"\n=== Step {num}: {title} ===")

    step(1, "Create the configuration repository")
    _git(repo_path, "init", "--initial-branch=master")
    commit_properties(repo_path, "foo.bar=Hi!\n", "Initial config")
    out(f"[INFO] {repo_path / FILE_NAME}: foo.bar=Hi!")

    step(2, "Start the config server")
    server = ConfigServer({APPLICATION: GitPropertyStore(repo_path, file_name=FILE_NAME)})
    out(f"[INFO] serving applications: {server.applications()}")

    step(3, "Bootstrap the client and bind foo.bar")
    client = ConfigClient(LocalFetcher(server, APPLICATION))
    snapshot = client.bootstrap()
    binding = client.bind("foo.bar")
    out(f"[INFO] version {snapshot.version[:7]}, foo.bar = {binding.resolve()}")

    step(4, "Commit a new value")
    commit_properties(repo_path, "foo.bar=Change!\n", "Change foo.bar")
    latest = server.get_snapshot(APPLICATION)
    out(f"[INFO] server now serves version {latest.version[:7]}: {latest.to_dict()}")
    out(f"[INFO] client still serves foo.bar = {binding.resolve()}")

    step(5, "Refresh the client")
    changed = client.refresh()
    out(f"[INFO] changed keys: {changed}")
    out(f"[INFO] client now serves foo.bar = {binding.resolve()}")

    step(6, "Refresh again without changes")
    out(f"[INFO] changed keys: {client.refresh()}")

    return changed
