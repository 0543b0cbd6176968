import subprocess
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config_relay.base import PropertyStore
from config_relay.impl.git import GitPropertyStore
from config_relay.impl.memory import MemoryPropertyStore
from config_relay.impl.sql import Base, SqlPropertyStore
from config_relay.properties import parse_properties

GIT_IDENTITY = ["-c", "user.name=Test", "-c", "user.email=test@test"]


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *GIT_IDENTITY, *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def init_repo(path: Path, bare: bool = False) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    args = ["init", "--initial-branch=master"]
    if bare:
        args.append("--bare")
    git(path, *args)
    return path


def commit_file(repo: Path, text: str, file_name: str = "application.properties") -> str:
    (repo / file_name).write_text(text)
    git(repo, "add", file_name)
    git(repo, "commit", "-m", f"Update {file_name}")
    return git(repo, "rev-parse", "HEAD")


class StoreProvider:
    """Creates a store and commits new property text to it."""

    def create(self, path: Path) -> PropertyStore:
        raise NotImplementedError()

    def commit(self, text: str) -> str:
        raise NotImplementedError()

    def cleanup(self) -> None:
        pass


class MemoryStoreProvider(StoreProvider):
    def create(self, path: Path) -> PropertyStore:
        self.store = MemoryPropertyStore()
        return self.store

    def commit(self, text: str) -> str:
        return self.store.commit(text)


class GitStoreProvider(StoreProvider):
    def create(self, path: Path) -> PropertyStore:
        self.repo = init_repo(path / "config-repo")
        return GitPropertyStore(self.repo)

    def commit(self, text: str) -> str:
        return commit_file(self.repo, text)


class SqlStoreProvider(StoreProvider):
    def create(self, path: Path) -> PropertyStore:
        self.engine = create_engine(f"sqlite:///{path / 'config.db'}")
        Base.metadata.create_all(self.engine)
        self.store = SqlPropertyStore(sessionmaker(bind=self.engine))
        return self.store

    def commit(self, text: str) -> str:
        return self.store.commit(parse_properties(text))

    def cleanup(self) -> None:
        self.engine.dispose()


PROVIDERS = {
    "memory": MemoryStoreProvider,
    "git": GitStoreProvider,
    "sql": SqlStoreProvider,
}


@pytest.fixture(params=list(PROVIDERS), ids=list(PROVIDERS))
def store_provider(request, tmp_path):
    provider = PROVIDERS[request.param]()
    yield provider
    provider.cleanup()


@pytest.fixture
def config_repo(tmp_path) -> Path:
    repo = init_repo(tmp_path / "config-repo")
    commit_file(repo, "foo.bar=Hi!\n")
    return repo
