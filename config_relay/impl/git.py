import logging
import subprocess
import threading
from pathlib import Path
from typing import Any

from config_relay.base import PropertySnapshot, PropertyStore
from config_relay.errors import StoreUnavailable
from config_relay.properties import decode_properties

logger = logging.getLogger(__name__)

_repo_locks: dict[Path, threading.Lock] = {}
_repo_locks_guard = threading.Lock()


def _repo_lock(repo_path: Path) -> threading.Lock:
    """One lock per clone, shared by every store reading from it."""
    with _repo_locks_guard:
        return _repo_locks.setdefault(repo_path, threading.Lock())



def _run_git_bytes(cwd: Path, args: list[str], timeout: float | None = None) -> bytes:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            check=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        # Either the git executable or the working directory is missing
        raise StoreUnavailable(f"cannot run git in {cwd}: {e}") from e
    except subprocess.TimeoutExpired as e:
        raise StoreUnavailable(f"git {args[0]} timed out after {timeout}s in {cwd}") from e
    return result.stdout


def _run_git(cwd: Path, args: list[str], timeout: float | None = None) -> str:
    return _run_git_bytes(cwd, args, timeout).decode("utf-8").strip()


def _stderr(e: subprocess.CalledProcessError) -> str:
    if isinstance(e.stderr, bytes):
        return e.stderr.decode("utf-8", errors="replace").strip()
    return (e.stderr or "").strip()


class GitPropertyStore(PropertyStore):
    """
    Reads a properties file from a commit of a git repository.

    The version of a snapshot is the hash of the commit it was read from.
    Only committed content is visible; edits in the working tree are not.
    """

    def __init__(
        self,
        repo_path: str | Path,
        file_name: str = "application.properties",
        ref: str = "HEAD",
        remote_url: str | None = None,
        branch: str = "master",
        timeout: float | None = 10.0,
        strict: bool = False,
    ) -> None:
        self.repo_path = Path(repo_path).absolute()
        self.file_name = file_name
        self.remote_url = remote_url
        self.branch = branch
        self.timeout = timeout
        self.strict = strict
        # Serialises fetch and ref resolution on the shared clone
        self._lock = _repo_lock(self.repo_path)

        if remote_url is not None:
            # Track the remote branch instead of a local ref
            self.ref = f"origin/{branch}"
            if not (self.repo_path / ".git").exists():
                self._clone()
        else:
            self.ref = ref

    def _clone(self) -> None:
        self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Cloning %s into %s", self.remote_url, self.repo_path)
        try:
            _run_git(
                self.repo_path.parent,
                ["clone", "-b", self.branch, str(self.remote_url), self.repo_path.name],
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise StoreUnavailable(
                f"cannot clone {self.remote_url}: {_stderr(e)}"
            ) from e

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("GitPropertyStore(...)")
        else:
            with p.group(4, "GitPropertyStore(", ")"):
                p.breakable()
                p.text(f"path={self.repo_path},")
                p.breakable()
                p.text(f"file={self.file_name},")
                p.breakable()
                p.text(f"ref={self.ref}")

    def _fetch(self) -> None:
        try:
            _run_git(self.repo_path, ["fetch", "origin", self.branch], timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            raise StoreUnavailable(
                f"cannot fetch {self.branch} from {self.remote_url}: {_stderr(e)}"
            ) from e

    def head(self) -> str:
        """Resolve the configured ref to a commit hash."""
        if not self.repo_path.is_dir():
            raise StoreUnavailable(f"repository path {self.repo_path} does not exist")
        try:
            return _run_git(
                self.repo_path,
                ["rev-parse", "--verify", "--quiet", f"{self.ref}^{{commit}}"],
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            # No commits yet, unknown ref, or not a repository at all
            raise StoreUnavailable(
                f"cannot resolve {self.ref} in {self.repo_path}: {_stderr(e) or 'no such commit'}"
            ) from e

    def _resolve(self) -> str:
        with self._lock:
            if self.remote_url is not None:
                self._fetch()
            return self.head()

    def _contains_file(self, commit_hash: str) -> bool:
        try:
            listing = _run_git(
                self.repo_path,
                ["ls-tree", commit_hash, "--", self.file_name],
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise StoreUnavailable(
                f"cannot list {self.file_name} at {commit_hash[:7]}: {_stderr(e)}"
            ) from e
        return bool(listing)

    def read(self) -> PropertySnapshot:
        commit_hash = self._resolve()

        if not self._contains_file(commit_hash):
            logger.debug(
                "%s not present at %s, serving empty properties",
                self.file_name,
                commit_hash[:7],
            )
            return PropertySnapshot({}, version=commit_hash)

        try:
            content = _run_git_bytes(
                self.repo_path,
                ["show", f"{commit_hash}:{self.file_name}"],
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise StoreUnavailable(
                f"cannot read {self.file_name} at {commit_hash[:7]}: {_stderr(e)}"
            ) from e

        properties = decode_properties(
            content, strict=self.strict, source=f"{self.file_name}@{commit_hash[:7]}"
        )
        return PropertySnapshot(properties, version=commit_hash)


def create_git_property_store(
    repo_path: str | Path,
    file_name: str = "application.properties",
    remote_url: str | None = None,
    branch: str = "master",
    timeout: float | None = 10.0,
) -> GitPropertyStore:
    return GitPropertyStore(
        repo_path,
        file_name=file_name,
        remote_url=remote_url,
        branch=branch,
        timeout=timeout,
    )
