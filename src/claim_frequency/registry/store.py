"""
Versioned bundle registry on a Hugging Face Hub repository.

Layout inside the repo:

    {name}/v{N}/model.joblib
    {name}/v{N}/metadata.json   (manifest; a version exists iff this file exists)
    {name}/v{N}/metrics.json    (optional cross-validation summary)

Every version is written by a single commit whose parent is the head the
publisher read, so a version is either fully visible or absent, and two
publishers racing for the same number cannot both win.
"""

from __future__ import annotations

import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path
from time import perf_counter
from typing import Any, Iterator, Mapping, Protocol, Sequence

import httpx
from huggingface_hub import CommitOperationAdd, HfApi
from huggingface_hub.errors import (
    EntryNotFoundError,
    GatedRepoError,
    HfHubHTTPError,
    LocalEntryNotFoundError,
    RepositoryNotFoundError,
    RevisionNotFoundError,
)

from claim_frequency.config import StoreConfig
from claim_frequency.errors import AuthError, NotFound, StoreError, Unavailable
from claim_frequency.modeling.bundle.model_bundle import ModelBundle
from claim_frequency.modeling.bundle.read_bundle import read_metadata
from claim_frequency.modeling.bundle.write_bundle import METADATA_FILE, MODEL_FILE
from claim_frequency.registry.infra import (
    ArtifactVersion,
    check_name,
    make_file_path,
    parse_versions,
)

log = logging.getLogger(__name__)

_CONFLICT_STATUS = (409, 412)


class HubApi(Protocol):
    def repo_info(
        self,
        repo_id: str,
        *,
        repo_type: str | None = None,
        revision: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        ...

    def list_repo_files(self, repo_id: str, *, repo_type: str | None = None, revision: str | None = None) -> list[str]:
        ...

    def create_commit(
        self,
        repo_id: str,
        operations: Sequence[CommitOperationAdd],
        *,
        commit_message: str,
        repo_type: str | None = None,
        revision: str | None = None,
        parent_commit: str | None = None,
    ) -> Any:
        ...

    def hf_hub_download(
        self,
        repo_id: str,
        filename: str,
        *,
        repo_type: str | None = None,
        revision: str | None = None,
        etag_timeout: float = 10,
    ) -> str:
        ...

    def create_repo(self, repo_id: str, *, repo_type: str | None = None, private: bool | None = None, exist_ok: bool = False) -> Any:
        ...


class _HeadMoved(Exception):
    """Another commit landed between reading the head and committing on it."""


def _status(err: BaseException) -> int | None:
    return getattr(getattr(err, "response", None), "status_code", None)


@contextmanager
def _hub_errors(action: str) -> Iterator[None]:
    """Translate huggingface_hub / transport failures into the store taxonomy."""
    try:
        yield
    except GatedRepoError as e:
        raise AuthError(f"{action}: access denied: {e}") from e
    except LocalEntryNotFoundError as e:
        raise Unavailable(f"{action}: hub unreachable: {e}") from e
    except (RepositoryNotFoundError, RevisionNotFoundError, EntryNotFoundError) as e:
        if _status(e) in (401, 403):
            raise AuthError(f"{action}: credential rejected: {e}") from e
        raise NotFound(f"{action}: {e}") from e
    except HfHubHTTPError as e:
        status = _status(e)
        if status in (401, 403):
            raise AuthError(f"{action}: credential rejected (HTTP {status})") from e
        if status == 404:
            raise NotFound(f"{action}: {e}") from e
        if status is None or status >= 500 or status in (408, 429):
            raise Unavailable(f"{action}: hub error (HTTP {status}): {e}") from e
        raise StoreError(f"{action}: hub error (HTTP {status}): {e}") from e
    except (httpx.TransportError, OSError) as e:
        raise Unavailable(f"{action}: {type(e).__name__}: {e}") from e


class ArtifactStore:
    """Publish and retrieve model bundles by name and monotonically increasing version."""

    def __init__(self, config: StoreConfig, *, api: HubApi | None = None) -> None:
        self.config = config
        self._api: HubApi = api if api is not None else HfApi(endpoint=config.endpoint, token=config.credential)

    def _name(self, name: str | None) -> str:
        return check_name(name or self.config.name)

    def ensure_repo(self) -> None:
        """Create the backing repo (private) if it does not exist yet."""
        with _hub_errors(f"create repo {self.config.repo_id}"):
            self._api.create_repo(
                self.config.repo_id,
                repo_type=self.config.repo_type,
                private=True,
                exist_ok=True,
            )

    def _snapshot(self, name: str) -> tuple[str, list[int]]:
        """Head commit and the versions of `name` present at that commit."""
        with _hub_errors(f"list versions of {name!r}"):
            info = self._api.repo_info(
                self.config.repo_id,
                repo_type=self.config.repo_type,
                revision=self.config.revision,
                timeout=self.config.timeout,
            )
            files = self._api.list_repo_files(
                self.config.repo_id,
                repo_type=self.config.repo_type,
                revision=info.sha,
            )
        return info.sha, parse_versions(files, name, manifest=METADATA_FILE)

    def _download(self, path_in_repo: str, *, revision: str) -> Path:
        with _hub_errors(f"download {path_in_repo}"):
            local = self._api.hf_hub_download(
                self.config.repo_id,
                path_in_repo,
                repo_type=self.config.repo_type,
                revision=revision,
                etag_timeout=self.config.timeout,
            )
        return Path(local)

    def _commit(self, operations: list[CommitOperationAdd], *, parent: str, message: str) -> str | None:
        try:
            info = self._api.create_commit(
                self.config.repo_id,
                operations,
                commit_message=message,
                repo_type=self.config.repo_type,
                revision=self.config.revision,
                parent_commit=parent,
            )
        except HfHubHTTPError as e:
            if _status(e) in _CONFLICT_STATUS:
                raise _HeadMoved(str(e)) from e
            raise
        return getattr(info, "oid", None)

    def publish(
        self,
        bundle: ModelBundle,
        *,
        name: str | None = None,
        metrics: Mapping[str, Any] | None = None,
    ) -> ArtifactVersion:
        """Write `bundle` as the next version of `name` in one atomic commit."""
        name = self._name(name)
        t0 = perf_counter()

        with tempfile.TemporaryDirectory(prefix="claim-frequency-") as tmp:
            local_dir = bundle.save(Path(tmp), metrics=metrics)
            files = sorted(p.name for p in local_dir.iterdir() if p.is_file())

            for attempt in range(1, self.config.max_publish_attempts + 1):
                head, existing = self._snapshot(name)
                version = (existing[-1] if existing else 0) + 1

                operations = [
                    CommitOperationAdd(
                        path_in_repo=make_file_path(name, version, fn),
                        path_or_fileobj=str(local_dir / fn),
                    )
                    for fn in files
                ]

                try:
                    with _hub_errors(f"publish {name!r} v{version}"):
                        commit = self._commit(operations, parent=head, message=f"Publish {name} v{version}")
                except _HeadMoved as e:
                    log.warning(
                        "store.publish head moved name=%s version=%d attempt=%d/%d: %s",
                        name, version, attempt, self.config.max_publish_attempts, e,
                    )
                    continue

                log.info(
                    "store.publish name=%s version=%d commit=%s files=%s %dms",
                    name, version, commit, files, int((perf_counter() - t0) * 1000),
                )
                return ArtifactVersion(name=name, version=version, created_at=bundle.created_at, commit=commit)

        raise Unavailable(
            f"publish {name!r}: repository head kept moving after {self.config.max_publish_attempts} attempts"
        )

    def _resolve(self, name: str, version: int | None) -> tuple[str, int]:
        head, existing = self._snapshot(name)
        if not existing:
            raise NotFound(f"No artifact named {name!r} in {self.config.repo_id}")
        if version is None:
            return head, existing[-1]
        if version not in existing:
            raise NotFound(f"Artifact {name!r} has no version {version}; available: {existing}")
        return head, version

    def fetch(self, name: str | None = None, version: int | None = None) -> tuple[ModelBundle, ArtifactVersion]:
        """Download and load one version (the highest when `version` is None)."""
        name = self._name(name)
        t0 = perf_counter()

        head, version = self._resolve(name, version)

        meta_path = self._download(make_file_path(name, version, METADATA_FILE), revision=head)
        model_path = self._download(make_file_path(name, version, MODEL_FILE), revision=head)
        if model_path.parent != meta_path.parent:
            raise StoreError(f"Bundle files for {name!r} v{version} were not downloaded together")

        bundle = ModelBundle.load(meta_path.parent)
        artifact = ArtifactVersion(name=name, version=version, created_at=bundle.created_at, commit=head)

        log.info(
            "store.retrieve name=%s version=%d commit=%s %dms",
            name, version, head, int((perf_counter() - t0) * 1000),
        )
        return bundle, artifact

    def retrieve(self, name: str | None = None, version: int | None = None) -> ModelBundle:
        bundle, _ = self.fetch(name, version)
        return bundle

    def versions(self, name: str | None = None) -> list[ArtifactVersion]:
        name = self._name(name)
        head, existing = self._snapshot(name)

        out: list[ArtifactVersion] = []
        for v in existing:
            meta = read_metadata(self._download(make_file_path(name, v, METADATA_FILE), revision=head).parent)
            out.append(ArtifactVersion(name=name, version=v, created_at=meta.get("created_at_utc", ""), commit=head))
        return out
