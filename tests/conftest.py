"""Pytest fixtures for claim_frequency tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest
from huggingface_hub.errors import EntryNotFoundError, HfHubHTTPError, RevisionNotFoundError

from claim_frequency.config import StoreConfig
from claim_frequency.modeling.fit import fit_bundle
from claim_frequency.modeling.trainers.poisson_trainer import PoissonTrainer
from claim_frequency.registry.store import ArtifactStore

AREAS = ["A", "B", "C", "D", "E", "F"]
AREA_P = [0.16, 0.12, 0.30, 0.22, 0.18, 0.02]

BRANDS = ["B1", "B2", "B12", "B3", "B5", "B6", "B4", "B10", "B11", "B13", "B14"]
BRAND_P = [0.27, 0.24, 0.15, 0.08, 0.06, 0.06, 0.05, 0.03, 0.02, 0.02, 0.02]

REGIONS = ["R24", "R82", "R93", "R11", "R53", "R52", "R91", "R72", "R31", "R54", "R73", "R42"]
REGION_P = [0.24, 0.13, 0.12, 0.10, 0.10, 0.08, 0.07, 0.06, 0.04, 0.03, 0.02, 0.01]


def make_policies(n: int, seed: int = 0) -> pd.DataFrame:
    """Synthetic motor policies shaped like freMTPL2freq after preparation."""
    rng = np.random.default_rng(seed)

    area = rng.choice(AREAS, size=n, p=AREA_P)
    vehicle_power = rng.integers(4, 16, size=n)
    bonus_malus = rng.integers(50, 150, size=n)
    vehicle_gas = rng.choice(["Regular", "Diesel"], size=n)
    exposure = rng.uniform(0.05, 1.0, size=n)

    eta = (
        -2.2
        + 0.25 * np.isin(area, ["E", "F"])
        + 0.04 * (vehicle_power - 6)
        + 0.012 * (bonus_malus - 100)
        + 0.1 * (vehicle_gas == "Diesel")
    )
    claims = np.minimum(rng.poisson(np.exp(eta) * exposure), 4)

    return pd.DataFrame({
        "policy_id": np.arange(1, n + 1),
        "claim_count": claims.astype(int),
        "exposure": exposure,
        "area": area,
        "vehicle_power": vehicle_power,
        "vehicle_age": rng.integers(0, 20, size=n),
        "driver_age": rng.integers(18, 90, size=n),
        "bonus_malus": bonus_malus,
        "vehicle_brand": rng.choice(BRANDS, size=n, p=BRAND_P),
        "vehicle_gas": vehicle_gas,
        "density": rng.integers(1, 5000, size=n),
        "region": rng.choice(REGIONS, size=n, p=REGION_P),
    })


@pytest.fixture(scope="session")
def policies() -> pd.DataFrame:
    return make_policies(4000, seed=7)


@pytest.fixture(scope="session")
def large_policies() -> pd.DataFrame:
    return make_policies(100_000, seed=11)


@pytest.fixture(scope="session")
def trainer() -> PoissonTrainer:
    return PoissonTrainer()


@pytest.fixture(scope="session")
def bundle(policies, trainer):
    return fit_bundle(policies, trainer=trainer)


@pytest.fixture(scope="session")
def small_trainer() -> PoissonTrainer:
    return PoissonTrainer(categorical=["area"], numeric=["vehicle_power"])


@pytest.fixture(scope="session")
def small_bundle(policies, small_trainer):
    return fit_bundle(policies, trainer=small_trainer)


@pytest.fixture
def sample_rows(policies) -> list[dict]:
    cols = ["area", "vehicle_brand", "vehicle_gas", "region", "vehicle_power",
            "vehicle_age", "driver_age", "bonus_malus", "density", "exposure"]
    return policies[cols].head(25).to_dict(orient="records")


def http_error(status: int, message: str = "hub error") -> HfHubHTTPError:
    return HfHubHTTPError(message, response=MagicMock(status_code=status, headers={}))


class FakeHub:
    """In-memory stand-in for the HfApi calls the artifact store makes.

    Each commit is a full snapshot keyed by a sha; `create_commit` enforces
    `parent_commit` the way the Hub does.
    """

    def __init__(self, root: Path):
        self.root = root
        self.commits: list[tuple[str, dict[str, bytes]]] = [("sha0", {".gitattributes": b""})]
        self.fail_with: BaseException | None = None
        self.fail_commit_with: BaseException | None = None
        self.before_commit: list[Callable[[], None]] = []
        self.always_move_head = False
        self.calls: dict[str, int] = {}

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.fail_with is not None:
            raise self.fail_with

    @property
    def head(self) -> str:
        return self.commits[-1][0]

    def _files(self, revision: str | None) -> dict[str, bytes]:
        if revision in (None, "main"):
            return self.commits[-1][1]
        for sha, files in self.commits:
            if sha == revision:
                return files
        raise RevisionNotFoundError(f"Revision {revision} not found")

    def _apply(self, new_files: dict[str, bytes]) -> str:
        files = dict(self.commits[-1][1])
        files.update(new_files)
        sha = f"sha{len(self.commits)}"
        self.commits.append((sha, files))
        return sha

    def repo_info(self, repo_id, *, repo_type=None, revision=None, timeout=None):
        self._count("repo_info")
        return SimpleNamespace(sha=self.head)

    def list_repo_files(self, repo_id, *, repo_type=None, revision=None):
        self._count("list_repo_files")
        return sorted(self._files(revision))

    def create_commit(self, repo_id, operations, *, commit_message, repo_type=None, revision=None, parent_commit=None):
        self._count("create_commit")
        if self.fail_commit_with is not None:
            raise self.fail_commit_with
        while self.before_commit:
            self.before_commit.pop(0)()
        if self.always_move_head:
            self._apply({"README.md": f"touched {len(self.commits)}".encode()})

        if parent_commit is not None and parent_commit != self.head:
            raise http_error(412, "A commit has happened since. Please refresh and try again.")

        new_files = {}
        for op in operations:
            new_files[op.path_in_repo] = Path(op.path_or_fileobj).read_bytes()
        return SimpleNamespace(oid=self._apply(new_files))

    def hf_hub_download(self, repo_id, filename, *, repo_type=None, revision=None, etag_timeout=10):
        self._count("hf_hub_download")
        files = self._files(revision)
        if filename not in files:
            raise EntryNotFoundError(f"{filename} not found at {revision}")
        sha = revision if revision not in (None, "main") else self.head
        path = self.root / sha / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(files[filename])
        return str(path)

    def create_repo(self, repo_id, *, repo_type=None, private=None, exist_ok=False):
        self._count("create_repo")
        return SimpleNamespace(repo_id=repo_id)


@pytest.fixture
def store_config() -> StoreConfig:
    return StoreConfig(
        endpoint="https://hub.invalid",
        credential="test-token",
        name="claim_frequency_glm",
        repo_id="acme/registry",
    )


@pytest.fixture
def hub(tmp_path: Path) -> FakeHub:
    return FakeHub(tmp_path / "hub-cache")


@pytest.fixture
def store(store_config, hub) -> ArtifactStore:
    return ArtifactStore(store_config, api=hub)
