"""
Local artifact store — content-addressed uploads under ``.shipwright/artifacts``.

Every uploaded blob is stored under its sha256 digest, so uploading the
same content twice is a no-op and a reference only changes when the
content does. The upload steps below turn a workload's declared files
into references on an UploadArtifactsOutput.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path

from shipwright.adapters.base import ArtifactStep
from shipwright.core.engine.artifacts import UploadArtifactsOutput
from shipwright.core.errors import NotFoundError
from shipwright.core.models.workspace import Workload

logger = logging.getLogger(__name__)

ARTIFACTS_DIR = "artifacts"
URL_SCHEME = "local://"


class ArtifactStore:
    def __init__(self, state_dir: Path):
        self._dir = state_dir / ARTIFACTS_DIR

    def put(self, data: bytes) -> str:
        """Store ``data`` and return its URL."""
        digest = hashlib.sha256(data).hexdigest()
        path = self._dir / digest
        if not path.is_file():
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=".blob_", suffix=".tmp")
            os.close(fd)
            tmp = Path(tmp_path)
            try:
                tmp.write_bytes(data)
                tmp.replace(path)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise
            logger.debug("Stored %d bytes as %s", len(data), digest)
        return f"{URL_SCHEME}{ARTIFACTS_DIR}/{digest}"

    def put_file(self, path: Path) -> str:
        if not path.is_file():
            raise NotFoundError(f"file {path} not found")
        return self.put(path.read_bytes())

    def get(self, url: str) -> bytes:
        digest = url.rsplit("/", 1)[-1]
        path = self._dir / digest
        if not path.is_file():
            raise NotFoundError(f"artifact {url} not found")
        return path.read_bytes()


def _tree_digest(root: Path) -> str:
    """sha256 over every file under ``root``: relative path, then content."""
    h = hashlib.sha256()
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        h.update(path.relative_to(root).as_posix().encode("utf-8"))
        h.update(b"\0")
        h.update(path.read_bytes())
    return h.hexdigest()


# ── Steps ───────────────────────────────────────────────────────


class ImageStep(ArtifactStep):
    """Pins the workload's container image to a digest."""

    def __init__(self, workload: Workload, root: Path):
        self._workload = workload
        self._root = root

    def upload(self, out: UploadArtifactsOutput) -> None:
        image = self._workload.image
        if image.location:
            # Prebuilt images are referenced as given.
            out.image_digests[self._workload.name] = image.location
            return
        if not image.build:
            return
        dockerfile = self._root / image.build
        if not dockerfile.is_file():
            raise NotFoundError(f"Dockerfile {image.build} not found")
        context = self._root / image.context if image.context else dockerfile.parent
        if not context.is_dir():
            raise NotFoundError(f"build context {context} not found")
        # The Dockerfile may live outside its context; hash it separately.
        h = hashlib.sha256(dockerfile.read_bytes())
        h.update(_tree_digest(context).encode("ascii"))
        out.image_digests[self._workload.name] = f"sha256:{h.hexdigest()}"


class EnvFileStep(ArtifactStep):
    def __init__(self, workload: Workload, root: Path, store: ArtifactStore):
        self._workload = workload
        self._root = root
        self._store = store

    def upload(self, out: UploadArtifactsOutput) -> None:
        if self._workload.env_file:
            out.env_file_arns[self._workload.name] = self._store.put_file(self._root / self._workload.env_file)


class AddonsStep(ArtifactStep):
    def __init__(self, workload: Workload, root: Path, store: ArtifactStore):
        self._workload = workload
        self._root = root
        self._store = store

    def upload(self, out: UploadArtifactsOutput) -> None:
        if self._workload.addons:
            out.addons_url = self._store.put_file(self._root / self._workload.addons)


class StaticAssetsStep(ArtifactStep):
    """Uploads each static file, then a mapping of path → URL."""

    def __init__(self, workload: Workload, root: Path, store: ArtifactStore):
        self._workload = workload
        self._root = root
        self._store = store

    def upload(self, out: UploadArtifactsOutput) -> None:
        if not self._workload.static_assets:
            return
        assets = self._root / self._workload.static_assets
        if not assets.is_dir():
            raise NotFoundError(f"static assets directory {self._workload.static_assets} not found")
        mapping = {
            path.relative_to(assets).as_posix(): self._store.put_file(path)
            for path in sorted(p for p in assets.rglob("*") if p.is_file())
        }
        out.static_asset_mapping_url = self._store.put(json.dumps(mapping, sort_keys=True).encode("utf-8"))


def workload_steps(workload: Workload, root: Path, store: ArtifactStore) -> list[ArtifactStep]:
    """Upload steps for a workload, in the order they run."""
    return [
        ImageStep(workload, root),
        EnvFileStep(workload, root, store),
        StaticAssetsStep(workload, root, store),
        AddonsStep(workload, root, store),
    ]
