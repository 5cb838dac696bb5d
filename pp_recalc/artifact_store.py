from __future__ import annotations

"""
On-disk beatmap cache.

A beatmap file is assumed immutable once written: if `<root>/<id>.osu`
exists it is returned as-is, without any network access or checksum check.
Misses are downloaded from the beatmap origin and written atomically
(temp file in the same directory, then os.replace), so readers never see
a partially written file even when two downloads of the same id race.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

from .beatmap_format import beatmap_problem
from .config import BEATMAP_FILE_EXT, HTTP_MAX_ARTIFACT_BYTES
from .errors import FilesystemFailure, UpstreamMalformed, UpstreamUnavailable
from .http_client import build_http_client


def _atomic_write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class ArtifactStore:
    def __init__(
        self,
        root: Path,
        origin: str,
        http_client: Optional[httpx.Client] = None,
        ext: str = BEATMAP_FILE_EXT,
        max_bytes: int = HTTP_MAX_ARTIFACT_BYTES,
    ) -> None:
        self.root = Path(root)
        self.origin = origin.rstrip("/")
        self.ext = ext
        self.max_bytes = max_bytes
        self._client = http_client or build_http_client()

    def path_for(self, beatmap_id: int) -> Path:
        return self.root / f"{int(beatmap_id)}.{self.ext}"

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemFailure(f"Cannot create beatmap cache at {self.root}: {e}") from e

    def _download(self, beatmap_id: int) -> bytes:
        url = f"{self.origin}/{int(beatmap_id)}"
        logger.info("Beatmap {} not cached. Downloading from {}", beatmap_id, url)
        chunks = []
        received = 0
        try:
            with self._client.stream("GET", url) as r:
                if r.status_code >= 400:
                    raise UpstreamUnavailable(f"HTTP {r.status_code} for {url}")
                for chunk in r.iter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise UpstreamMalformed(
                            f"Beatmap too large (over {self.max_bytes} bytes) for {url}"
                        )
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Beatmap download failed for {url}: {e}") from e

        content = b"".join(chunks)
        if not content:
            raise UpstreamMalformed(f"Empty beatmap body for {url}")
        problem = beatmap_problem(content)
        if problem is not None:
            raise UpstreamMalformed(f"Not a beatmap ({problem}) for {url}")
        return content

    def ensure_present(self, beatmap_id: int) -> bytes:
        """
        Return the beatmap bytes, downloading and persisting them on a miss.
        """
        path = self.path_for(beatmap_id)
        if path.exists():
            logger.debug("Beatmap {} found in cache.", beatmap_id)
            try:
                return path.read_bytes()
            except OSError as e:
                raise FilesystemFailure(f"Cannot read cached beatmap {path}: {e}") from e

        content = self._download(beatmap_id)
        try:
            _atomic_write_bytes(path, content)
        except OSError as e:
            raise FilesystemFailure(f"Cannot write beatmap {path}: {e}") from e

        logger.info("Downloaded and cached beatmap {} ({} bytes)", beatmap_id, len(content))
        return content

    def close(self) -> None:
        self._client.close()
