# orchestrator/server_source.py
"""
Server source resolution.

Priority:
  1. server.server_path       - an existing installation, used as is
  2. server.artifact          - "group:artifact:version[:type]" already in
                                the local Maven repository
  3. server.version           - distribution downloaded from Maven Central

Archives are extracted to <tmp>/payara-server-<version>/payara<major> and
only when that directory does not exist yet.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from connectors.errors import ConfigurationError, NetworkError

logger = logging.getLogger("serverpilot.server_source")

SERVER_GROUP_ID = "fish.payara.distributions"
SERVER_ARTIFACT_ID = "payara"
DEFAULT_VERSION = "6.2025.6"
MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2"
DOWNLOAD_TIMEOUT = (10, 300)
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ArtifactCoordinate:
    group_id: str
    artifact_id: str
    version: str
    packaging: str = "zip"

    @classmethod
    def parse(cls, value: str) -> "ArtifactCoordinate":
        parts = [p.strip() for p in (value or "").split(":")]
        if len(parts) not in (3, 4) or not all(parts):
            raise ConfigurationError(
                f"Invalid artifact coordinate '{value}'. Expected group:artifact:version[:type]"
            )
        return cls(*parts)

    @property
    def file_name(self) -> str:
        return f"{self.artifact_id}-{self.version}.{self.packaging}"

    @property
    def relative_path(self) -> str:
        return "/".join(self.group_id.split(".") + [self.artifact_id, self.version, self.file_name])


def default_local_repository() -> Path:
    return Path(os.path.expanduser("~")) / ".m2" / "repository"


def extraction_dir(version: str, tmp_dir: Optional[str] = None) -> Path:
    """<tmp>/payara-server-<version>"""
    return Path(tmp_dir or tempfile.gettempdir()) / f"payara-server-{version}"


def install_dir(version: str, tmp_dir: Optional[str] = None) -> Path:
    """<tmp>/payara-server-<version>/payara<major>"""
    return extraction_dir(version, tmp_dir) / f"payara{version[0]}"


def resolve_server_source(
    server_config: dict,
    tmp_dir: Optional[str] = None,
    local_repository: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Return the absolute path of the server installation to run.

    Raises:
        ConfigurationError: nothing resolvable is configured, or the
            configured source cannot be used
    """
    server_path = server_config.get("server_path")
    if server_path:
        path = Path(server_path).expanduser()
        if not path.is_dir():
            raise ConfigurationError(f"Server path {path} does not exist")
        return str(path.resolve())

    repository = Path(local_repository) if local_repository else default_local_repository()

    artifact = server_config.get("artifact")
    if artifact:
        coordinate = ArtifactCoordinate.parse(artifact)
        archive = repository / coordinate.relative_path
        if not archive.is_file():
            raise ConfigurationError(f"Artifact {artifact} not found in local repository {repository}")
        return str(ensure_extracted(archive, coordinate.version, tmp_dir))

    version = server_config.get("version")
    if version:
        coordinate = ArtifactCoordinate(SERVER_GROUP_ID, SERVER_ARTIFACT_ID, str(version))
        target = install_dir(coordinate.version, tmp_dir)
        if target.is_dir():
            return str(target)
        archive = repository / coordinate.relative_path
        if not archive.is_file():
            archive = download_distribution(coordinate, extraction_dir(coordinate.version, tmp_dir), session)
        return str(ensure_extracted(archive, coordinate.version, tmp_dir))

    raise ConfigurationError(
        "Could not determine the server path. Set server.server_path, server.artifact or server.version."
    )


def download_distribution(
    coordinate: ArtifactCoordinate,
    target_dir: Path,
    session: Optional[requests.Session] = None,
) -> Path:
    """Fetch the distribution archive from Maven Central into target_dir (once)."""
    target_dir.mkdir(parents=True, exist_ok=True)
    archive = target_dir / coordinate.file_name
    if archive.is_file():
        return archive

    url = f"{MAVEN_CENTRAL_URL}/{coordinate.relative_path}"
    http = session or requests.Session()
    partial = archive.with_suffix(archive.suffix + ".part")
    logger.info("Downloading %s", url)
    try:
        with http.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            if response.status_code == 404:
                raise ConfigurationError(f"Server version {coordinate.version} not found at {url}")
            response.raise_for_status()
            with open(partial, "wb") as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
        os.replace(partial, archive)
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Failed to download {url}: {e}") from e
    finally:
        if partial.exists():
            partial.unlink()
        if session is None:
            http.close()
    return archive


def ensure_extracted(archive: Path, version: str, tmp_dir: Optional[str] = None) -> Path:
    """Extract archive unless <tmp>/payara-server-<version>/payara<major> exists."""
    target = install_dir(version, tmp_dir)
    if target.is_dir():
        logger.debug("Using previously extracted server at %s", target)
        return target

    destination = extraction_dir(version, tmp_dir)
    logger.info("Extracting the server to %s", destination)
    try:
        extract_zip(archive, destination)
    except (OSError, zipfile.BadZipFile) as e:
        raise ConfigurationError(f"Failed to extract server archive {archive}: {e}") from e

    if not target.is_dir():
        raise ConfigurationError(f"Archive {archive} does not contain payara{version[0]}/")
    return target


def extract_zip(archive: Path, destination: Path) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = (destination / info.filename).resolve()
            if root != target and root not in target.parents:
                raise ConfigurationError(f"Refusing to extract {info.filename} outside {destination}")
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            mode = (info.external_attr >> 16) & 0o777
            if mode:
                os.chmod(target, mode)
