"""Sample database acquisition.

Produces the uncompressed SQL dump the import step streams into MariaDB,
trying three sources in order:

1. ``existing`` — the dump file is already in the project directory.
2. ``archive``  — a compressed archive is present; it is decompressed.
3. ``download`` — the archive is fetched from the upstream URL, then
   decompressed.

The upstream artifact is named ``sample_db.zip`` but its content is gzip.
The archive format is therefore detected from its first bytes rather than
from the extension: gzip content is gunzipped, a genuine PKZIP archive has
its first ``.sql`` member extracted.

Decompression writes to a temporary sibling file and renames it into place,
so an interrupted or failed extraction never leaves a truncated dump behind
that a later run would pick up as tier 1.

Tags:
    sample-data, download, gzip, zip, httpx
"""

from __future__ import annotations

import gzip
import shutil
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import httpx

from oeinstall.core.errors import DownloadError, SampleDataError
from oeinstall.core.logging import get_logger
from oeinstall.deploy.config import InstallConfig

logger = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
ZIP_MAGIC = b"PK\x03\x04"

Tier = Literal["existing", "archive", "download"]


@dataclass(frozen=True)
class AcquiredDump:
    """Location of the dump and which source produced it."""

    path: Path
    tier: Tier


def detect_archive_format(path: Path) -> Literal["gzip", "zip"] | None:
    """Sniff *path*'s magic bytes."""
    with open(path, "rb") as fh:
        head = fh.read(4)
    if head.startswith(GZIP_MAGIC):
        return "gzip"
    if head.startswith(ZIP_MAGIC):
        return "zip"
    return None


def decompress_archive(src: Path, dest: Path) -> Path:
    """Decompress *src* (gzip or zip) into *dest*.

    Raises ``SampleDataError`` when the archive is in neither format, is
    corrupt, or (zip) holds no ``.sql`` member.
    """
    fmt = detect_archive_format(src)
    if fmt is None:
        raise SampleDataError(
            f"{src.name} is neither a gzip nor a zip archive"
        ).with_context(path=str(src))

    tmp = dest.with_name(dest.name + ".part")
    try:
        if fmt == "gzip":
            with gzip.open(src, "rb") as fin, open(tmp, "wb") as fout:
                shutil.copyfileobj(fin, fout)
        else:
            with zipfile.ZipFile(src) as zf:
                members = [n for n in zf.namelist() if n.lower().endswith(".sql")]
                if not members:
                    raise SampleDataError(
                        f"{src.name} contains no .sql file"
                    ).with_context(path=str(src))
                with zf.open(members[0]) as fin, open(tmp, "wb") as fout:
                    shutil.copyfileobj(fin, fout)
        tmp.replace(dest)
    except (OSError, EOFError, zipfile.BadZipFile, zlib.error) as exc:
        raise SampleDataError(
            f"Could not extract {src.name}: {exc}", cause=exc
        ).with_context(path=str(src)) from exc
    finally:
        tmp.unlink(missing_ok=True)

    logger.info("sample_data.extracted", src=str(src), dest=str(dest), format=fmt)
    return dest


def download(
    url: str,
    dest: Path,
    client: httpx.Client | None = None,
    timeout: float = 300.0,
) -> Path:
    """Stream *url* to *dest*, following redirects."""
    own_client = client is None
    client = client or httpx.Client(follow_redirects=True, timeout=timeout)
    tmp = dest.with_name(dest.name + ".part")
    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()
            with open(tmp, "wb") as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)
        tmp.replace(dest)
    except httpx.HTTPStatusError as exc:
        raise DownloadError(
            f"Download failed with HTTP {exc.response.status_code}: {url}", cause=exc
        ).with_context(url=url, http_status=exc.response.status_code) from exc
    except httpx.HTTPError as exc:
        raise DownloadError(f"Download failed: {exc}", cause=exc).with_context(url=url) from exc
    finally:
        tmp.unlink(missing_ok=True)
        if own_client:
            client.close()

    logger.info("sample_data.downloaded", url=url, dest=str(dest), bytes=dest.stat().st_size)
    return dest


class SampleDataSource:
    """Resolves the sample dump using the three-tier fallback.

    Parameters
    ----------
    config
        Install configuration (file names, download URL, timeout).
    client
        Optional ``httpx.Client`` used for the download tier.
    """

    def __init__(self, config: InstallConfig, client: httpx.Client | None = None) -> None:
        self.config = config
        self.client = client

    def acquire(self) -> AcquiredDump:
        sql_path = self.config.sql_path
        archive_path = self.config.archive_path

        if sql_path.is_file():
            logger.info("sample_data.found", path=str(sql_path))
            return AcquiredDump(sql_path, "existing")

        if archive_path.is_file():
            logger.info("sample_data.archive_found", path=str(archive_path))
            self._extract(archive_path, sql_path)
            return AcquiredDump(sql_path, "archive")

        logger.info("sample_data.downloading", url=self.config.download_url)
        download(
            self.config.download_url,
            archive_path,
            client=self.client,
            timeout=self.config.download_timeout,
        )
        self._extract(archive_path, sql_path)
        return AcquiredDump(sql_path, "download")

    def _extract(self, archive_path: Path, sql_path: Path) -> None:
        decompress_archive(archive_path, sql_path)
        if not sql_path.is_file():
            raise SampleDataError(
                f"Could not create {sql_path.name} from {archive_path.name}"
            ).with_context(path=str(sql_path))
