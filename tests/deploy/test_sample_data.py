"""Tests for oeinstall.deploy.sample_data: the three-tier dump fallback."""

from __future__ import annotations

import gzip
import zipfile

import httpx
import pytest

from oeinstall.core.errors import DownloadError, ErrorCategory, SampleDataError
from oeinstall.deploy.sample_data import (
    SampleDataSource,
    decompress_archive,
    detect_archive_format,
    download,
)


class TestDetectArchiveFormat:
    def test_gzip(self, tmp_path, sample_sql):
        path = tmp_path / "sample_db.zip"
        path.write_bytes(gzip.compress(sample_sql))
        assert detect_archive_format(path) == "gzip"

    def test_zip(self, tmp_path, sample_sql):
        path = tmp_path / "sample_db.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("sample_db.sql", sample_sql)
        assert detect_archive_format(path) == "zip"

    def test_unknown(self, tmp_path):
        path = tmp_path / "sample_db.zip"
        path.write_bytes(b"<html>Not Found</html>")
        assert detect_archive_format(path) is None


class TestDecompressArchive:
    def test_gzip_content_with_zip_name(self, gzip_archive, project_dir, sample_sql):
        dest = decompress_archive(gzip_archive, project_dir / "sample_db.sql")
        assert dest.read_bytes() == sample_sql
        assert not (project_dir / "sample_db.sql.part").exists()

    def test_real_zip_extracts_first_sql_member(self, tmp_path, sample_sql):
        archive = tmp_path / "sample_db.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("README.txt", "docs")
            zf.writestr("sql/sample_db.sql", sample_sql)
        dest = decompress_archive(archive, tmp_path / "sample_db.sql")
        assert dest.read_bytes() == sample_sql

    def test_zip_without_sql_member(self, tmp_path):
        archive = tmp_path / "sample_db.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("README.txt", "docs")
        with pytest.raises(SampleDataError, match="no .sql file"):
            decompress_archive(archive, tmp_path / "sample_db.sql")
        assert not (tmp_path / "sample_db.sql").exists()

    def test_unknown_format(self, tmp_path):
        archive = tmp_path / "sample_db.zip"
        archive.write_bytes(b"plain text")
        with pytest.raises(SampleDataError, match="neither a gzip nor a zip"):
            decompress_archive(archive, tmp_path / "sample_db.sql")

    def test_truncated_gzip_leaves_no_dump(self, tmp_path, sample_sql):
        archive = tmp_path / "sample_db.zip"
        data = gzip.compress(sample_sql * 100)
        archive.write_bytes(data[: len(data) // 2])
        dest = tmp_path / "sample_db.sql"
        with pytest.raises(SampleDataError, match="Could not extract"):
            decompress_archive(archive, dest)
        assert not dest.exists()
        assert not (tmp_path / "sample_db.sql.part").exists()

    def test_damaged_gzip_payload(self, tmp_path, sample_sql):
        data = bytearray(gzip.compress(sample_sql * 50))
        # keep the 10-byte header so the gzip magic is still detected
        for i in range(10, len(data) - 8):
            data[i] ^= 0x5A
        archive = tmp_path / "sample_db.zip"
        archive.write_bytes(bytes(data))
        dest = tmp_path / "sample_db.sql"

        with pytest.raises(SampleDataError, match="Could not extract") as exc_info:
            decompress_archive(archive, dest)
        assert exc_info.value.category == ErrorCategory.SOURCE
        assert not dest.exists()
        assert not (tmp_path / "sample_db.sql.part").exists()


class TestDownload:
    def test_timeout_applies_to_given_client(self, tmp_path):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.extensions["timeout"])
            return httpx.Response(200, content=b"payload")

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            download("https://example.test/sample_db.zip", tmp_path / "x.zip", client=client, timeout=42.0)
        assert seen["read"] == 42.0
        assert seen["connect"] == 42.0

    def test_writes_body(self, tmp_path, make_client):
        url = "https://example.test/sample_db.zip"
        client = make_client({url: httpx.Response(200, content=b"payload")})
        dest = download(url, tmp_path / "sample_db.zip", client=client)
        assert dest.read_bytes() == b"payload"

    def test_follows_redirects(self, tmp_path, make_client):
        url = "https://example.test/sample_db.zip"
        target = "https://cdn.example.test/sample_db.zip"
        client = make_client(
            {
                url: httpx.Response(302, headers={"Location": target}),
                target: httpx.Response(200, content=b"payload"),
            }
        )
        assert download(url, tmp_path / "x.zip", client=client).read_bytes() == b"payload"

    def test_http_error(self, tmp_path, make_client):
        url = "https://example.test/sample_db.zip"
        client = make_client({url: httpx.Response(404)})
        with pytest.raises(DownloadError) as exc_info:
            download(url, tmp_path / "sample_db.zip", client=client)
        assert exc_info.value.context.http_status == 404
        assert exc_info.value.context.url == url
        assert not (tmp_path / "sample_db.zip").exists()

    def test_connection_error(self, tmp_path, make_client):
        url = "https://example.test/sample_db.zip"
        client = make_client({url: httpx.ConnectError("refused")})
        with pytest.raises(DownloadError, match="refused"):
            download(url, tmp_path / "sample_db.zip", client=client)
        assert not (tmp_path / "sample_db.zip.part").exists()


class TestSampleDataSource:
    def test_existing_dump_used_as_is(self, config, sample_sql):
        config.sql_path.write_bytes(sample_sql)
        config.archive_path.write_bytes(b"ignored")
        dump = SampleDataSource(config).acquire()
        assert dump.tier == "existing"
        assert dump.path == config.sql_path

    def test_archive_decompressed(self, config, gzip_archive, sample_sql):
        dump = SampleDataSource(config).acquire()
        assert dump.tier == "archive"
        assert dump.path.read_bytes() == sample_sql

    def test_download_when_nothing_local(self, config, sample_sql, make_client):
        client = make_client({config.download_url: httpx.Response(200, content=gzip.compress(sample_sql))})
        dump = SampleDataSource(config, client=client).acquire()
        assert dump.tier == "download"
        assert config.archive_path.is_file()
        assert dump.path.read_bytes() == sample_sql

    def test_download_failure_raises(self, config, make_client):
        client = make_client({config.download_url: httpx.Response(500)})
        with pytest.raises(DownloadError):
            SampleDataSource(config, client=client).acquire()
        assert not config.sql_path.exists()

    def test_corrupt_archive_raises(self, config):
        config.archive_path.write_bytes(b"garbage")
        with pytest.raises(SampleDataError):
            SampleDataSource(config).acquire()
