"""Tests for package identity extraction from archive names, zips and descriptors."""

import io
import json
import zipfile

import pytest

from app.domain.archive import ArchiveName, JsonDescriptor, ZipArchive
from app.domain.errors import InvalidArchiveName, MissingPackageIdentity
from tests.factories import composer_json, corrupt_member, make_zip


class TestArchiveName:
    @pytest.mark.parametrize(
        "filename, name, version",
        [
            ("vendor-name-v1.2.3.zip", "vendor-name", "v1.2.3"),
            ("/vendor-name-v1.2.3.zip", "vendor-name", "v1.2.3"),
            ("pkg-1.0.0.zip", "pkg", "1.0.0"),
            ("my_lib.core-10.20.30-beta1.zip", "my_lib.core", "10.20.30-beta1"),
            ("pkg-1.0.0-RC_2.zip", "pkg", "1.0.0-RC_2"),
            ("a-b-c-2.0.0.zip", "a-b-c", "2.0.0"),
            ("-1.0.0.zip", "", "1.0.0"),
        ],
    )
    def test_parses_valid_names(self, filename, name, version):
        parsed = ArchiveName.parse(filename)
        assert parsed.name == name
        assert parsed.version == version
        assert parsed.full == filename.lstrip("/")

    @pytest.mark.parametrize(
        "filename",
        [
            "Bad_Name_1.2.3.zip",
            "Vendor-name-1.2.3.zip",
            "vendor-name-1.2.zip",
            "vendor-name-1.2.3.tar.gz",
            "vendor-name-1.2.3.zip.bak",
            "vendor-name-x1.2.3.zip",
            "vendor name-1.2.3.zip",
            "vendor-name-1a2b3.zip",
            "vendor-name-1.2.3.zip\n",
            "dir/vendor-name-1.2.3.zip",
            "vendor-name-1.2.3-é.zip",
            "",
        ],
    )
    def test_rejects_invalid_names(self, filename):
        with pytest.raises(InvalidArchiveName) as exc_info:
            ArchiveName.parse(filename)
        assert exc_info.value.status_code == 400


class TestJsonDescriptor:
    def test_identity(self):
        source = JsonDescriptor(composer_json("vendor/pkg", "1.0.0", type="library"))
        assert source.identity() == ("vendor/pkg", "1.0.0")
        assert source.descriptor()["type"] == "library"

    def test_name_is_lowercased(self):
        source = JsonDescriptor(composer_json("Vendor/Pkg", "v2.0.0"))
        assert source.identity() == ("vendor/pkg", "v2.0.0")

    @pytest.mark.parametrize(
        "content",
        [
            b"",
            b"not json",
            b"[1, 2, 3]",
            b'"vendor/pkg"',
            composer_json("vendor/pkg"),
            composer_json("", "1.0.0"),
            b'{"version": "1.0.0"}',
            composer_json("no-vendor", "1.0.0"),
            composer_json("vendor/pkg", "dev-master"),
            composer_json("vendor/pkg", "1.0.0\n"),
            composer_json("vendor/pkg", " 1.0.0"),
            b'{"name": "vendor/pkg", "version": 1}',
            b'{"name": ["vendor/pkg"], "version": "1.0.0"}',
        ],
    )
    def test_missing_identity(self, content):
        with pytest.raises(MissingPackageIdentity) as exc_info:
            JsonDescriptor(content).identity()
        assert exc_info.value.status_code == 400

    def test_descriptor_is_a_copy(self):
        source = JsonDescriptor(composer_json("vendor/pkg", "1.0.0"))
        source.descriptor()["dist"] = {"url": "x"}
        assert "dist" not in source.descriptor()


class TestZipArchive:
    def test_name_from_embedded_composer_json(self):
        content = make_zip({"composer.json": composer_json("acme/tools"), "src/Tool.php": b"<?php"})
        source = ZipArchive(ArchiveName.parse("acme-tools-1.2.3.zip"), content)
        assert source.identity() == ("acme/tools", "1.2.3")

    def test_composer_json_one_directory_deep(self):
        content = make_zip({"tools-1.2.3/composer.json": composer_json("acme/tools")})
        source = ZipArchive(ArchiveName.parse("tools-1.2.3.zip"), content)
        assert source.identity() == ("acme/tools", "1.2.3")

    def test_deeply_nested_composer_json_is_ignored(self):
        content = make_zip({"a/b/composer.json": composer_json("acme/tools")})
        source = ZipArchive(ArchiveName.parse("tools-1.2.3.zip"), content)
        assert source.identity() == ("tools", "1.2.3")

    def test_version_comes_from_filename(self):
        content = make_zip({"composer.json": composer_json("acme/tools", "9.9.9")})
        source = ZipArchive(ArchiveName.parse("tools-v1.0.0.zip"), content)
        assert source.identity() == ("acme/tools", "v1.0.0")

    def test_falls_back_to_filename_without_descriptor(self):
        content = make_zip({"README.md": b"hello"})
        source = ZipArchive(ArchiveName.parse("vendor-name-v1.2.3.zip"), content)
        assert source.identity() == ("vendor-name", "v1.2.3")
        assert source.descriptor() == {}

    def test_non_zip_bytes_are_accepted(self):
        source = ZipArchive(ArchiveName.parse("vendor-name-v1.2.3.zip"), b"not a zip")
        assert source.identity() == ("vendor-name", "v1.2.3")
        assert source.content() == b"not a zip"

    def test_empty_name_is_rejected(self):
        source = ZipArchive(ArchiveName.parse("-1.0.0.zip"), b"")
        with pytest.raises(MissingPackageIdentity):
            source.identity()

    def test_invalid_embedded_name_is_rejected(self):
        content = make_zip({"composer.json": composer_json("Not A Name")})
        source = ZipArchive(ArchiveName.parse("pkg-1.0.0.zip"), content)
        with pytest.raises(MissingPackageIdentity):
            source.identity()

    def test_unreadable_composer_json_is_rejected(self):
        content = make_zip({"composer.json": b"{broken"})
        with pytest.raises(MissingPackageIdentity):
            ZipArchive(ArchiveName.parse("pkg-1.0.0.zip"), content)

    def test_content_rewrites_version(self):
        content = make_zip({
            "composer.json": composer_json("acme/tools", require={"php": ">=8.1"}),
            "src/Tool.php": b"<?php class Tool {}",
        })
        stored = ZipArchive(ArchiveName.parse("tools-2.0.0.zip"), content).content()

        with zipfile.ZipFile(io.BytesIO(stored)) as zf:
            document = json.loads(zf.read("composer.json"))
            assert zf.read("src/Tool.php") == b"<?php class Tool {}"
        assert document == {"name": "acme/tools", "require": {"php": ">=8.1"}, "version": "2.0.0"}

    def test_content_unchanged_when_version_matches(self):
        content = make_zip({"composer.json": composer_json("acme/tools", "2.0.0")})
        source = ZipArchive(ArchiveName.parse("tools-2.0.0.zip"), content)
        assert source.content() == content

    def test_corrupt_member_is_stored_unchanged(self):
        content = corrupt_member(
            {"composer.json": composer_json("acme/tools"), "src/a.php": b"<?php echo 1;"},
            "src/a.php",
        )
        source = ZipArchive(ArchiveName.parse("tools-2.0.0.zip"), content)
        assert source.identity() == ("acme/tools", "2.0.0")
        assert source.content() == content

    def test_corrupt_composer_json_falls_back_to_filename(self):
        content = corrupt_member({"composer.json": composer_json("acme/tools")}, "composer.json")
        source = ZipArchive(ArchiveName.parse("tools-2.0.0.zip"), content)
        assert source.identity() == ("tools", "2.0.0")
        assert source.content() == content
