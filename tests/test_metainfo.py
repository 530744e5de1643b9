"""Tests for building, serializing and writing the metainfo document."""

import pytest

from fedora_releases_metainfo import (
    OutputError,
    Release,
    build_component,
    parse_metainfo,
    to_xml,
    write_metainfo,
)

RELEASES = [
    Release(version="Rawhide", type="development", description="Rolling."),
    Release(version="39", type="development", description="The upcoming release of Fedora Linux."),
    Release(
        version="38",
        type="stable",
        description="https://fedoramagazine.org/announcing-fedora-38/",
        date="2023-04-18",
    ),
    Release(
        version="33",
        type="stable",
        description="https://fedoramagazine.org/announcing-fedora-33/",
        date="2020-10-27",
        date_eol="2021-11-30",
    ),
]


class TestBuildComponent:
    def test_fixed_identity(self) -> None:
        component = build_component([])
        assert component.type == "operating-system"
        assert component.id == "org.fedoraproject.fedora"
        assert component.name == "Fedora Linux"
        assert component.homepage == "https://fedoraproject.org/"
        assert component.metadata_license == "MIT"
        assert component.developer_name == "The Fedora Project"
        assert component.releases == []

    def test_keeps_release_order(self) -> None:
        component = build_component(RELEASES)
        assert [r.version for r in component.releases] == ["Rawhide", "39", "38", "33"]


class TestToXml:
    def test_declaration_and_trailing_newline(self) -> None:
        xml = to_xml(build_component(RELEASES))
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<component type="operating-system">\n')
        assert xml.endswith("</component>\n")
        assert not xml.endswith("\n\n")

    def test_header_elements(self) -> None:
        xml = to_xml(build_component([]))
        assert "\n  <id>org.fedoraproject.fedora</id>\n" in xml
        assert "\n  <name>Fedora Linux</name>\n" in xml
        assert "\n  <summary>Fedora Linux distribution from the Fedora Project</summary>\n" in xml
        assert "\n  <description>\n    <p>Fedora creates an innovative" in xml
        assert '\n  <url type="homepage">https://fedoraproject.org/</url>\n' in xml
        assert "\n  <metadata_license>MIT</metadata_license>\n" in xml
        assert "\n  <developer_name>The Fedora Project</developer_name>\n" in xml

    def test_release_layout(self) -> None:
        xml = to_xml(build_component(RELEASES[2:3]))
        assert (
            "  <releases>\n"
            '    <release version="38" type="stable" date="2023-04-18">\n'
            "      <description>\n"
            "        <p>https://fedoramagazine.org/announcing-fedora-38/</p>\n"
            "      </description>\n"
            "    </release>\n"
            "  </releases>\n"
        ) in xml

    def test_empty_dates_are_omitted(self) -> None:
        xml = to_xml(build_component(RELEASES[:1]))
        assert '<release version="Rawhide" type="development">' in xml
        assert "date" not in xml.split("<releases>")[1]

    def test_eol_attribute(self) -> None:
        xml = to_xml(build_component(RELEASES[3:]))
        assert '<release version="33" type="stable" date="2020-10-27" date_eol="2021-11-30">' in xml

    def test_text_is_escaped(self) -> None:
        release = Release(version="1", type="stable", description="a < b & c")
        xml = to_xml(build_component([release]))
        assert "<p>a &lt; b &amp; c</p>" in xml


class TestParseMetainfo:
    def test_round_trip(self) -> None:
        releases = parse_metainfo(to_xml(build_component(RELEASES)))

        def key(r):
            return (r.version, r.type, r.date, r.date_eol)

        assert [key(r) for r in releases] == [key(r) for r in RELEASES]
        assert releases == RELEASES

    def test_no_releases(self) -> None:
        assert parse_metainfo(to_xml(build_component([]))) == []


class TestWriteMetainfo:
    def test_writes_file(self, tmp_path) -> None:
        path = tmp_path / "org.fedoraproject.fedora.metainfo.xml"
        component = build_component(RELEASES)

        write_metainfo(component, str(path))

        assert path.read_text(encoding="utf-8") == to_xml(component)

    def test_overwrites_existing(self, tmp_path) -> None:
        path = tmp_path / "out.xml"
        path.write_text("stale")
        write_metainfo(build_component([]), str(path))
        assert path.read_text(encoding="utf-8").startswith("<?xml")

    def test_missing_directory(self, tmp_path) -> None:
        with pytest.raises(OutputError):
            write_metainfo(build_component([]), str(tmp_path / "missing" / "out.xml"))
