"""Tests for the YAML-backed engagement directory and identity resolver."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from invitations.collaborators import Engagement, Organization, StaticDirectory


class TestStaticDirectory:
    def test_lookups(self) -> None:
        directory = StaticDirectory(
            engagements=[Engagement(id="J1", initiator_id="recruiter-1")],
            organizations=[
                Organization(id="C1", name="Northfield Institute", representative_id="tpo-c1"),
                Organization(id="C2", name="Lakeside College"),
            ],
        )

        assert directory.get_engagement("J1").is_open is True
        assert directory.get_engagement("J9") is None
        assert directory.representative_of("C1") == "tpo-c1"
        assert directory.representative_of("C2") is None
        assert directory.representative_of("C9") is None
        assert directory.organization_name("C2") == "Lakeside College"
        assert directory.organization_name("C9") is None

    def test_add_entries(self) -> None:
        directory = StaticDirectory()
        directory.add_engagement(Engagement(id="J1", initiator_id="r", is_open=False))
        directory.add_organization(Organization(id="C1", representative_id="tpo"))

        assert directory.get_engagement("J1").is_open is False
        assert directory.representative_of("C1") == "tpo"


class TestFromYaml:
    def test_missing_file_gives_empty_directory(self, tmp_path: Path) -> None:
        directory = StaticDirectory.from_yaml(tmp_path / "absent.yaml")
        assert directory.get_engagement("J1") is None

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "directory.yaml"
        path.write_text("", encoding="utf-8")
        assert StaticDirectory.from_yaml(path).organization_name("C1") is None

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "directory.yaml"
        path.write_text("engagements: [unclosed", encoding="utf-8")
        assert StaticDirectory.from_yaml(path).get_engagement("J1") is None

    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "directory.yaml"
        path.write_text(
            "engagements:\n"
            "  - id: J1\n"
            "    initiator_id: recruiter-1\n"
            "    title: Campus Hiring Drive\n"
            "organizations:\n"
            "  - id: C1\n"
            "    name: Northfield Institute\n"
            "    representative_id: tpo-c1\n",
            encoding="utf-8",
        )

        directory = StaticDirectory.from_yaml(path)

        assert directory.get_engagement("J1").title == "Campus Hiring Drive"
        assert directory.representative_of("C1") == "tpo-c1"

    def test_schema_errors_propagate(self, tmp_path: Path) -> None:
        path = tmp_path / "directory.yaml"
        path.write_text("engagements:\n  - id: J1\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            StaticDirectory.from_yaml(path)

    def test_bundled_directory_loads(self) -> None:
        path = Path(__file__).resolve().parents[1] / "config" / "directory.yaml"
        directory = StaticDirectory.from_yaml(path)
        assert directory.get_engagement("J1") is not None
