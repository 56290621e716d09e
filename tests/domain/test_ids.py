"""Tests for ID generation and identifier normalization."""

import re

import pytest

from sharegraph.domain.ids import generate_id, normalize_identifier


class TestGenerateId:
    @pytest.mark.parametrize(
        ("kind", "prefix"), [("connection", "con_"), ("household", "hh_"), ("share", "shr_")]
    )
    def test_prefix_and_pattern(self, kind: str, prefix: str) -> None:
        assert re.fullmatch(rf"{prefix}[0-9a-f]{{12}}", generate_id(kind))

    def test_unique(self) -> None:
        assert len({generate_id("share") for _ in range(200)}) == 200

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="Unknown ID kind"):
            generate_id("note")


def test_normalize_identifier() -> None:
    assert normalize_identifier("  Ann@Example.COM ") == "ann@example.com"
