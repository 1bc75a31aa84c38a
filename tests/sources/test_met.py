"""Tests for MET file parsing."""

import logging

import pytest

pytestmark = pytest.mark.unit

from stackalign.contracts import DuplicateTileError, EmptyInputError, MalformedTransformError
from stackalign.sources.met import MET_FORMATS, MetRecordParser

from tests.helpers.fake_stack_client import FakeStackClient, make_collection_json
from tests.helpers.met_lines import V1_LINE, V2_LINE


@pytest.fixture
def client():
    return FakeStackClient(collections={
        ("acquire", 100.0): make_collection_json(["T1", "T2", "T3", "T4"], 100.0),
        ("acquire", 101.0): make_collection_json(["U1", "U2"], 101.0),
    })


@pytest.fixture
def parser(client):
    return MetRecordParser(client, "acquire")


class TestV1:
    """Affine records."""

    def test_affine_fields_are_reordered(self, parser):
        """v1 affine values are read in column-major order."""
        records = list(parser.iter_records([V1_LINE.format(tile="T1")]))
        assert len(records) == 1
        spec = records[0].transform_spec
        assert spec.class_name == "mpicbg.trakem2.transform.AffineModel2D"
        # row-major m00 m01 m02 m10 m11 m12 becomes column-major m00 m10 m01 m11 m02 m12
        assert spec.data_string == "0.992264 -0.085614 0.226714 0.712238 27606.648556 38075.232380"

    def test_groups_records_by_section_z(self, parser, client):
        """Records of one section share a batch."""
        lines = [V1_LINE.format(tile=t) for t in ("T2", "T1", "T3")]
        batches = parser.parse_lines(lines, "5100.met")

        assert len(batches) == 1
        assert batches[0].z == 100.0
        assert batches[0].tile_ids == ["T1", "T2", "T3"]
        # one z lookup per section
        assert [c for c in client.calls if c[0] == "get_tile"] == [("get_tile", "acquire", "T2")]

    def test_batches_are_ordered_by_z(self, parser):
        """Batches come back in ascending z."""
        lines = [
            V1_LINE.format(tile="U1").replace("5100", "5101", 1),
            V1_LINE.format(tile="T1"),
        ]
        batches = parser.parse_lines(lines, "two.met")
        assert [b.z for b in batches] == [100.0, 101.0]

    def test_section_cache_spans_inputs(self, parser, client):
        """A section resolved once is not looked up again."""
        parser.parse_lines([V1_LINE.format(tile="T1")], "a.met")
        parser.parse_lines([V1_LINE.format(tile="T2")], "b.met")
        assert len([c for c in client.calls if c[0] == "get_tile"]) == 1
        assert parser.section_to_z == {"5100": 100.0}


class TestV2:
    """Polynomial records."""

    def test_polynomial_fields_in_order(self, client):
        """v2 coefficients are taken in file order."""
        parser = MetRecordParser(client, "acquire", format_version="v2")
        batches = parser.parse_lines([V2_LINE.format(tile="T1")], "v2.met")
        spec = batches[0].transform_for("T1")
        assert spec.class_name == "mpicbg.trakem2.transform.PolynomialTransform2D"
        assert spec.data_string.split() == V2_LINE.split()[3:15]

    def test_v1_width_line_is_short_for_v2(self, client, caplog):
        """A v1-width line is skipped when parsing v2."""
        parser = MetRecordParser(client, "acquire", format_version="v2")
        lines = ["5100 T9 1 1 0 0 0 1 0 9", V2_LINE.format(tile="T1")]
        with caplog.at_level(logging.WARNING):
            batches = parser.parse_lines(lines, "v2.met")
        assert batches[0].tile_ids == ["T1"]
        assert "only contains 10 words" in caplog.text

    def test_formats_table(self):
        assert MET_FORMATS["v1"].min_fields == 9
        assert MET_FORMATS["v2"].min_fields == 15
        assert MET_FORMATS["v2"].parameter_indexes == tuple(range(3, 15))


class TestInputProblems:

    def test_blank_and_short_lines_are_skipped(self, parser, caplog):
        """Blank and short lines are skipped."""
        lines = ["", "   ", "5100 T5 1 2 3", V1_LINE.format(tile="T1")]
        with caplog.at_level(logging.WARNING):
            batches = parser.parse_lines(lines, "short.met")

        assert batches[0].tile_ids == ["T1"]
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "line 3" in warnings[0].getMessage()

    def test_malformed_value_names_line_file_and_string(self, parser):
        """Parse errors name the line, file and data string."""
        bad = V1_LINE.format(tile="T1").replace("0.226714", "abc")
        with pytest.raises(MalformedTransformError) as excinfo:
            parser.parse_lines(["", bad], "bad.met")

        message = str(excinfo.value)
        assert "line 2" in message
        assert "bad.met" in message
        assert "abc" in message
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_duplicate_tile_names_both_lines(self, parser):
        """Duplicate tile errors name both lines."""
        lines = [V1_LINE.format(tile="T1"), V1_LINE.format(tile="T2"), V1_LINE.format(tile="T1")]
        with pytest.raises(DuplicateTileError, match="first reference was found at line 1, "
                                                     "the second reference at line 3"):
            parser.parse_lines(lines, "dup.met")

    def test_duplicate_across_sections_is_detected(self, parser):
        """Duplicates are detected across sections."""
        lines = [V1_LINE.format(tile="T1"), V1_LINE.format(tile="T1").replace("5100", "5101", 1)]
        with pytest.raises(DuplicateTileError):
            parser.parse_lines(lines, "dup.met")

    def test_empty_input_raises(self, parser):
        """Input without records raises EmptyInputError."""
        with pytest.raises(EmptyInputError, match="No tile information found in MET file empty.met"):
            parser.parse_lines(["", "5100 T1 1"], "empty.met")

    def test_unknown_format_version(self, client):
        """Unknown format versions are rejected at construction."""
        with pytest.raises(ValueError, match="unknown MET format version 'v3'"):
            MetRecordParser(client, "acquire", format_version="v3")


class TestParseFile:

    def test_reads_file_from_disk(self, parser, temp_dir):
        """parse_file reads a MET file from disk."""
        path = temp_dir / "5100.met"
        path.write_text("\n".join(V1_LINE.format(tile=t) for t in ("T1", "T2")) + "\n")

        batches = parser.parse_file(path)
        assert batches[0].source == str(path.absolute())
        assert batches[0].tile_ids == ["T1", "T2"]
