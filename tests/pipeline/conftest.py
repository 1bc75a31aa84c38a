import pytest

from tests.helpers.fake_stack_client import FakeStackClient, make_collection_json
from tests.helpers.met_lines import met_text


@pytest.fixture
def met_file(temp_dir):
    """MET v1 file with tiles T1..T3 of section 5100."""
    path = temp_dir / "5100.met"
    path.write_text(met_text(["T1", "T2", "T3"]))
    return path


@pytest.fixture
def basis_client():
    """Basis stack with one section (2429.0) holding three tiles."""
    return FakeStackClient(
        collections={
            ("v12_align", 2429.0): make_collection_json(["P1.2429.0", "P2.2429.0", "P3.2429.0"], 2429.0),
        },
        sections={"v12_align": {"2429.0": 2429.0}},
    )
