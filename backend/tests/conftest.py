import pytest

from quickscan.config.settings import Settings
from quickscan.workflows.engine import FlowEngine
from quickscan.workflows.loader import build_flow_definition


# Boolean branch into a text step or a terminal stop.
EXAMPLE_FLOW = {
    "steps": [
        {
            "id": "a",
            "kind": "boolean",
            "requiredAlways": True,
            "next": [
                {"conditionExpr": "value == true", "gotoId": "b"},
                {"isDefault": True, "gotoId": "c"},
            ],
        },
        {"id": "b", "kind": "text", "next": "end"},
        {"id": "c", "isTerminal": True, "resultMessage": "Stopped"},
        {"id": "end", "isTerminal": True, "resultMessage": "Done"},
    ]
}


@pytest.fixture
def example_definition():
    return build_flow_definition(EXAMPLE_FLOW)


@pytest.fixture
def engine(example_definition):
    return FlowEngine(example_definition)


@pytest.fixture
def make_engine():
    """Build an engine from a list of step documents."""
    def _make(steps):
        return FlowEngine(build_flow_definition({"steps": steps}))
    return _make


@pytest.fixture
def test_settings(tmp_path):
    return Settings(environment="test", package_output_dir=tmp_path / "packages", _env_file=None)
