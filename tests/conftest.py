# conftest.py
import pytest

from config import Config


SCENARIO_TEXT = (
    "R1 R2 S1 S2\n"
    "R1 0 0 1 4\n"
    "R2 0 0 3 2\n"
    "S1 1 3 0 0\n"
    "S2 4 2 0 0\n"
)


@pytest.fixture
def scenario_text():
    """Two rows, two columns; the optimum is R1->S1 + R2->S2 = 3."""
    return SCENARIO_TEXT


@pytest.fixture
def write_matrix(tmp_path):
    """Write matrix text to a file and return its path."""
    def _write(text, name="matrix.txt"):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return _write


@pytest.fixture
def quiet_config():
    config = Config()
    config.visualization.progress = "none"
    return config
