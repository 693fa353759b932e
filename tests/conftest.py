from pathlib import Path

import pytest

from helpers import write_message


@pytest.fixture
def archive(tmp_path) -> Path:
    root = tmp_path / "archive"
    root.mkdir()
    return root


@pytest.fixture
def make_message():
    return write_message
