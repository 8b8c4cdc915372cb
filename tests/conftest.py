import pytest

from rebook.models import NarrationConfig


@pytest.fixture
def narration_config():
    return NarrationConfig(voice="test")
