"""공용 테스트 픽스처."""

import pytest

from fakes import Clock
from uploader.store import InMemoryProductStore


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    """starbucks 카페가 등록된 메모리 저장소."""
    memory_store = InMemoryProductStore()
    memory_store.create_cafe("스타벅스", "starbucks")
    return memory_store
