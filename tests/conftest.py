"""Shared fixtures for the test-suite."""

from __future__ import annotations

import pytest

from facematch.config.settings import Settings, get_settings
from helpers import DIMENSION, FakeFaceModel, make_image


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(embedding_dimension=DIMENSION, extraction_timeout=5.0)


@pytest.fixture
def face_model() -> FakeFaceModel:
    return FakeFaceModel()


@pytest.fixture
def red_jpeg() -> bytes:
    return make_image((255, 0, 0))


@pytest.fixture
def blue_jpeg() -> bytes:
    return make_image((0, 0, 255))


@pytest.fixture
def black_png() -> bytes:
    return make_image((0, 0, 0), fmt="PNG")
