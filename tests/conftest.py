"""
Pytest configuration and fixtures
"""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from betaloom.app import create_app
from betaloom.config import DEFAULT_SETTINGS


@pytest.fixture
def settings():
    """Default settings"""
    return DEFAULT_SETTINGS


@pytest.fixture
def no_code_execution():
    """Settings with the code execution tool switched off"""
    return replace(DEFAULT_SETTINGS, code_execution=False)


@pytest.fixture
def client(settings):
    """Test client running the app lifespan"""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def small_client():
    """Test client with a tiny request size cap"""
    with TestClient(create_app(replace(DEFAULT_SETTINGS, max_body_size=64))) as test_client:
        yield test_client
