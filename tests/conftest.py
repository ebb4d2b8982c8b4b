import pytest

from sonar_mcp.client import SonarClient
from sonar_mcp.config import Config

BASE = "https://sonar.example.com"


@pytest.fixture
def config() -> Config:
    return Config(url=BASE, token="squ_test", project_key="proj1")


@pytest.fixture
def client(config) -> SonarClient:
    c = SonarClient(config)
    yield c
    c.close()


@pytest.fixture
def keyless_client() -> SonarClient:
    """Client whose configuration has no default project key."""
    c = SonarClient(Config(url=BASE, token="squ_test"))
    yield c
    c.close()
