from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from threatscope.core.config import Settings
from threatscope.main import create_app
from threatscope.tests.utils.sse import FakeUpstream


def make_settings(**overrides) -> Settings:
    values = {
        "NIM_API_KEY": "test-key",
        "NVIDIA_NIM_API_KEY": None,
        "ENVIRONMENT": "local",
        "SENTRY_DSN": None,
        "UPSTREAM_URL": "https://upstream.test/v1/chat/completions",
        "COUNTRIES_GRAPHQL_URL": "https://countries.test/graphql",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def countries_api() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def client(
    settings: Settings, upstream: FakeUpstream, countries_api: FakeUpstream
) -> Generator[TestClient, None, None]:
    app = create_app(
        settings,
        upstream_transport=upstream.transport,
        countries_transport=countries_api.transport,
    )
    with TestClient(app) as c:
        yield c
