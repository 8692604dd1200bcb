"""
Unit tests for the engine facade and its settings-driven factory.
"""

import pytest
from unittest.mock import patch

from indexkit.engine import SearchEngine, create_search_engine
from indexkit.errors import ConfigurationError
from indexkit.platform.config import Settings
from indexkit.service.http import HttpIndexService


def test_settings_from_environment():
    with patch.dict("os.environ", {
        "SEARCH_SERVICE_NAME": "acme",
        "SEARCH_API_KEY": "key",
        "INDEXING_MAX_RETRIES": "5",
    }):
        settings = Settings()
        assert settings.service_url == "https://acme.search.windows.net"
        assert settings.INDEXING_MAX_RETRIES == 5
        assert settings.SCHEMA_CONFLICT_MAX_RETRIES is None


def test_explicit_url_wins():
    settings = Settings(SEARCH_SERVICE_NAME="acme", SEARCH_SERVICE_URL="http://localhost:8080/")
    assert settings.service_url == "http://localhost:8080"


@pytest.mark.parametrize(
    "overrides",
    [
        {"SEARCH_SERVICE_NAME": "", "SEARCH_API_KEY": "key"},
        {"SEARCH_SERVICE_NAME": "acme", "SEARCH_API_KEY": ""},
    ],
)
def test_factory_requires_name_and_key(overrides):
    with pytest.raises(ConfigurationError):
        create_search_engine(Settings(**overrides))


def test_factory_wires_settings():
    settings = Settings(
        SEARCH_SERVICE_NAME="acme",
        SEARCH_API_KEY="key",
        INDEXING_MAX_RETRIES=2,
        ATOMIC_UPDATE_MAX_RETRIES=4,
        SCHEMA_CONFLICT_MAX_RETRIES=6,
        SCHEMA_CREATION_DELAY_SECONDS=1.5,
        SUGGEST_DEFAULT_TOP=9,
    )

    engine = create_search_engine(settings)

    assert isinstance(engine.service, HttpIndexService)
    assert engine.documents.max_retries == 2
    assert engine.documents.atomic_max_retries == 4
    assert engine.schemas.conflict_max_retries == 6
    assert engine.schemas.creation_delay == 1.5
    assert engine.suggestions.default_top == 9


def test_components_share_one_service(service):
    engine = SearchEngine(service)

    assert engine.schemas.service is service
    assert engine.documents.service is service
    assert engine.queries.service is service
    assert engine.suggestions.service is service


@pytest.mark.asyncio
async def test_context_manager_connects_and_closes(service):
    async with SearchEngine(service) as engine:
        assert engine.service.connected is True

    assert service.connected is False
