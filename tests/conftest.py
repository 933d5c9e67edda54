"""
Shared fixtures for rptauthz tests.
"""

import pytest
import pytest_asyncio

from rptauthz import AuthorizationService, EngineConfig, TokenConfig
from rptauthz.core.types import Client, Identity, ResourceServer

SECRET_KEY = "test-secret-key-with-enough-length"


@pytest.fixture
def config():
    """Create a test configuration"""
    return EngineConfig(token_config=TokenConfig(secret_key=SECRET_KEY))


@pytest.fixture
def alice():
    return Identity(id="alice-id", username="alice", roles=["user"])


@pytest.fixture
def app_client():
    """Confidential client requesting RPTs"""
    return Client(client_id="app")


@pytest_asyncio.fixture
async def service(config):
    """Create a service with one registered resource server"""
    instance = AuthorizationService.new(config)
    await instance.store.save_resource_server(ResourceServer(client_id="resource-server"))
    yield instance
    await instance.close()
