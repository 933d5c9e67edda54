"""
Basic rptauthz usage example.

This example demonstrates the fundamental operations:
- Registering a resource server, resources, policies and permissions
- Requesting an RPT
- Extending an RPT with more permissions
- Introspecting an RPT
"""

import asyncio
import logging

from rptauthz import (
    AuthorizationRequest,
    AuthorizationService,
    EngineConfig,
    Metadata,
    PermissionDefinition,
    Resource,
    ResourceServer,
    TokenConfig,
)
from rptauthz.authz import RolePolicy, ScriptPolicy
from rptauthz.core.types import Client, Identity
from rptauthz.errors import AccessDeniedError

SERVER = "photo-api"


def owner_only(evaluation):
    """Grant when the requester owns the album"""
    resource = evaluation.permission.resource
    if resource.owner == evaluation.identity.id:
        evaluation.grant()


async def setup(service: AuthorizationService):
    store = service.store
    await store.save_resource_server(ResourceServer(client_id=SERVER))

    await store.save_policy(SERVER, RolePolicy("users", ["user"]))
    await store.save_policy(SERVER, ScriptPolicy("owner", owner_only))

    await store.save_resource(SERVER, Resource(
        name="alice-album", type="urn:photos:album", owner="alice-id", scopes=["view", "delete"]
    ))
    await store.save_resource(SERVER, Resource(
        name="bob-album", type="urn:photos:album", owner="bob-id", scopes=["view", "delete"]
    ))

    # Any user may view any album; only owners may delete
    await store.save_permission(SERVER, PermissionDefinition(
        name="view albums", resource_type="urn:photos:album", scopes=["view"], policies=["users"]
    ))
    await store.save_permission(SERVER, PermissionDefinition(
        name="delete albums", resource_type="urn:photos:album", scopes=["delete"], policies=["owner"]
    ))


async def basic_example():
    """Demonstrate basic rptauthz usage"""
    print("Basic rptauthz Example")
    print("=" * 30)

    # 1. Create configuration and service
    config = EngineConfig(token_config=TokenConfig(secret_key="example-secret-key"))
    service = AuthorizationService.new(config)
    print("✓ Created authorization service")

    try:
        # 2. Register the protected resources
        await setup(service)
        print("✓ Registered resources, policies and permissions")

        alice = Identity(id="alice-id", username="alice", roles=["user"])
        app = Client(client_id="photo-app")

        # 3. Request every permission alice holds
        response = await service.authorize(AuthorizationRequest(identity=alice, client=app, audience=SERVER))
        for permission in response.permissions:
            print(f"✓ Granted {permission.resource_name}: {permission.scopes}")

        # 4. Extend the RPT with a specific request
        request = AuthorizationRequest(identity=alice, client=app, audience=SERVER,
                                       rpt=response.token, metadata=Metadata(limit=10))
        request.add_permission("bob-album", "view")
        response = await service.authorize(request)
        print(f"✓ Extended RPT carries {len(response.permissions)} permissions")

        # 5. Introspect the RPT
        introspection = await service.introspect(response.token)
        print(f"✓ Introspection: {introspection.to_dict()}")

        # 6. A denied request
        request = AuthorizationRequest(identity=alice, client=app, audience=SERVER)
        request.add_permission("bob-album", "delete")
        try:
            await service.authorize(request)
        except AccessDeniedError as e:
            print(f"✓ Denied as expected: {e.to_dict()}")

    finally:
        await service.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(basic_example())
