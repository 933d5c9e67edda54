"""
Tests for authorization request processing.
"""

import pytest

from rptauthz.authz import (
    AuthorizationRequestProcessor,
    PermissionDefinition,
    PolicyEvaluator,
    ScriptPolicy,
)
from rptauthz.core.types import (
    AuthorizationRequest,
    Client,
    Identity,
    Metadata,
    Resource,
    ResourceServer,
)
from rptauthz.errors import (
    AccessDeniedError,
    ClaimsNotAllowedError,
    InvalidRequestError,
    InvalidResourceError,
    InvalidScopeError,
    InvalidTicketError,
)
from rptauthz.store import ResourceServerSnapshot
from rptauthz.ticket import MemoryTicketStore, PermissionTicket
from rptauthz.util import encode_claim_token, url_safe_encode


def grant(evaluation):
    evaluation.grant()


def deny(evaluation):
    evaluation.deny()


def grant_acme(evaluation):
    if evaluation.context.get_claim("organization") == "acme":
        evaluation.grant()


@pytest.fixture
def snapshot():
    resources = [
        Resource(name="photos", id="photos", scopes=["view", "edit"]),
        Resource(name="album", id="album", scopes=["view", "share"], owner="alice-id",
                 owner_managed_access=True),
        Resource(name="wiki", id="wiki"),
        Resource(name="vault", id="vault", scopes=["open"]),
    ]
    return ResourceServerSnapshot(
        server=ResourceServer(client_id="gallery"),
        resources=resources,
        scopes=["view", "edit", "share", "open", "print"],
        policies={
            "grant": ScriptPolicy("grant", grant),
            "deny": ScriptPolicy("deny", deny),
            "acme": ScriptPolicy("acme", grant_acme),
        },
        permissions=[
            PermissionDefinition(name="photos", resources=["photos"], policies=["grant"]),
            PermissionDefinition(name="album", resources=["album"], policies=["deny"]),
            PermissionDefinition(name="wiki", resources=["wiki"], policies=["grant"]),
            PermissionDefinition(name="vault", resources=["vault"], policies=["acme"]),
        ],
    )


@pytest.fixture
def ticket_store():
    return MemoryTicketStore()


@pytest.fixture
def processor(ticket_store):
    return AuthorizationRequestProcessor(PolicyEvaluator(), ticket_store)


@pytest.fixture
def bob():
    return Identity(id="bob-id", username="bob")


def request_for(identity, *permissions, client=None, **kwargs):
    request = AuthorizationRequest(identity=identity, client=client or Client("app"),
                                   audience="gallery", **kwargs)
    for resource_id, scopes in permissions:
        request.add_permission(resource_id, *scopes)
    return request


class TestBuildUnits:
    """Requested permissions become resource units"""

    def test_coalesces_entries_for_same_resource(self, processor, snapshot, bob):
        request = request_for(bob, ("photos", ["view"]), ("wiki", []), ("photos", ["edit"]))

        units = processor.build_units(snapshot, request)

        assert [u.resource.id for u in units] == ["photos", "wiki"]
        assert units[0].scopes == ["view", "edit"]

    def test_entry_without_scopes_widens(self, processor, snapshot, bob):
        request = request_for(bob, ("photos", ["view"]), ("photos", []))

        units = processor.build_units(snapshot, request)

        assert units[0].scopes is None

    def test_scope_only_entry_spans_resources(self, processor, snapshot, bob):
        request = request_for(bob, (None, ["view"]))

        units = processor.build_units(snapshot, request)

        assert [(u.resource.id, u.scopes) for u in units] == [("photos", ["view"]), ("album", ["view"])]

    def test_implicit_all(self, processor, snapshot, bob):
        units = processor.build_units(snapshot, request_for(bob))

        assert [u.resource.id for u in units] == ["photos", "album", "wiki", "vault"]

    def test_prior_rpt_only_builds_nothing(self, processor, snapshot, bob):
        assert processor.build_units(snapshot, request_for(bob, rpt="prior.token")) == []

    def test_unknown_resource(self, processor, snapshot, bob):
        request = request_for(bob, ("photos", ["view"]), ("missing", []))

        with pytest.raises(InvalidResourceError):
            processor.build_units(snapshot, request)

    def test_scope_not_on_resource(self, processor, snapshot, bob):
        with pytest.raises(InvalidScopeError):
            processor.build_units(snapshot, request_for(bob, ("wiki", ["view"])))

    def test_unregistered_scope_only_entry(self, processor, snapshot, bob):
        with pytest.raises(InvalidScopeError):
            processor.build_units(snapshot, request_for(bob, (None, ["delete"])))

    def test_resource_by_name(self, processor, snapshot):
        snapshot.resources.append(Resource(name="Shared Photos", id="shared-id", scopes=["view"]))

        units = processor.build_units(snapshot, request_for(Identity("x"), ("Shared Photos", [])))

        assert units[0].resource.id == "shared-id"


class TestClaimsAndMetadata:
    """Pushed claims and request metadata"""

    @pytest.mark.asyncio
    async def test_claims_reach_policies(self, processor, snapshot, bob):
        request = request_for(bob, ("vault", []),
                              claim_token=encode_claim_token({"organization": "acme"}))

        result = await processor.process(snapshot, request)

        assert [p.resource_id for p in result.permissions] == ["vault"]

    @pytest.mark.asyncio
    async def test_public_client_cannot_push_claims(self, processor, snapshot, bob):
        request = request_for(bob, ("vault", []), client=Client("spa", public_client=True),
                              claim_token=encode_claim_token({"organization": "acme"}))

        with pytest.raises(ClaimsNotAllowedError) as exc_info:
            await processor.process(snapshot, request)

        assert exc_info.value.message == "Public clients are not allowed to send claims"

    @pytest.mark.asyncio
    async def test_undecodable_claims(self, processor, snapshot, bob):
        request = request_for(bob, ("vault", []), claim_token=url_safe_encode("not json"))

        with pytest.raises(InvalidRequestError):
            await processor.process(snapshot, request)

    def test_claims_are_normalized(self, processor, bob):
        request = request_for(bob, claim_token=encode_claim_token({"a": "x", "b": [1, "y"], "c": True}))

        assert processor.decode_claims(request) == {"a": ["x"], "b": ["1", "y"], "c": ["true"]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -3])
    async def test_limit_must_be_positive(self, processor, snapshot, bob, limit):
        request = request_for(bob, ("photos", []), metadata=Metadata(limit=limit))

        with pytest.raises(InvalidRequestError):
            await processor.process(snapshot, request)


class TestProcess:
    """Evaluation of resource units"""

    @pytest.mark.asyncio
    async def test_partial_grant(self, processor, snapshot, bob):
        request = request_for(bob, ("album", []), ("photos", ["view"]))

        result = await processor.process(snapshot, request)

        assert result.evaluated == 2
        assert [(p.resource_id, p.scopes) for p in result.permissions] == [("photos", ["view"])]

    @pytest.mark.asyncio
    async def test_all_denied(self, processor, snapshot, bob):
        with pytest.raises(AccessDeniedError):
            await processor.process(snapshot, request_for(bob, ("album", [])))

    @pytest.mark.asyncio
    async def test_resource_without_scopes(self, processor, snapshot, bob):
        result = await processor.process(snapshot, request_for(bob, ("wiki", [])))

        assert result.permissions[0].resource_id == "wiki"
        assert result.permissions[0].scopes == []

    @pytest.mark.asyncio
    async def test_nothing_to_evaluate(self, processor, snapshot, bob):
        result = await processor.process(snapshot, request_for(bob, rpt="prior.token"))

        assert result.evaluated == 0
        assert result.permissions == []

    @pytest.mark.asyncio
    async def test_scope_on_no_resource_is_denied(self, processor, snapshot, bob):
        with pytest.raises(AccessDeniedError):
            await processor.process(snapshot, request_for(bob, (None, ["print"])))

    @pytest.mark.asyncio
    async def test_server_without_resources_is_denied(self, processor, bob):
        empty = ResourceServerSnapshot(server=ResourceServer(client_id="gallery"))

        with pytest.raises(AccessDeniedError):
            await processor.process(empty, request_for(bob))


class TestTickets:
    """Permission tickets presented with a request"""

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, processor, snapshot, bob):
        with pytest.raises(InvalidTicketError):
            await processor.process(snapshot, request_for(bob, ticket="nope"))

    @pytest.mark.asyncio
    async def test_ticket_is_bound_and_stays_pending(self, processor, ticket_store, snapshot, bob):
        ticket = await ticket_store.create_ticket(
            PermissionTicket(resource_id="album", owner="alice-id", scope="view")
        )

        with pytest.raises(AccessDeniedError) as exc_info:
            await processor.process(snapshot, request_for(bob, ticket=ticket.id))

        stored = await ticket_store.get_ticket(ticket.id)
        assert stored.requester == "bob-id"
        assert stored.granted is False
        assert exc_info.value.details == {"pending_tickets": [ticket.id]}

    @pytest.mark.asyncio
    async def test_granted_ticket_adds_its_scope(self, processor, ticket_store, snapshot, bob):
        ticket = await ticket_store.create_ticket(
            PermissionTicket(resource_id="album", owner="alice-id", scope="share", requester="bob-id")
        )
        await ticket_store.set_granted(ticket.id)

        result = await processor.process(snapshot, request_for(bob, ticket=ticket.id))

        assert [(p.resource_id, p.scopes) for p in result.permissions] == [("album", ["share"])]

    @pytest.mark.asyncio
    async def test_ticket_of_another_requester(self, processor, ticket_store, snapshot, bob):
        ticket = await ticket_store.create_ticket(
            PermissionTicket(resource_id="album", owner="alice-id", requester="carol-id")
        )

        with pytest.raises(InvalidTicketError):
            await processor.process(snapshot, request_for(bob, ticket=ticket.id))

    @pytest.mark.asyncio
    async def test_ticket_for_withdrawn_scope(self, processor, ticket_store, snapshot, bob):
        ticket = await ticket_store.create_ticket(
            PermissionTicket(resource_id="album", owner="alice-id", scope="share", requester="bob-id")
        )
        await ticket_store.set_granted(ticket.id)
        album = snapshot.find_resource("album")
        album.scopes = ["view"]

        with pytest.raises(InvalidTicketError):
            await processor.process(snapshot, request_for(bob, ticket=ticket.id))

        result = await processor.process(snapshot, request_for(bob))
        assert "album" not in [p.resource_id for p in result.permissions]
