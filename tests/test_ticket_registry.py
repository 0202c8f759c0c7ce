"""
Tests for ticket minting, revocation, metadata and ownership
"""

import asyncio

import pytest

from etix.errors import (
    CapacityExceeded,
    InactiveResource,
    InvalidArgument,
    NotFound,
    Unauthorized,
)
from etix.models.notifications import (
    Approval,
    ApprovalForAll,
    MetadataUpdated,
    TicketMinted,
    TicketRevoked,
    TicketTransferred,
)
from etix.models.registry import Role

from tests.conftest import ADMIN, BUYER, BUYER2, ORGANIZER, STRANGER


BASE_URI = "https://example.com/metadata/"
TEST_URI = "https://ipfs.io/ipfs/QmTest"


async def create_event(registry, max_supply=100, base_uri=BASE_URI, organizer=ORGANIZER):
    return await registry.create_event(ADMIN, "Test Event", organizer, max_supply, base_uri)


class TestMintTicket:
    """Test cases for mint_ticket"""

    @pytest.mark.asyncio
    async def test_mint_ticket(self, registry):
        await create_event(registry)

        ticket_id = await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)

        assert ticket_id == 1
        assert await registry.owner_of(1) == BUYER
        assert await registry.ticket_event(1) == 1
        assert (await registry.get_event(1)).minted == 1
        assert await registry.balance_of(BUYER) == 1

        last = registry.notifications.history()[-1]
        assert isinstance(last, TicketMinted)
        assert (last.event_id, last.ticket_id, last.to, last.uri) == (1, 1, BUYER, TEST_URI)

    @pytest.mark.asyncio
    async def test_admin_can_mint(self, registry):
        await create_event(registry)
        assert await registry.mint_ticket(ADMIN, 1, BUYER) == 1

    @pytest.mark.asyncio
    async def test_general_organizer_can_mint_any_event(self, registry):
        await create_event(registry)
        await registry.grant_role(ADMIN, Role.ORGANIZER, STRANGER)

        assert await registry.mint_ticket(STRANGER, 1, BUYER) == 1

    @pytest.mark.asyncio
    async def test_buyer_cannot_mint(self, registry):
        await create_event(registry)
        with pytest.raises(Unauthorized):
            await registry.mint_ticket(BUYER, 1, BUYER, TEST_URI)

    @pytest.mark.asyncio
    async def test_missing_event(self, registry):
        with pytest.raises(NotFound):
            await registry.mint_ticket(ADMIN, 1, BUYER)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("caller", [ADMIN, ORGANIZER, STRANGER])
    async def test_inactive_event_never_mints(self, registry, caller):
        await create_event(registry)
        await registry.update_event(ORGANIZER, 1, "Test Event", 100, BASE_URI, False)

        with pytest.raises(InactiveResource):
            await registry.mint_ticket(caller, 1, BUYER)
        assert (await registry.get_event(1)).minted == 0

    @pytest.mark.asyncio
    async def test_respects_max_supply(self, registry):
        await create_event(registry, max_supply=2)

        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.mint_ticket(ORGANIZER, 1, BUYER2)

        with pytest.raises(CapacityExceeded):
            await registry.mint_ticket(ORGANIZER, 1, BUYER)
        assert (await registry.get_event(1)).minted == 2

    @pytest.mark.asyncio
    async def test_unlimited_supply(self, registry):
        await create_event(registry, max_supply=0)

        for _ in range(250):
            await registry.mint_ticket(ORGANIZER, 1, BUYER)

        assert (await registry.get_event(1)).minted == 250
        assert await registry.balance_of(BUYER) == 250

    @pytest.mark.asyncio
    async def test_rejects_empty_recipient(self, registry):
        await create_event(registry)
        with pytest.raises(InvalidArgument):
            await registry.mint_ticket(ORGANIZER, 1, "")

    @pytest.mark.asyncio
    async def test_ticket_ids_are_global(self, registry):
        await create_event(registry)
        await create_event(registry)

        assert await registry.mint_ticket(ORGANIZER, 1, BUYER) == 1
        assert await registry.mint_ticket(ORGANIZER, 2, BUYER) == 2
        assert await registry.mint_ticket(ORGANIZER, 1, BUYER) == 3
        assert await registry.ticket_event(2) == 2

    @pytest.mark.asyncio
    async def test_failed_mint_leaves_no_trace(self, registry):
        await create_event(registry, max_supply=1)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        before = registry.notifications.last_seq

        with pytest.raises(CapacityExceeded):
            await registry.mint_ticket(ORGANIZER, 1, BUYER2)
        with pytest.raises(Unauthorized):
            await registry.mint_ticket(STRANGER, 1, BUYER2)

        assert registry.notifications.last_seq == before
        assert await registry.total_tickets() == 1
        assert await registry.balance_of(BUYER2) == 0


class TestRevokeTicket:
    """Test cases for revoke_ticket"""

    @pytest.mark.asyncio
    async def test_revoke_ticket(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)

        await registry.revoke_ticket(ORGANIZER, 1)

        last = registry.notifications.history()[-1]
        assert isinstance(last, TicketRevoked)
        assert (last.ticket_id, last.event_id) == (1, 1)

        with pytest.raises(NotFound):
            await registry.owner_of(1)
        assert await registry.ticket_event(1) == 0
        assert (await registry.get_event(1)).minted == 0
        assert await registry.balance_of(BUYER) == 0

    @pytest.mark.asyncio
    async def test_admin_can_revoke(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.revoke_ticket(ADMIN, 1)
        assert await registry.tickets_of(BUYER) == []

    @pytest.mark.asyncio
    async def test_owner_cannot_revoke(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        with pytest.raises(Unauthorized):
            await registry.revoke_ticket(BUYER, 1)
        assert await registry.owner_of(1) == BUYER

    @pytest.mark.asyncio
    async def test_general_organizer_cannot_revoke_other_event(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.grant_role(ADMIN, Role.ORGANIZER, STRANGER)

        with pytest.raises(Unauthorized):
            await registry.revoke_ticket(STRANGER, 1)

    @pytest.mark.asyncio
    async def test_double_revoke_is_not_found(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        await registry.revoke_ticket(ADMIN, 1)
        with pytest.raises(NotFound):
            await registry.revoke_ticket(ADMIN, 1)

        assert (await registry.get_event(1)).minted == 0

    @pytest.mark.asyncio
    async def test_minted_clamps_at_zero(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        registry._events[1].minted = 0

        await registry.revoke_ticket(ADMIN, 1)

        assert (await registry.get_event(1)).minted == 0

    @pytest.mark.asyncio
    async def test_revoked_id_is_never_reused(self, registry):
        await create_event(registry)
        first = await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.revoke_ticket(ADMIN, first)

        second = await registry.mint_ticket(ORGANIZER, 1, BUYER)

        assert second > first
        assert await registry.total_tickets() == 2


class TestTokenURI:
    """Test cases for set_token_uri and resolve_uri"""

    @pytest.mark.asyncio
    async def test_explicit_uri(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, "ipfs://X")
        assert await registry.resolve_uri(1) == "ipfs://X"

    @pytest.mark.asyncio
    async def test_base_uri_fallback(self, registry):
        await create_event(registry, base_uri="https://b/")
        for _ in range(6):
            await registry.mint_ticket(ORGANIZER, 1, BUYER, "ipfs://other")

        assert await registry.mint_ticket(ORGANIZER, 1, BUYER, "") == 7
        assert await registry.resolve_uri(7) == "https://b/7"

    @pytest.mark.asyncio
    async def test_empty_base_uri(self, registry):
        await create_event(registry, base_uri="")
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        assert await registry.resolve_uri(1) == ""

    @pytest.mark.asyncio
    async def test_base_uri_follows_event_updates(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        await registry.update_event(ORGANIZER, 1, "Test Event", 100, "ipfs://cid/", True)

        assert await registry.resolve_uri(1) == "ipfs://cid/1"

    @pytest.mark.asyncio
    async def test_set_token_uri(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)

        await registry.set_token_uri(ORGANIZER, 1, "https://ipfs.io/ipfs/QmNewTest")
        assert await registry.resolve_uri(1) == "https://ipfs.io/ipfs/QmNewTest"

        last = registry.notifications.history()[-1]
        assert isinstance(last, MetadataUpdated)

    @pytest.mark.asyncio
    async def test_clearing_uri_falls_back_to_base(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)

        await registry.set_token_uri(ADMIN, 1, "")

        assert await registry.resolve_uri(1) == f"{BASE_URI}1"

    @pytest.mark.asyncio
    async def test_set_token_uri_requires_manager(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)

        with pytest.raises(Unauthorized):
            await registry.set_token_uri(BUYER, 1, "ipfs://mine")
        assert await registry.resolve_uri(1) == TEST_URI

    @pytest.mark.asyncio
    async def test_missing_ticket(self, registry):
        with pytest.raises(NotFound):
            await registry.resolve_uri(1)
        with pytest.raises(NotFound):
            await registry.set_token_uri(ADMIN, 1, "ipfs://X")

    @pytest.mark.asyncio
    async def test_revoked_ticket_has_no_uri(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)
        await registry.revoke_ticket(ADMIN, 1)

        with pytest.raises(NotFound):
            await registry.resolve_uri(1)


class TestTransfer:
    """Test cases for transfer and approvals"""

    @pytest.mark.asyncio
    async def test_owner_transfers(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER, TEST_URI)

        await registry.transfer(BUYER, 1, BUYER, BUYER2)

        assert await registry.owner_of(1) == BUYER2
        assert await registry.balance_of(BUYER) == 0
        assert await registry.balance_of(BUYER2) == 1
        assert await registry.ticket_event(1) == 1
        assert await registry.resolve_uri(1) == TEST_URI

        last = registry.notifications.history()[-1]
        assert isinstance(last, TicketTransferred)
        assert (last.ticket_id, last.from_owner, last.to) == (1, BUYER, BUYER2)

    @pytest.mark.asyncio
    async def test_stranger_cannot_transfer(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        with pytest.raises(Unauthorized):
            await registry.transfer(STRANGER, 1, BUYER, STRANGER)

    @pytest.mark.asyncio
    async def test_organizer_cannot_transfer_buyers_ticket(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        with pytest.raises(Unauthorized):
            await registry.transfer(ORGANIZER, 1, BUYER, ORGANIZER)

    @pytest.mark.asyncio
    async def test_wrong_from_owner(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        with pytest.raises(InvalidArgument):
            await registry.transfer(BUYER, 1, BUYER2, STRANGER)
        assert await registry.owner_of(1) == BUYER

    @pytest.mark.asyncio
    async def test_transfer_to_nobody(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        with pytest.raises(InvalidArgument):
            await registry.transfer(BUYER, 1, BUYER, "")

    @pytest.mark.asyncio
    async def test_self_transfer_is_noop(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        await registry.transfer(BUYER, 1, BUYER, BUYER)

        assert await registry.owner_of(1) == BUYER
        assert await registry.balance_of(BUYER) == 1

    @pytest.mark.asyncio
    async def test_missing_ticket(self, registry):
        with pytest.raises(NotFound):
            await registry.transfer(BUYER, 9, BUYER, BUYER2)

    @pytest.mark.asyncio
    async def test_approved_delegate_transfers_once(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        await registry.approve(BUYER, STRANGER, 1)
        assert await registry.get_approved(1) == STRANGER
        assert isinstance(registry.notifications.history()[-1], Approval)

        await registry.transfer(STRANGER, 1, BUYER, BUYER2)

        assert await registry.owner_of(1) == BUYER2
        assert await registry.get_approved(1) is None
        with pytest.raises(Unauthorized):
            await registry.transfer(STRANGER, 1, BUYER2, STRANGER)

    @pytest.mark.asyncio
    async def test_clear_approval(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.approve(BUYER, STRANGER, 1)

        await registry.approve(BUYER, None, 1)

        assert await registry.get_approved(1) is None

    @pytest.mark.asyncio
    async def test_only_owner_or_operator_approves(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        with pytest.raises(Unauthorized):
            await registry.approve(STRANGER, STRANGER, 1)
        with pytest.raises(InvalidArgument):
            await registry.approve(BUYER, BUYER, 1)

    @pytest.mark.asyncio
    async def test_operator_manages_all_tickets(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        await registry.set_approval_for_all(BUYER, STRANGER, True)
        assert await registry.is_approved_for_all(BUYER, STRANGER)
        last = registry.notifications.history()[-1]
        assert isinstance(last, ApprovalForAll)
        assert last.approved

        await registry.transfer(STRANGER, 1, BUYER, BUYER2)
        await registry.approve(STRANGER, BUYER2, 2)
        assert await registry.get_approved(2) == BUYER2

        await registry.set_approval_for_all(BUYER, STRANGER, False)
        with pytest.raises(Unauthorized):
            await registry.transfer(STRANGER, 2, BUYER, STRANGER)

    @pytest.mark.asyncio
    async def test_cannot_approve_self_as_operator(self, registry):
        with pytest.raises(InvalidArgument):
            await registry.set_approval_for_all(BUYER, BUYER, True)

    @pytest.mark.asyncio
    async def test_revoke_clears_approval(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.approve(BUYER, STRANGER, 1)

        await registry.revoke_ticket(ORGANIZER, 1)

        with pytest.raises(NotFound):
            await registry.get_approved(1)


class TestQueries:
    """Ownership queries and counters"""

    @pytest.mark.asyncio
    async def test_totals(self, registry):
        assert await registry.total_events() == 0
        assert await registry.total_tickets() == 0

        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)

        assert await registry.total_events() == 1
        assert await registry.total_tickets() == 1

    @pytest.mark.asyncio
    async def test_tickets_of(self, registry):
        await create_event(registry)
        for owner in (BUYER, BUYER2, BUYER):
            await registry.mint_ticket(ORGANIZER, 1, owner)

        assert await registry.tickets_of(BUYER) == [1, 3]
        assert await registry.tickets_of(BUYER2) == [2]
        assert await registry.tickets_of(STRANGER) == []

    @pytest.mark.asyncio
    async def test_balance_of_requires_principal(self, registry):
        with pytest.raises(InvalidArgument):
            await registry.balance_of("")

    @pytest.mark.asyncio
    async def test_ticket_event_sentinel(self, registry):
        assert await registry.ticket_event(1) == 0

    @pytest.mark.asyncio
    async def test_name_and_symbol(self, registry):
        assert registry.name == "Event Tickets"
        assert registry.symbol == "ETIX"

    @pytest.mark.asyncio
    async def test_stats(self, registry):
        await create_event(registry)
        await create_event(registry)
        await registry.update_event(ADMIN, 2, "Closed", 0, "", False)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.revoke_ticket(ADMIN, 1)

        stats = await registry.get_stats()

        assert stats["total_events"] == 2
        assert stats["active_events"] == 1
        assert stats["total_tickets"] == 2
        assert stats["live_tickets"] == 1
        assert stats["last_notification_seq"] == registry.notifications.last_seq


class TestScenarios:
    """End-to-end flows"""

    @pytest.mark.asyncio
    async def test_single_seat_concert(self, registry):
        event_id = await registry.create_event(ADMIN, "Concert", ORGANIZER, 1, "")

        first = await registry.mint_ticket(ORGANIZER, event_id, BUYER)
        assert (await registry.get_event(event_id)).minted == 1

        with pytest.raises(CapacityExceeded):
            await registry.mint_ticket(ORGANIZER, event_id, BUYER)

        await registry.revoke_ticket(ADMIN, first)
        assert (await registry.get_event(event_id)).minted == 0

        second = await registry.mint_ticket(ORGANIZER, event_id, BUYER)
        assert second > first
        assert (await registry.get_event(event_id)).minted == 1

    @pytest.mark.asyncio
    async def test_notification_order(self, registry):
        await create_event(registry)
        await registry.mint_ticket(ORGANIZER, 1, BUYER)
        await registry.transfer(BUYER, 1, BUYER, BUYER2)
        await registry.revoke_ticket(ORGANIZER, 1)

        records = registry.notifications.history()
        assert [n.kind for n in records] == [
            "RoleGranted",
            "RoleGranted",
            "EventCreated",
            "TicketMinted",
            "TicketTransferred",
            "TicketRevoked",
        ]
        assert [n.seq for n in records] == list(range(1, 7))


class TestConcurrency:
    """Concurrent callers against one registry"""

    @pytest.mark.asyncio
    async def test_concurrent_mints_respect_supply(self, registry):
        await registry.create_event(ADMIN, "Small Venue", ORGANIZER, 5, "")
        before = registry.notifications.last_seq

        results = await asyncio.gather(
            *(registry.mint_ticket(ORGANIZER, 1, BUYER) for _ in range(20)),
            return_exceptions=True,
        )

        minted_ids = [r for r in results if isinstance(r, int)]
        sold_out = [r for r in results if isinstance(r, CapacityExceeded)]
        assert sorted(minted_ids) == [1, 2, 3, 4, 5]
        assert len(sold_out) == 15

        event = await registry.get_event(1)
        assert event.minted == 5
        assert await registry.total_tickets() == 5
        assert await registry.balance_of(BUYER) == 5

        records = registry.notifications.history(after=before)
        assert [type(r) for r in records] == [TicketMinted] * 5

    @pytest.mark.asyncio
    async def test_concurrent_revoke_and_mint_keep_counts_consistent(self, registry):
        await registry.create_event(ADMIN, "Small Venue", ORGANIZER, 3, "")
        for _ in range(3):
            await registry.mint_ticket(ORGANIZER, 1, BUYER)

        results = await asyncio.gather(
            registry.revoke_ticket(ORGANIZER, 1),
            registry.revoke_ticket(ORGANIZER, 1),
            registry.mint_ticket(ORGANIZER, 1, BUYER2),
            return_exceptions=True,
        )

        assert results[0] is None
        assert isinstance(results[1], NotFound)
        assert results[2] == 4

        event = await registry.get_event(1)
        assert event.minted == 3
        assert await registry.owner_of(4) == BUYER2
