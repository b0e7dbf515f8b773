"""
Unit tests for reveal payload construction and confirmation gating.
"""

import pytest

from blindbid.core.auction import hash_secret
from blindbid.core.errors import (
    AlreadyRevealed,
    InputError,
    MismatchedAuction,
    UnknownBid,
    WriteRejected,
    WriteReverted,
    WriteTimedOut,
)
from blindbid.core.reveal import RevealCoordinator

from conftest import USER, address, make_bid


AUCTION_A = address(0xA)
AUCTION_B = address(0xB)
DUMMY = hash_secret("dummy")


@pytest.fixture
def populated(ledger):
    """Three bids in A (slots 0-2) with one bid in B between them."""
    ledger.record(USER, make_bid(AUCTION_A, value=10, slot=0, secret="s0"))
    ledger.record(USER, make_bid(AUCTION_B, value=99, slot=0, secret="b0"))
    ledger.record(USER, make_bid(AUCTION_A, value=20, slot=1, secret="s1", fake=True))
    ledger.record(USER, make_bid(AUCTION_A, value=30, slot=2, secret="s2"))
    return ledger


class TestPrepareReveal:
    """Tests for payload layout and selection checks."""

    def test_selected_bids_land_in_their_slots(self, populated):
        payload = RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [0, 3])

        assert payload.values == [10, 0, 30]
        assert payload.fakes == [False, True, False]
        assert payload.secret_digests == [hash_secret("s0"), DUMMY, hash_secret("s2")]
        assert payload.indices == [0, 3]
        assert len(payload) == 3

    def test_slot_count_pads_to_contract_length(self, populated):
        payload = RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [2], slot_count=5)

        assert payload.values == [0, 20, 0, 0, 0]
        assert payload.fakes == [True, True, True, True, True]
        assert payload.secret_digests[1] == hash_secret("s1")

    def test_slot_beyond_contract_count(self, populated):
        with pytest.raises(UnknownBid):
            RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [3], slot_count=2)

    def test_as_args(self, populated):
        values, fakes, digests = RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [0]).as_args()
        assert len(values) == len(fakes) == len(digests) == 3

    def test_duplicate_indices_collapsed(self, populated):
        payload = RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [0, 0])
        assert payload.indices == [0]

    def test_empty_selection(self, populated):
        with pytest.raises(InputError):
            RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [])

    def test_mismatched_auction(self, populated):
        with pytest.raises(MismatchedAuction) as exc:
            RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [0, 1])
        assert exc.value.index == 1

    def test_unknown_index(self, populated):
        with pytest.raises(UnknownBid):
            RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [4])
        with pytest.raises(UnknownBid):
            RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [-1])

    def test_already_revealed(self, populated):
        populated.mark_revealed(USER, AUCTION_A, [0])
        with pytest.raises(AlreadyRevealed):
            RevealCoordinator(populated).prepare_reveal(USER, AUCTION_A, [0])

    def test_unrevealed(self, populated):
        populated.mark_revealed(USER, AUCTION_A, [2])
        assert [i for i, _ in RevealCoordinator(populated).unrevealed(USER, AUCTION_A)] == [0, 3]


class TestSubmitReveal:
    """Tests for the confirmation-gated ledger update."""

    @pytest.mark.asyncio
    async def test_confirmed_reveal_marks_selection(self, populated, signer):
        coordinator = RevealCoordinator(populated, signer)

        receipt = await coordinator.reveal(USER, AUCTION_A, [0, 3])

        assert receipt.succeeded
        assert signer.sent[0]["function"] == "reveal"
        assert signer.sent[0]["to"] == AUCTION_A
        assert [b.revealed for b in populated.list_all(USER)] == [True, False, False, True]

        with pytest.raises(AlreadyRevealed):
            coordinator.prepare_reveal(USER, AUCTION_A, [3])
        # the bid left out can still be revealed
        assert coordinator.prepare_reveal(USER, AUCTION_A, [2]).indices == [2]

    @pytest.mark.asyncio
    async def test_revert_leaves_ledger(self, populated, signer):
        signer.mode = "revert"
        signer.revert_reason = "Bid already revealed"

        with pytest.raises(WriteReverted) as exc:
            await RevealCoordinator(populated, signer).reveal(USER, AUCTION_A, [0])

        assert exc.value.reason == "Bid already revealed"
        assert not any(b.revealed for b in populated.list_all(USER))

    @pytest.mark.asyncio
    async def test_timeout_leaves_ledger(self, populated, signer):
        signer.mode = "hang"

        with pytest.raises(WriteTimedOut):
            await RevealCoordinator(populated, signer, confirmation_timeout=0.05).reveal(USER, AUCTION_A, [0])

        assert not any(b.revealed for b in populated.list_all(USER))

    @pytest.mark.asyncio
    async def test_rejection_leaves_ledger(self, populated, signer):
        signer.mode = "reject"

        with pytest.raises(WriteRejected) as exc:
            await RevealCoordinator(populated, signer).reveal(USER, AUCTION_A, [0])

        assert "cancelled" in str(exc.value)
        assert signer.sent == []
        assert not any(b.revealed for b in populated.list_all(USER))

    @pytest.mark.asyncio
    async def test_submit_needs_signer(self, populated):
        coordinator = RevealCoordinator(populated)
        payload = coordinator.prepare_reveal(USER, AUCTION_A, [0])
        with pytest.raises(RuntimeError):
            await coordinator.submit(USER, payload)
