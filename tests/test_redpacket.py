from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import DAY, make_zk_proof, password_lock
from redpacket.engine import RedPacketEngine
from redpacket.errors import (
    AlreadyClaimedError,
    AlreadyRefundedError,
    DistributionExistsError,
    ExpiredError,
    InsufficientAmountError,
    InvalidParameterError,
    InvalidProofError,
    NotExpiredError,
    NothingToRefundError,
    OutOfStockError,
    ProofVerificationFailedError,
    TransferFailedError,
    UnauthorizedError,
)
from redpacket.eth import ZERO_ADDRESS, ZERO_BYTES32, distribution_id
from redpacket.events import ClaimSuccess, CreationSuccess, RefundSuccess
from redpacket.merkle import MerkleTree
from redpacket.models import DistributionState, TokenType
from redpacket.refund import RefundPolicy
from redpacket.token import InMemoryTokenLedger


def test_create_red_packet(engine, create_red_packet, owner, token, claimer_tree, tokens):
    rp_id = create_red_packet()

    assert rp_id == distribution_id(owner, 'some message')
    redpacket = engine.get(rp_id)
    assert redpacket.creator == owner
    assert redpacket.hash_lock == ZERO_BYTES32
    assert redpacket.merkle_root == claimer_tree.root
    assert redpacket.remaining_amount == 300
    assert redpacket.remaining_packets == 3
    assert tokens.balance_of(token, engine.address) == 300
    assert tokens.balance_of(token, owner) == 0

    event = engine.events.get_logs()[-1]
    assert isinstance(event, CreationSuccess)
    assert event.id == rp_id
    assert event.total == 300
    assert event.number == 3


def test_even_split_scenario(engine, create_red_packet, accounts, tokens, token):
    claimers = accounts[:4]
    tree = MerkleTree.from_accounts(claimers)
    rp_id = create_red_packet(merkle_root=tree.root)

    payouts = [
        engine.claim_ordinary_redpacket(rp_id, user, tree.get_proof(i))
        for i, user in enumerate(claimers[:3])
    ]

    assert payouts == [100, 100, 100]
    for user in claimers[:3]:
        assert tokens.balance_of(token, user) == 100
    assert engine.get(rp_id).all_claimed
    assert engine.state(rp_id) == DistributionState.ALL_CLAIMED

    with pytest.raises(OutOfStockError):
        engine.claim_ordinary_redpacket(rp_id, claimers[3], tree.get_proof(3))


def test_all_members_claim_even_share(create_red_packet, claim, claimers, engine):
    rp_id = create_red_packet(total=10 ** 21)
    for user in claimers:
        claim(rp_id, user)
    events = engine.events.get_logs(name='ClaimSuccess')
    assert [e.claimed_value for e in events[:2]] == [10 ** 21 // 3] * 2
    assert sum(e.claimed_value for e in events) == 10 ** 21


def test_expired_packet_refund_scenario(engine, create_red_packet, claim, clock, owner, alice, tokens, token):
    rp_id = create_red_packet(duration=3600)

    clock.advance(3601)
    assert engine.refund(rp_id, owner) == 300
    assert tokens.balance_of(token, owner) == 300
    assert engine.get(rp_id).refunded
    assert engine.state(rp_id) == DistributionState.REFUNDED
    assert isinstance(engine.events.get_logs()[-1], RefundSuccess)

    with pytest.raises(ExpiredError):
        claim(rp_id, alice)
    with pytest.raises(AlreadyRefundedError):
        engine.refund(rp_id, owner)


def test_refund_after_partial_claims(engine, create_red_packet, claim, clock, owner, alice, tokens, token):
    rp_id = create_red_packet()
    claim(rp_id, alice)

    clock.advance(DAY)
    assert engine.refund(rp_id, owner) == 200

    redpacket = engine.get(rp_id)
    assert redpacket.claimed_amount + redpacket.remaining_amount + redpacket.refunded_amount == 300
    assert tokens.balance_of(token, engine.address) == 0


def test_refund_rules(engine, create_red_packet, claim, claimers, clock, owner, alice):
    rp_id = create_red_packet()

    with pytest.raises(UnauthorizedError):
        engine.refund(rp_id, alice)
    with pytest.raises(NotExpiredError):
        engine.refund(rp_id, owner)

    for user in claimers:
        claim(rp_id, user)
    clock.advance(DAY)
    with pytest.raises(NothingToRefundError):
        engine.refund(rp_id, owner)


def test_invalid_proof_mutates_nothing(engine, create_red_packet, claimer_tree, claimers, charlie, alice):
    rp_id = create_red_packet()
    events_before = len(engine.events)

    # charlie is not in the tree, alice's proof does not cover him
    with pytest.raises(InvalidProofError):
        engine.claim_ordinary_redpacket(rp_id, charlie, claimer_tree.get_proof(claimers.index(alice)))

    redpacket = engine.get(rp_id)
    assert (redpacket.remaining_amount, redpacket.remaining_packets) == (300, 3)
    assert not engine.ledger.is_claimed(rp_id, charlie)
    assert len(engine.events) == events_before


def test_double_claim(create_red_packet, claim, alice, engine):
    rp_id = create_red_packet()
    claim(rp_id, alice)
    with pytest.raises(AlreadyClaimedError):
        claim(rp_id, alice)
    assert engine.get(rp_id).remaining_packets == 2


def test_password_red_packet(engine, create_red_packet, claimer_tree, claimers, verifier, alice, bob):
    lock = password_lock('This is a correct password')
    rp_id = create_red_packet(lock=lock)
    proof = claimer_tree.get_proof(claimers.index(alice))

    with pytest.raises(ProofVerificationFailedError):
        engine.claim_password_redpacket(rp_id, alice, proof, make_zk_proof('This is a wrong password'))
    assert not engine.ledger.is_claimed(rp_id, alice)

    amount = engine.claim_password_redpacket(rp_id, alice, proof, make_zk_proof('This is a correct password'))

    assert amount == 100
    event = engine.events.get_logs()[-1]
    assert event == ClaimSuccess(id=rp_id, claimer=alice, claimed_value=100, token_address=engine.get(rp_id).token_address, lock=lock)
    assert verifier.calls[-1][3] == [int.from_bytes(lock, 'big')]

    with pytest.raises(ProofVerificationFailedError):
        engine.claim_ordinary_redpacket(rp_id, bob, claimer_tree.get_proof(claimers.index(bob)))
    with pytest.raises(ProofVerificationFailedError):
        engine.claim_password_redpacket(rp_id, bob, claimer_tree.get_proof(claimers.index(bob)), None)


def test_password_red_packet_needs_verifier(tokens, clock, owner, token, claimer_tree):
    engine = RedPacketEngine(tokens, policy=RefundPolicy(clock))
    with pytest.raises(InvalidParameterError):
        engine.create_red_packet(
            owner, claimer_tree.root, password_lock('pw'), 3, False, DAY,
            'msg', 'name', TokenType.ERC20, token, 300,
        )


def test_duplicate_message_rejected(create_red_packet):
    create_red_packet(message='Hi')
    with pytest.raises(DistributionExistsError):
        create_red_packet(message='Hi')


def test_creation_validation(create_red_packet, engine):
    with pytest.raises(InsufficientAmountError):
        create_red_packet(total=2, number=3)
    with pytest.raises(InvalidParameterError):
        create_red_packet(number=0)
    with pytest.raises(InvalidParameterError):
        create_red_packet(duration=0)
    assert len(engine.store) == 0


def test_escrow_failure_leaves_no_packet(engine, tokens, token, owner, claimer_tree):
    tokens.mint(token, owner, 300)  # no allowance
    with pytest.raises(TransferFailedError):
        engine.create_red_packet(
            owner, claimer_tree.root, ZERO_BYTES32, 3, False, DAY,
            'msg', 'name', TokenType.ERC20, token, 300,
        )
    assert distribution_id(owner, 'msg') not in engine.store
    assert engine.events.get_logs() == []


class FailingTokenLedger(InMemoryTokenLedger):
    def __init__(self, clock, fail_to):
        super().__init__(clock)
        self.fail_to = fail_to

    def transfer(self, token, sender, to, amount):
        if to == self.fail_to:
            raise TransferFailedError('receiver rejected transfer')
        super().transfer(token, sender, to, amount)


def test_failed_payout_rolls_back_claim(clock, allocator, verifier, token, owner, alice, bob, claimer_tree, claimers):
    tokens = FailingTokenLedger(clock, fail_to=alice)
    engine = RedPacketEngine(tokens, allocator=allocator, verifier=verifier, policy=RefundPolicy(clock))
    tokens.mint(token, owner, 300)
    tokens.approve(token, owner, engine.address, 300)
    rp_id = engine.create_red_packet(
        owner, claimer_tree.root, ZERO_BYTES32, 3, False, DAY, 'msg', 'name', TokenType.ERC20, token, 300,
    )
    events_before = len(engine.events)

    with pytest.raises(TransferFailedError):
        engine.claim_ordinary_redpacket(rp_id, alice, claimer_tree.get_proof(claimers.index(alice)))

    assert not engine.ledger.is_claimed(rp_id, alice)
    assert engine.ledger.remaining(rp_id) == (300, 3)
    assert len(engine.events) == events_before

    assert engine.claim_ordinary_redpacket(rp_id, bob, claimer_tree.get_proof(claimers.index(bob))) == 100


def test_failed_refund_transfer_keeps_funds(clock, allocator, verifier, token, owner, claimer_tree):
    tokens = FailingTokenLedger(clock, fail_to=owner)
    engine = RedPacketEngine(tokens, allocator=allocator, verifier=verifier, policy=RefundPolicy(clock))
    tokens.mint(token, owner, 300)
    tokens.approve(token, owner, engine.address, 300)
    rp_id = engine.create_red_packet(
        owner, claimer_tree.root, ZERO_BYTES32, 3, False, DAY, 'msg', 'name', TokenType.ERC20, token, 300,
    )
    clock.advance(DAY)

    with pytest.raises(TransferFailedError):
        engine.refund(rp_id, owner)

    redpacket = engine.get(rp_id)
    assert not redpacket.refunded
    assert redpacket.remaining_amount == 300


@pytest.mark.parametrize("salt", [b'\x00' * 32, b'\x42' * 32])
def test_random_packet_pays_out_everything(engine, create_red_packet, accounts, salt, tokens, token):
    engine.allocator.entropy.salt = salt
    tree = MerkleTree.from_accounts(accounts)
    rp_id = create_red_packet(total=10 ** 18, number=len(accounts), ifrandom=True, merkle_root=tree.root)

    payouts = [
        engine.claim_ordinary_redpacket(rp_id, user, tree.get_proof(i))
        for i, user in enumerate(accounts)
    ]

    assert sum(payouts) == 10 ** 18
    assert all(p > 0 for p in payouts)
    assert tokens.balance_of(token, engine.address) == 0


def test_eth_red_packet(engine, create_red_packet, claim, alice, tokens):
    rp_id = create_red_packet(token_type=TokenType.ETH)
    assert engine.get(rp_id).token_address == ZERO_ADDRESS
    claim(rp_id, alice)
    assert tokens.balance_of(ZERO_ADDRESS, alice) == 100


def test_check_availability(engine, create_red_packet, claim, alice, bob, clock, token):
    rp_id = create_red_packet()
    claim(rp_id, alice)

    availability = engine.check_availability(rp_id, alice)
    assert availability == {
        "token_address": token,
        "balance": 200,
        "total": 3,
        "claimed": 1,
        "expired": False,
        "claimed_amount": 100,
    }
    assert engine.check_availability(rp_id, bob)["claimed_amount"] == 0

    clock.advance(DAY)
    assert engine.check_availability(rp_id, alice)["expired"]


def test_concurrent_claims_never_oversell(engine, create_red_packet, accounts):
    tree = MerkleTree.from_accounts(accounts)
    rp_id = create_red_packet(total=1000, number=5, ifrandom=True, merkle_root=tree.root)

    def attempt(i):
        try:
            return engine.claim_ordinary_redpacket(rp_id, accounts[i], tree.get_proof(i))
        except OutOfStockError:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(len(accounts))))

    paid = [r for r in results if r is not None]
    assert len(paid) == 5
    assert sum(paid) == 1000
    assert engine.get(rp_id).all_claimed
