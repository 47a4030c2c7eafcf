import pytest
from web3 import Web3

from redpacket.allocator import RedPacketAllocator
from redpacket.distributor import MerkleDistributorFactory
from redpacket.engine import RedPacketEngine
from redpacket.entropy import KeccakEntropySource
from redpacket.eth import ZERO_ADDRESS, ZERO_BYTES32
from redpacket.merkle import MerkleTree
from redpacket.models import TokenType
from redpacket.refund import ManualClock, RefundPolicy
from redpacket.token import InMemoryTokenLedger
from redpacket.verifier import ZkProof

START_TIME = 1_700_000_000
DAY = 60 * 60 * 24

# hardhat's default signers
ACCOUNTS = [
    '0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266',
    '0x70997970c51812dc3a010c7d01b50e0d17dc79c8',
    '0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc',
    '0x90f79bf6eb2c4f870365e785982e1f101e93b906',
    '0x15d34aaf54267db7d7c367839aaf71a00a2c6a65',
    '0x9965507d1a55bcc2695c58ba16fb37d819b0a4dc',
    '0x976ea74026e726554db657fa54763abd0c3a0aa9',
    '0x14dc79964da2c08b23698b3d3cc7ca32193d9955',
]


def password_hash(password):
    """Stand-in for the Poseidon commitment the circuit exposes."""
    return int.from_bytes(Web3.keccak(text=password), 'big') >> 8


def password_lock(password):
    return password_hash(password).to_bytes(32, 'big')


def make_zk_proof(password):
    return ZkProof(a=(password_hash(password), 1), b=((2, 3), (4, 5)), c=(6, 7))


class StubVerifier:
    """Accepts a proof when its ``a`` point carries the public signal."""

    def __init__(self):
        self.calls = []

    def verify_proof(self, a, b, c, public_signals):
        self.calls.append((a, b, c, list(public_signals)))
        return a[0] == public_signals[0]


@pytest.fixture
def accounts():
    yield [Web3.to_checksum_address(a) for a in ACCOUNTS]


@pytest.fixture
def owner(accounts):
    yield accounts[0]


@pytest.fixture
def alice(accounts):
    yield accounts[1]


@pytest.fixture
def bob(accounts):
    yield accounts[2]


@pytest.fixture
def charlie(accounts):
    yield accounts[3]


@pytest.fixture
def token():
    yield Web3.to_checksum_address('0x5fbdb2315678afecb367f032d93f642f64180aa3')


@pytest.fixture
def clock():
    yield ManualClock(START_TIME)


@pytest.fixture
def tokens(clock):
    yield InMemoryTokenLedger(clock=clock)


@pytest.fixture
def verifier():
    yield StubVerifier()


@pytest.fixture
def allocator():
    yield RedPacketAllocator(entropy=KeccakEntropySource(ZERO_BYTES32), minimum_unit_share=1)


@pytest.fixture
def engine(tokens, clock, allocator, verifier):
    yield RedPacketEngine(tokens, allocator=allocator, verifier=verifier, policy=RefundPolicy(clock))


@pytest.fixture
def factory(tokens, clock):
    yield MerkleDistributorFactory(tokens, policy=RefundPolicy(clock))


@pytest.fixture
def claimers(owner, alice, bob):
    yield [owner, alice, bob]


@pytest.fixture
def claimer_tree(claimers):
    yield MerkleTree.from_accounts(claimers)


@pytest.fixture
def create_red_packet(engine, tokens, token, owner, claimer_tree):
    """
    Fixture that returns a factory function to create red packets with sensible defaults.

    Usage: rp_id = create_red_packet()  # 300 tokens, 3 packets, even split
           rp_id = create_red_packet(total=1000, ifrandom=True)  # Custom
    """
    def _create_red_packet(
            total=300,
            number=3,
            ifrandom=False,
            duration=DAY,
            lock=ZERO_BYTES32,
            message='some message',
            creator=owner,
            merkle_root=None,
            token_type=TokenType.ERC20,
        ):

        token_address = token if token_type == TokenType.ERC20 else ZERO_ADDRESS
        tokens.mint(token_address, creator, total)
        if token_type == TokenType.ERC20:
            tokens.approve(token_address, creator, engine.address, total)

        return engine.create_red_packet(
            creator,
            merkle_root if merkle_root is not None else claimer_tree.root,
            lock,
            number,
            ifrandom,
            duration,
            message,
            'Redpacket Name',
            token_type,
            token_address,
            total,
        )

    return _create_red_packet


@pytest.fixture
def claim(engine, claimer_tree, claimers):
    """Claim an ordinary red packet as ``user`` with the proof from ``claimer_tree``."""
    def _claim(redpacket_id, user):
        proof = claimer_tree.get_proof(claimers.index(user))
        return engine.claim_ordinary_redpacket(redpacket_id, user, proof)

    return _claim
