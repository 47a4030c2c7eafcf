"""
Boundary to the zk password verifier.

A password-locked red packet stores ``hash_lock``, the Poseidon hash of the
password. Claimers prove knowledge of the preimage with a Groth16 proof; the
engine only asks an external verifier whether ``(a, b, c)`` is valid for the
single public signal ``uint256(hash_lock)``.
"""
import re
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple

from redpacket.errors import ProofVerificationFailedError
from redpacket.eth import to_bytes32


class ProofVerifier(Protocol):
    def verify_proof(self, a, b, c, public_signals: Sequence[int]) -> bool:
        ...


@dataclass(frozen=True)
class ZkProof:
    a: Tuple[int, int]
    b: Tuple[Tuple[int, int], Tuple[int, int]]
    c: Tuple[int, int]


def hash_lock_signal(hash_lock) -> int:
    return int.from_bytes(to_bytes32(hash_lock), 'big')


def _to_int(value: str) -> int:
    return int(value, 16) if value.lower().startswith('0x') else int(value)


def parse_solidity_calldata(calldata: str) -> Tuple[ZkProof, List[int]]:
    """
    Split snarkjs ``exportSolidityCallData`` output into a proof and its inputs.

    The export is a flat list ``a0, a1, b00, b01, b10, b11, c0, c1, inputs...``
    wrapped in brackets and quotes.
    """
    argv = [x for x in re.sub(r'["\[\]\s]', '', calldata).split(',') if x]
    if len(argv) < 8:
        raise ValueError(f'Expected at least 8 calldata values, got {len(argv)}')
    values = [_to_int(x) for x in argv]
    proof = ZkProof(
        a=(values[0], values[1]),
        b=((values[2], values[3]), (values[4], values[5])),
        c=(values[6], values[7]),
    )
    return proof, values[8:]


def require_password_proof(verifier: ProofVerifier, hash_lock, proof: ZkProof) -> None:
    """
    Raises:
        ProofVerificationFailedError: no proof given, or the verifier rejects it
    """
    if proof is None:
        raise ProofVerificationFailedError('Password proof required')
    if not verifier.verify_proof(proof.a, proof.b, proof.c, [hash_lock_signal(hash_lock)]):
        raise ProofVerificationFailedError()
