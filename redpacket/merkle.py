"""
Merkle commitments over claim eligibility.

Two leaf encodings are supported, both hashed with keccak256 over
``abi.encodePacked``:

* balance leaves ``(uint256 index, address account, uint256 amount)`` used by
  the fixed-amount distributor
* account leaves ``(address account)`` used by red packet free claims

Sibling pairs are sorted by byte value before hashing, so a proof is just a
list of siblings with no left/right flags. A lone node at the end of an odd
level is promoted to the next level unchanged.
"""
import json
import os

from web3 import Web3
from eth_abi.packed import encode_packed
from eth_utils import encode_hex

from redpacket.errors import EmptySetError
from redpacket.eth import normalize_address, to_bytes32


def balance_leaf(index, account, amount) -> bytes:
    return Web3.keccak(
        encode_packed(['uint256', 'address', 'uint256'], [int(index), normalize_address(account), int(amount)])
    )


def account_leaf(account) -> bytes:
    return Web3.keccak(encode_packed(['address'], [normalize_address(account)]))


class MerkleTree:
    def __init__(self, leaves, sort_leaves=True):
        self.leaves = [to_bytes32(leaf) for leaf in leaves]
        if not self.leaves:
            raise EmptySetError()
        if sort_leaves:
            self.elements = sorted(set(self.leaves))
        else:
            self.elements = list(self.leaves)
        self.layers = MerkleTree.get_layers(self.elements)

    @classmethod
    def from_balances(cls, entries, sort_leaves=True):
        """Build from ``(index, account, amount)`` tuples."""
        return cls([balance_leaf(*entry) for entry in entries], sort_leaves=sort_leaves)

    @classmethod
    def from_accounts(cls, accounts, sort_leaves=True):
        return cls([account_leaf(account) for account in accounts], sort_leaves=sort_leaves)

    @property
    def root(self):
        return self.layers[-1][0]

    @property
    def hex_root(self):
        return encode_hex(self.root)

    def get_proof(self, leaf_index):
        """Sibling path for the entry at position ``leaf_index`` of the input."""
        if not 0 <= leaf_index < len(self.leaves):
            raise IndexError(f'Leaf index {leaf_index} out of range for {len(self.leaves)} leaves')
        return self._sibling_path(self.elements.index(self.leaves[leaf_index]))

    def get_proof_for_leaf(self, leaf):
        return self._sibling_path(self.elements.index(to_bytes32(leaf)))

    def _sibling_path(self, position):
        proof = []
        for level in self.layers[:-1]:
            sibling = position ^ 1
            # the lone node of an odd level has no sibling to record
            if sibling < len(level):
                proof.append(encode_hex(level[sibling]))
            position >>= 1
        return proof

    @staticmethod
    def verify(leaf, proof, root) -> bool:
        """
        Recompute the root from ``leaf`` and its sibling path.

        Never raises: a malformed leaf, proof element or root is simply a
        failed verification.
        """
        try:
            node = to_bytes32(leaf)
            for item in proof:
                node = MerkleTree.combined_hash(node, to_bytes32(item))
            return node == to_bytes32(root)
        except (ValueError, TypeError):
            return False

    @staticmethod
    def get_layers(elements):
        layers = [list(elements)]
        while len(layers[-1]) > 1:
            level = layers[-1]
            layers.append([
                MerkleTree.combined_hash(level[i], level[i + 1]) if i + 1 < len(level) else level[i]
                for i in range(0, len(level), 2)
            ])
        return layers

    @staticmethod
    def combined_hash(a, b):
        return bytes(Web3.keccak(min(a, b) + max(a, b)))


def build_tree(entries, sort_leaves=True):
    """
    Build a tree from either balance tuples or bare accounts.

    ``entries`` must be homogeneous: all ``(index, account, amount)`` tuples
    or all account strings.
    """
    entries = list(entries)
    if not entries:
        raise EmptySetError()
    if isinstance(entries[0], (tuple, list)):
        return MerkleTree.from_balances(entries, sort_leaves=sort_leaves)
    return MerkleTree.from_accounts(entries, sort_leaves=sort_leaves)


def merge_balances(balances):
    """
    Normalize accounts and sum the amounts of entries that name the same
    account under different spellings. First-seen order is kept.
    """
    items = balances.items() if isinstance(balances, dict) else balances
    merged = {}
    for account, amount in items:
        account = normalize_address(account)
        merged[account] = merged.get(account, 0) + int(amount)
    return merged


def build_distribution(balances, description=''):
    """
    Build the claims document for a fixed-amount distribution.

    Args:
        balances: mapping of account -> amount, or iterable of (account, amount).
                  Leaf indices follow input order; repeated accounts are merged
                  into the index of their first appearance.
        description: optional name stored alongside the root

    Returns:
        Dict with merkle_root, token_total, num_recipients and per-account claims
    """
    merged = merge_balances(balances)
    if not merged:
        raise EmptySetError()

    elements = [(index, account, amount) for index, (account, amount) in enumerate(merged.items())]
    tree = MerkleTree.from_balances(elements)

    return {
        "description": description,
        "merkle_root": tree.hex_root,
        "token_total": str(sum(merged.values())),
        "num_recipients": len(elements),
        "claims": {
            account: {
                "index": index,
                "amount": str(amount),
                "proof": tree.get_proof(index),
            }
            for index, account, amount in elements
        },
    }


def build_claimer_list(accounts, description=''):
    """Build the claims document for a red packet whose leaves are bare accounts."""
    accounts = list(dict.fromkeys(normalize_address(account) for account in accounts))
    if not accounts:
        raise EmptySetError()
    tree = MerkleTree.from_accounts(accounts)

    return {
        "description": description,
        "merkle_root": tree.hex_root,
        "num_recipients": len(accounts),
        "claims": {
            account: {"proof": tree.get_proof(index)}
            for index, account in enumerate(accounts)
        },
    }


def write_distribution(distribution, path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(distribution, f, indent=4)


def load_distribution(path):
    with open(path, 'r') as f:
        return json.load(f)
