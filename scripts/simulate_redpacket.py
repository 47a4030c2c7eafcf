"""
Dry-run a red packet against an in-memory token ledger.

Usage:
    python -m scripts.simulate_redpacket data/sources/claimer_list.json --total 300 --number 3 --even

Every claimer in the list claims in file order with its merkle proof. With
--refund the clock is moved past expiry and the creator takes back whatever
is left. Events are indexed and optionally cached to disk. The claimer list
defaults to data/sources/claimer_list.json; --salt random draws the split
from system randomness instead of a replayable salt.
"""
import json
import sys

import click
from dotenv import load_dotenv

from config import Config
from redpacket.allocator import RedPacketAllocator
from redpacket.engine import RedPacketEngine
from redpacket.entropy import KeccakEntropySource, SystemEntropySource
from redpacket.errors import RedPacketError
from redpacket.eth import ZERO_BYTES32, short_hex, timestamp_to_date_string
from redpacket.indexer import RedPacketIndex
from redpacket.merkle import MerkleTree
from redpacket.models import TokenType
from redpacket.refund import ManualClock, RefundPolicy, SystemClock
from redpacket.token import InMemoryTokenLedger

load_dotenv()

SIM_CREATOR = '0x1111111111111111111111111111111111111111'
SIM_TOKEN = '0x2222222222222222222222222222222222222222'
RANDOM_SALT = 'random'


def run_simulation(claimers, total, number, ifrandom, duration, salt, refund, message='simulated red packet'):
    """
    Create a red packet over ``claimers``, let each of them claim, and
    optionally refund after expiry.

    Returns:
        Tuple of (engine, redpacket_id, payouts) where payouts maps claimer -> amount
        or the RedPacketError message that rejected the claim
    """
    entropy = SystemEntropySource() if salt == RANDOM_SALT else KeccakEntropySource(salt)
    clock = ManualClock(SystemClock().now())
    tokens = InMemoryTokenLedger(clock=clock)
    engine = RedPacketEngine(
        tokens,
        allocator=RedPacketAllocator(entropy=entropy),
        policy=RefundPolicy(clock),
    )

    tree = MerkleTree.from_accounts(claimers)
    tokens.mint(SIM_TOKEN, SIM_CREATOR, total)
    tokens.approve(SIM_TOKEN, SIM_CREATOR, engine.address, total)
    redpacket_id = engine.create_red_packet(
        SIM_CREATOR, tree.root, ZERO_BYTES32, number, ifrandom, duration,
        message, 'simulation', TokenType.ERC20, SIM_TOKEN, total,
    )

    payouts = {}
    for index, claimer in enumerate(claimers):
        try:
            payouts[claimer] = engine.claim_ordinary_redpacket(redpacket_id, claimer, tree.get_proof(index))
        except RedPacketError as e:
            payouts[claimer] = str(e)

    if refund:
        clock.advance(duration)
        try:
            payouts[SIM_CREATOR] = engine.refund(redpacket_id, SIM_CREATOR)
        except RedPacketError as e:
            payouts[SIM_CREATOR] = str(e)

    return engine, redpacket_id, payouts


@click.command()
@click.argument('claimer_list', type=click.Path(exists=True, dir_okay=False), default=Config.CLAIMER_LIST_FILE, required=False)
@click.option('--total', type=int, required=True, help='Total tokens, in base units.')
@click.option('--number', type=int, default=None, help='Packet count (defaults to the number of claimers).')
@click.option('--random/--even', 'ifrandom', default=True, show_default=True, help='Split mode.')
@click.option('--duration', type=int, default=Config.DEFAULT_DURATION, show_default=True, help='Seconds until expiry.')
@click.option('--salt', default=None, help=f'bytes32 entropy salt, or "{RANDOM_SALT}" for system randomness (defaults to REDPACKET_ENTROPY_SALT).')
@click.option('--refund', is_flag=True, help='Advance past expiry and refund the creator.')
@click.option('--save-index', is_flag=True, help='Write the event index to the cache file.')
def main(claimer_list, total, number, ifrandom, duration, salt, refund, save_index):
    with open(claimer_list, 'r') as f:
        claimers = json.load(f)
    if not isinstance(claimers, list) or not claimers:
        click.echo("Error: claimer list must be a non-empty JSON list of addresses")
        sys.exit(1)

    number = number or len(claimers)
    salt = salt or Config.get_entropy_salt()

    try:
        engine, redpacket_id, payouts = run_simulation(claimers, total, number, ifrandom, duration, salt, refund)
    except (RedPacketError, ValueError) as e:
        click.echo(f"Error creating red packet: {e}")
        sys.exit(1)

    distribution = engine.get(redpacket_id)
    click.echo("\n" + click.style("=" * 70, fg='cyan'))
    click.echo(click.style("  RED PACKET", fg='cyan', bold=True))
    click.echo(click.style("=" * 70, fg='cyan'))
    click.echo(f"  Id:         {short_hex(redpacket_id, 18)}")
    click.echo(f"  Total:      {total}")
    click.echo(f"  Packets:    {number} ({'random' if ifrandom else 'even'} split)")
    click.echo(f"  Created:    {timestamp_to_date_string(distribution.creation_time)}")
    click.echo(f"  Expires:    {timestamp_to_date_string(distribution.expire_timestamp)}")
    click.echo(click.style("=" * 70, fg='cyan'))

    for account, result in payouts.items():
        if isinstance(result, int):
            click.echo(f"  ✓ {account}: {result}")
        else:
            click.echo(click.style(f"  ✗ {account}: {result}", fg='yellow'))

    click.echo(f"\nState: {engine.state(redpacket_id).value}")
    click.echo(f"Remaining: {distribution.remaining_amount} in {distribution.remaining_packets} packets")

    index = RedPacketIndex()
    index.scan(engine.events)
    if save_index:
        index.save_cache()
        click.echo(f"\n✓ Event index written to {index.cache_file}")


if __name__ == '__main__':
    main()
