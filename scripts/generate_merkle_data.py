"""
Merkle data generator for red packets and fixed-amount distributors.

Usage:
    python -m scripts.generate_merkle_data data/sources/claimer_list.json --name my_drop

The claimer list is either a JSON list of addresses (red packet, one leaf per
account) or a JSON object mapping address -> amount (distributor, one
``(index, account, amount)`` leaf per entry, indexed in file order). Without
an argument the list is read from data/sources/claimer_list.json.
"""
import json
import os
import sys

import click
from dotenv import load_dotenv

from config import Config
from redpacket.errors import EmptySetError
from redpacket.merkle import build_claimer_list, build_distribution, write_distribution
from redpacket.utils import format_amount, func_timer, median

load_dotenv()


def load_claimer_list(path):
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, (list, dict)):
        raise ValueError(f'{path} must hold a JSON list of addresses or an object of address -> amount')
    return data


@func_timer
def generate(claimers, description=''):
    if isinstance(claimers, dict):
        return build_distribution(claimers, description=description)
    return build_claimer_list(claimers, description=description)


def print_statistics(distribution, decimals):
    amounts = sorted((int(c['amount']) for c in distribution['claims'].values()), reverse=True)

    click.echo("\n" + click.style("━" * 70, fg='cyan'))
    click.echo(click.style("  DISTRIBUTION STATISTICS", fg='cyan', bold=True))
    click.echo(click.style("━" * 70, fg='cyan'))
    click.echo(f"  Total Recipients:  {len(amounts):,}")
    click.echo(f"  Token Total:       {format_amount(int(distribution['token_total']), decimals)}")
    click.echo(f"  Maximum Amount:    {format_amount(amounts[0], decimals)}")
    click.echo(f"  Average Amount:    {format_amount(sum(amounts) // len(amounts), decimals)}")
    click.echo(f"  Median Amount:     {format_amount(int(median(amounts)), decimals)}")
    click.echo(f"  Minimum Amount:    {format_amount(amounts[-1], decimals)}")
    click.echo(click.style("━" * 70, fg='cyan'))


@click.command()
@click.argument('claimer_list', type=click.Path(exists=True, dir_okay=False), default=Config.CLAIMER_LIST_FILE, required=False)
@click.option('--name', default='redpacket', show_default=True, help='Distribution name used for the default output file.')
@click.option('--output', 'output_path', default=None, help='Output path (defaults to data/merkle/merkle_data_<name>.json).')
@click.option('--description', default='', help='Description stored alongside the root.')
@click.option('--decimals', default=18, show_default=True, help='Token decimals used when printing amounts.')
@click.option('--force', is_flag=True, help='Overwrite an existing output file without asking.')
def main(claimer_list, name, output_path, description, decimals, force):
    merkle_output = output_path or Config.get_merkle_file(name)

    try:
        claimers = load_claimer_list(claimer_list)
    except (OSError, ValueError) as e:
        click.echo(f"Error: Could not read claimer list: {e}")
        sys.exit(1)

    click.echo(f"Loaded {len(claimers)} claimers from {claimer_list}")

    if os.path.exists(merkle_output) and not force:
        click.echo(f"\n⚠️  WARNING: {merkle_output} already exists!")
        if not click.confirm('Overwrite existing merkle distribution?', default=False):
            click.echo("Cancelled.")
            return

    try:
        distribution = generate(claimers, description=description)
    except (EmptySetError, ValueError) as e:
        click.echo(f"Error building merkle tree: {e}")
        sys.exit(1)

    write_distribution(distribution, merkle_output)

    click.echo(f"\n✓ Merkle distribution written to {merkle_output}")
    click.echo(f"✓ Merkle root: {distribution['merkle_root']}")
    click.echo(f"✓ {len(distribution['claims'])} claims generated")

    if 'token_total' in distribution:
        print_statistics(distribution, decimals)


if __name__ == '__main__':
    main()
