import time
from functools import wraps

import click


def func_timer(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = f(*args, **kwargs)
        click.echo(f'{f.__name__} took {time.perf_counter() - start:.2f} seconds to execute')
        return result
    return wrapper


def format_amount(amount: int, decimals: int = 18) -> str:
    return f'{amount / 10 ** decimals:,.4f}'


def median(values):
    values = sorted(values)
    n = len(values)
    if n == 0:
        return 0
    if n % 2 == 1:
        return values[n // 2]
    return (values[n // 2 - 1] + values[n // 2]) / 2
