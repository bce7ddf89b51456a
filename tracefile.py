# tracefile.py
import logging
import os

import numpy as np

from cache import TraceIOError

logger = logging.getLogger(__name__)

PATTERNS = ("sequential", "random", "mixed", "conflict")


def parse_token(token):
    """
    Parse one address token: 0x/0X prefix is hex, anything else decimal.
    Only plain digits are accepted; signs and underscores are rejected.
    """
    if token[:2] in ("0x", "0X"):
        digits, base = token[2:], 16
    else:
        digits, base = token, 10
    if not digits or not digits.isascii() or not digits.isalnum():
        raise ValueError(f"malformed address {token!r}")
    return int(digits, base)


def iter_addresses(lines):
    """
    Yield addresses from an iterable of trace lines.
    Comments (#...) and blank lines are ignored; bad tokens are skipped.
    """
    for lineno, line in enumerate(lines, start=1):
        token = line.split("#", 1)[0].strip()
        if not token:
            continue
        try:
            yield parse_token(token)
        except ValueError:
            logger.warning("skipping unparsable line %d: '%s'", lineno, token)


def read_trace(path):
    """Load every address from the trace file at `path`."""
    try:
        # undecodable bytes become U+FFFD and fail parse_token like any bad token
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return list(iter_addresses(f))
    except OSError as e:
        raise TraceIOError(f"could not open trace file '{path}': {e.strerror or e}") from e


def generate_trace(pattern="mixed", num_accesses=10000, working_set_kb=64,
                   block_size=64, stride_blocks=1, conflict_stride=None, random_seed=None):
    """
    Build a synthetic byte-address trace.

    sequential: walk the working set block by block, wrapping around
    random:     uniform blocks from the working set
    mixed:      80% sequential walk, 20% random
    conflict:   cycle over a few blocks `conflict_stride` bytes apart, so they
                all land in the same set of a cache that size
    """
    if pattern not in PATTERNS:
        raise ValueError(f"unknown trace pattern {pattern!r}")
    rng = np.random.default_rng(random_seed)
    num_blocks = max(1, int(working_set_kb * 1024) // block_size)

    if pattern == "sequential":
        blocks = (np.arange(num_accesses) * stride_blocks) % num_blocks
    elif pattern == "random":
        blocks = rng.integers(0, num_blocks, size=num_accesses)
    elif pattern == "mixed":
        seq = (np.arange(num_accesses) * stride_blocks) % num_blocks
        rand = rng.integers(0, num_blocks, size=num_accesses)
        blocks = np.where(rng.random(num_accesses) < 0.8, seq, rand)
    else:
        stride = conflict_stride or working_set_kb * 1024
        # one more line than a 4-way set holds
        ways = 5
        return [int(i % ways) * stride for i in range(num_accesses)]

    return [int(b) * block_size for b in blocks]


def write_trace(addresses, path, comment=None):
    """Write `addresses` one per line as hex."""
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    with open(path, "w") as f:
        if comment:
            f.write(f"# {comment}\n")
        for addr in addresses:
            f.write(f"0x{addr:x}\n")
    return path
