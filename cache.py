# cache.py
import collections
import enum
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)
# One line per access when enabled; main.py routes it to stdout.
access_log = logging.getLogger("cache.access")


class CacheSimError(Exception):
    """Base class for simulator errors."""


class ConfigurationError(CacheSimError, ValueError):
    """Malformed cache geometry or replacement policy."""


class TraceIOError(CacheSimError, OSError):
    """Trace file missing or unreadable."""


class Policy(enum.Enum):
    LRU = "LRU"
    FIFO = "FIFO"

    @classmethod
    def parse(cls, name):
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).upper())
        except ValueError:
            raise ConfigurationError(
                f"unknown replacement policy {name!r} (expected LRU or FIFO)"
            ) from None


class Outcome(enum.Enum):
    HIT = "HIT"
    MISS_COMPULSORY = "MISS (Compulsory)"
    MISS_CONFLICT = "MISS (Conflict)"
    MISS_CAPACITY = "MISS (Capacity)"

    @property
    def is_hit(self):
        return self is Outcome.HIT


def _exact_log2(n):
    if n <= 0 or n & (n - 1):
        return None
    return n.bit_length() - 1


@dataclass(frozen=True)
class CacheGeometry:
    """
    Shape of the simulated cache. All sizes are in bytes.
    Validated on construction; derived bit widths are filled in afterwards.
    """

    cache_size: int = 32768
    block_size: int = 64
    associativity: int = 4
    address_bits: int = 32

    num_sets: int = field(init=False)
    offset_bits: int = field(init=False)
    index_bits: int = field(init=False)
    tag_bits: int = field(init=False)

    def __post_init__(self):
        if self.block_size <= 0:
            raise ConfigurationError("block_size must be > 0")
        if self.associativity <= 0:
            raise ConfigurationError("associativity must be > 0")
        if self.cache_size <= 0 or self.cache_size % (self.block_size * self.associativity) != 0:
            raise ConfigurationError(
                "cache_size must be divisible by (block_size * associativity)"
            )

        offset_bits = _exact_log2(self.block_size)
        if offset_bits is None:
            raise ConfigurationError(f"block_size {self.block_size} is not a power of two")

        num_sets = self.cache_size // (self.block_size * self.associativity)
        index_bits = _exact_log2(num_sets)
        if index_bits is None:
            raise ConfigurationError(f"number of sets {num_sets} is not a power of two")

        tag_bits = self.address_bits - index_bits - offset_bits
        if tag_bits < 0:
            raise ConfigurationError(
                f"address_bits {self.address_bits} too small for "
                f"{index_bits} index bits and {offset_bits} offset bits"
            )

        # frozen dataclass: derived fields have to go through object.__setattr__
        object.__setattr__(self, "num_sets", num_sets)
        object.__setattr__(self, "offset_bits", offset_bits)
        object.__setattr__(self, "index_bits", index_bits)
        object.__setattr__(self, "tag_bits", tag_bits)

    @property
    def num_blocks(self):
        return self.cache_size // self.block_size

    @property
    def address_mask(self):
        return (1 << self.address_bits) - 1

    def decompose(self, address):
        """
        Split `address` into (tag, set_index, block_id).
        Bits above `address_bits` are dropped before decoding.
        """
        block_id = (address & self.address_mask) >> self.offset_bits
        set_index = block_id & (self.num_sets - 1)
        tag = block_id >> self.index_bits
        return tag, set_index, block_id

    def as_dict(self):
        return {
            "cache_size": self.cache_size,
            "block_size": self.block_size,
            "associativity": self.associativity,
            "address_bits": self.address_bits,
            "num_sets": self.num_sets,
            "offset_bits": self.offset_bits,
            "index_bits": self.index_bits,
            "tag_bits": self.tag_bits,
        }


class ReplacementSet:
    """
    One cache set. Tags are kept in an OrderedDict, leftmost = oldest.
    LRU refreshes a tag on touch, FIFO keeps insertion order.
    """

    def __init__(self, capacity, policy=Policy.LRU):
        self.capacity = capacity
        self.policy = Policy.parse(policy)
        self._order = collections.OrderedDict()

    def __len__(self):
        return len(self._order)

    def __contains__(self, tag):
        return tag in self._order

    def contains(self, tag):
        return tag in self._order

    def tags(self):
        """Resident tags, oldest first."""
        return list(self._order)

    def touch(self, tag):
        if self.policy is Policy.LRU and tag in self._order:
            self._order.move_to_end(tag)

    def insert(self, tag):
        """
        Place `tag` at the newest position. Returns the evicted tag, or None.
        Inserting a resident tag changes nothing.
        """
        if tag in self._order:
            logger.debug("insert of resident tag %#x ignored", tag)
            return None
        evicted = None
        if len(self._order) >= self.capacity:
            # evict the oldest entry (first key), same rule for LRU and FIFO
            evicted, _ = self._order.popitem(last=False)
        self._order[tag] = True
        return evicted


class ReferenceCache:
    """
    Fully-associative LRU cache of block ids.
    Only used to tell conflict misses from capacity misses.
    A capacity of 0 means unbounded.
    """

    def __init__(self, capacity):
        self.capacity = capacity
        self._order = collections.OrderedDict()

    def __len__(self):
        return len(self._order)

    def __contains__(self, block_id):
        return block_id in self._order

    def access(self, block_id):
        """Return True on hit. Updates LRU state either way."""
        if block_id in self._order:
            self._order.move_to_end(block_id)
            return True
        if 0 < self.capacity <= len(self._order):
            self._order.popitem(last=False)
        self._order[block_id] = True
        return False


@dataclass
class RunStatistics:
    accesses: int = 0
    hits: int = 0
    misses: int = 0
    miss_compulsory: int = 0
    miss_conflict: int = 0
    miss_capacity: int = 0

    @property
    def hit_rate(self):
        """Hit rate in percent, 0.0 before any access."""
        return 100.0 * self.hits / self.accesses if self.accesses else 0.0

    def as_dict(self):
        return {
            "accesses": self.accesses,
            "hits": self.hits,
            "misses": self.misses,
            "miss_compulsory": self.miss_compulsory,
            "miss_conflict": self.miss_conflict,
            "miss_capacity": self.miss_capacity,
            "hit_rate": self.hit_rate,
        }


class CacheSimulator:
    """
    Set-associative cache with miss classification.

    Every access is replayed against a reference cache (fully associative,
    same number of lines, LRU). A repeat miss the reference would have hit
    is a conflict miss; one it also misses is a capacity miss.
    Any object with ``access(block_id) -> bool`` can stand in as `reference`.
    """

    def __init__(self, geometry, policy=Policy.LRU, reference=None):
        if not isinstance(geometry, CacheGeometry):
            raise ConfigurationError("geometry must be a CacheGeometry")
        self.geometry = geometry
        self.policy = Policy.parse(policy)
        self.sets = [
            ReplacementSet(geometry.associativity, self.policy)
            for _ in range(geometry.num_sets)
        ]
        if reference is None:
            reference = ReferenceCache(geometry.num_sets * geometry.associativity)
        self.reference = reference
        self.seen_blocks = set()
        self.stats = RunStatistics()

    def access(self, address):
        """
        Simulate one access. Returns (hit, Outcome).
        """
        stats = self.stats
        stats.accesses += 1
        tag, index, block_id = self.geometry.decompose(address)

        first_reference = block_id not in self.seen_blocks
        if first_reference:
            self.seen_blocks.add(block_id)

        s = self.sets[index]
        if s.contains(tag):
            stats.hits += 1
            if self.policy is Policy.LRU:
                s.touch(tag)
            # keep the reference in step; its answer does not matter here
            self.reference.access(block_id)
            outcome = Outcome.HIT
        else:
            stats.misses += 1
            fa_hit = self.reference.access(block_id)
            if first_reference:
                stats.miss_compulsory += 1
                outcome = Outcome.MISS_COMPULSORY
            elif fa_hit:
                stats.miss_conflict += 1
                outcome = Outcome.MISS_CONFLICT
            else:
                stats.miss_capacity += 1
                outcome = Outcome.MISS_CAPACITY
            s.insert(tag)

        if access_log.isEnabledFor(logging.DEBUG):
            access_log.debug("0x%08x  set=%2d tag=%d  => %s", address, index, tag, outcome.value)
        return outcome.is_hit, outcome

    def run(self, addresses):
        """Replay `addresses` in order. Returns the run statistics."""
        for addr in addresses:
            self.access(addr)
        return self.stats
