# report.py
import json
import os


def format_summary(sim):
    """Return the end-of-run summary for a CacheSimulator as text."""
    g = sim.geometry
    s = sim.stats
    lines = [
        "",
        "=== Simulation Summary ===",
        f"Cache size: {g.cache_size} bytes   Block size: {g.block_size} bytes   "
        f"Associativity: {g.associativity}-way   Num sets: {g.num_sets}",
        f"Replacement policy: {sim.policy.value}",
        f"Address decomposition: offset_bits={g.offset_bits} "
        f"index_bits={g.index_bits} tag_bits={g.tag_bits}",
        f"Accesses: {s.accesses}  Hits: {s.hits}  Misses: {s.misses}  "
        f"Hit rate: {s.hit_rate:.2f}%",
        f"Miss breakdown: Compulsory={s.miss_compulsory}  "
        f"Conflict={s.miss_conflict}  Capacity={s.miss_capacity}",
    ]
    return "\n".join(lines)


def print_summary(sim, out=None):
    print(format_summary(sim), file=out)


def result_row(sim):
    """Flat dict of geometry, policy and counters for one run."""
    row = sim.geometry.as_dict()
    row["policy"] = sim.policy.value
    row.update(sim.stats.as_dict())
    return row


def save_results(data, path):
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path
