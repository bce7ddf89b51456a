# visualize.py
import os

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np


def _prepare(outpath):
    d = os.path.dirname(outpath)
    if d:
        os.makedirs(d, exist_ok=True)


def _label(row):
    return f"{row['cache_size'] // 1024}K/{row['block_size']}B/{row['associativity']}w {row['policy']}"


def plot_hit_miss_rate(stats, outpath):
    """Pie of hits and the three miss kinds for one run."""
    _prepare(outpath)
    plt.figure(figsize=(5, 5))
    labels = ['Hit', 'Compulsory', 'Conflict', 'Capacity']
    sizes = [stats.hits, stats.miss_compulsory, stats.miss_conflict, stats.miss_capacity]
    # pie() cannot draw all-zero wedges
    if sum(sizes) == 0:
        sizes = [1, 0, 0, 0]
    plt.pie(sizes, labels=labels, autopct='%1.1f%%')
    plt.title(f"Cache Hit/Miss Breakdown (hit rate {stats.hit_rate:.2f}%)")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()


def plot_miss_breakdown(rows, outpath):
    """Stacked bars of miss kinds, one bar per configuration."""
    _prepare(outpath)
    x = np.arange(len(rows))
    compulsory = np.array([r["miss_compulsory"] for r in rows])
    conflict = np.array([r["miss_conflict"] for r in rows])
    capacity = np.array([r["miss_capacity"] for r in rows])

    plt.figure(figsize=(max(6, len(rows) * 0.6), 4))
    plt.bar(x, compulsory, label="Compulsory")
    plt.bar(x, conflict, bottom=compulsory, label="Conflict")
    plt.bar(x, capacity, bottom=compulsory + conflict, label="Capacity")
    plt.xticks(x, [_label(r) for r in rows], rotation=45, ha="right")
    plt.ylabel("Misses")
    plt.title("Miss Breakdown per Configuration")
    plt.legend()
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()


def plot_hit_rate_vs_size(rows, outpath):
    """Hit rate against cache size, one line per (block size, associativity, policy)."""
    _prepare(outpath)
    series = {}
    for r in rows:
        key = (r["block_size"], r["associativity"], r["policy"])
        series.setdefault(key, []).append((r["cache_size"], r["hit_rate"]))

    plt.figure(figsize=(8, 4))
    for (block, assoc, policy), points in sorted(series.items()):
        points.sort()
        sizes = np.array([p[0] for p in points]) / 1024.0
        rates = [p[1] for p in points]
        plt.plot(sizes, rates, marker='o', label=f"{block}B {assoc}-way {policy}")
    plt.xscale("log", base=2)
    plt.xlabel("Cache size (KB)")
    plt.ylabel("Hit rate (%)")
    plt.title("Hit Rate vs Cache Size")
    plt.grid(True)
    if series:
        plt.legend()
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()
