# benchmark.py
import itertools
import json
import logging
import os
import sys
import threading
import time

from cache import CacheGeometry, CacheSimulator, ConfigurationError, Policy
from report import result_row, save_results
from tracefile import generate_trace, read_trace

logger = logging.getLogger(__name__)


def load_config(path="config.json"):
    with open(path, "r") as f:
        return json.load(f)


class BenchmarkRunner:
    """
    Runs one trace through every cache configuration of a parameter sweep.
    Each configuration gets its own simulator, so workers share nothing but
    the (read-only) trace and the result list.
    """

    def __init__(self, cfg):
        self.cfg = cfg
        trace_cfg = cfg.get("trace", {})
        if trace_cfg.get("path"):
            self.trace = read_trace(trace_cfg["path"])
            self.trace_name = trace_cfg["path"]
        else:
            pattern = trace_cfg.get("pattern", "mixed")
            self.trace = generate_trace(
                pattern=pattern,
                num_accesses=trace_cfg.get("num_accesses", 10000),
                working_set_kb=trace_cfg.get("working_set_kb", 64),
                block_size=trace_cfg.get("block_size", 64),
                random_seed=trace_cfg.get("random_seed", None),
            )
            self.trace_name = f"synthetic:{pattern}"

        sweep_cfg = cfg.get("sweep", {})
        self.num_threads = max(1, sweep_cfg.get("num_threads", 4))
        self.configs = []
        for size, block, assoc, policy, bits in itertools.product(
            sweep_cfg.get("cache_sizes", [32768]),
            sweep_cfg.get("block_sizes", [64]),
            sweep_cfg.get("associativities", [4]),
            sweep_cfg.get("policies", ["LRU"]),
            sweep_cfg.get("address_bits", [32]),
        ):
            try:
                geometry = CacheGeometry(size, block, assoc, bits)
                policy = Policy.parse(policy)
            except ConfigurationError as e:
                logger.warning("skipping cache_size=%s block_size=%s assoc=%s policy=%s: %s",
                               size, block, assoc, policy, e)
                continue
            self.configs.append((geometry, policy))

        self.results_lock = threading.Lock()
        self.results = {}

    def _worker(self, jobs):
        local = {}
        for i, (geometry, policy) in jobs:
            sim = CacheSimulator(geometry, policy)
            sim.run(self.trace)
            local[i] = result_row(sim)
        with self.results_lock:
            self.results.update(local)

    def run(self):
        """Simulate all configurations. Returns (rows, summary)."""
        jobs = list(enumerate(self.configs))
        threads = []
        start = time.time()
        for t_id in range(self.num_threads):
            t = threading.Thread(target=self._worker, args=(jobs[t_id::self.num_threads],))
            t.start()
            threads.append(t)
        for t in threads:
            t.join()
        end = time.time()

        # configuration order, whichever thread finished first
        rows = [self.results[i] for i in sorted(self.results)]
        best = max(rows, key=lambda r: r["hit_rate"]) if rows else None
        summary = {
            "trace": self.trace_name,
            "trace_length": len(self.trace),
            "configurations": len(rows),
            "best_hit_rate": best["hit_rate"] if best else 0.0,
            "best_configuration": best,
            "duration_s": end - start,
        }
        return rows, summary

    def save_results(self, rows, summary, out_cfg):
        results_dir = out_cfg.get("results_dir", "results")
        path = os.path.join(results_dir, out_cfg.get("results_file", "sweep.json"))
        return save_results({"summary": summary, "results": rows}, path)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    from visualize import plot_hit_rate_vs_size, plot_miss_breakdown

    cfg = load_config(argv[0] if argv else "config.json")
    runner = BenchmarkRunner(cfg)
    print("Starting sweep over", len(runner.configs), "configurations of", runner.trace_name)
    rows, summary = runner.run()
    out_cfg = cfg.get("output", {})
    results_path = runner.save_results(rows, summary, out_cfg)
    print("Best hit rate: %.2f%%" % summary["best_hit_rate"])
    print("Results saved to:", results_path)

    results_dir = out_cfg.get("results_dir", "results")
    plot_hit_rate_vs_size(rows, out_cfg.get("hitrate_plot", os.path.join(results_dir, "hit_rate_vs_size.png")))
    plot_miss_breakdown(rows, out_cfg.get("breakdown_plot", os.path.join(results_dir, "miss_breakdown.png")))
    print("Plots saved in", results_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
