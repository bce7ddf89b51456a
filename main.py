# main.py
import logging
import sys

from cache import CacheGeometry, CacheSimulator, ConfigurationError, TraceIOError, access_log
from report import format_summary, result_row, save_results
from tracefile import read_trace

USAGE = "Usage: %s trace.txt [cache_size] [block_size] [assoc] [policy] [addr_bits] [-v] [--json PATH] [--plot PATH]"

# exit codes
EXIT_OK = 0
EXIT_USAGE = 1
EXIT_TRACE = 2
EXIT_CONFIG = 3

DEFAULTS = [32768, 64, 4, "LRU", 32]


def parse_args(argv):
    """
    Split argv (without the program name) into positionals and options.
    Flags may appear anywhere among the positionals.
    """
    opts = {"verbose": False, "json": None, "plot": None}
    pos = []
    it = iter(argv)
    for arg in it:
        if arg in ("-v", "--verbose"):
            opts["verbose"] = True
        elif arg in ("--json", "--plot"):
            opts[arg[2:]] = next(it, None)
        else:
            pos.append(arg)
    return pos, opts


def setup_logging(verbose):
    # trace warnings are only wanted in verbose mode
    logging.basicConfig(format="%(levelname)s: %(message)s", force=True)
    logging.getLogger().setLevel(logging.INFO if verbose else logging.ERROR)
    # per-access lines go to stdout, bare
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    access_log.handlers[:] = [handler]
    access_log.propagate = False
    access_log.setLevel(logging.DEBUG if verbose else logging.WARNING)


def main(argv=None):
    argv = sys.argv if argv is None else argv
    prog = argv[0] if argv else "main.py"
    pos, opts = parse_args(argv[1:])
    if not pos:
        print(USAGE % prog, file=sys.stderr)
        return EXIT_USAGE

    setup_logging(opts["verbose"])
    trace_path = pos[0]
    values = pos[1:] + DEFAULTS[len(pos) - 1:]
    cache_size, block_size, assoc, policy, addr_bits = values[:5]

    try:
        geometry = CacheGeometry(int(cache_size), int(block_size), int(assoc), int(addr_bits))
        sim = CacheSimulator(geometry, policy)
    except (ConfigurationError, ValueError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        addresses = read_trace(trace_path)
    except TraceIOError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_TRACE

    sim.run(addresses)
    print(format_summary(sim))

    if opts["json"]:
        save_results(result_row(sim), opts["json"])
    if opts["plot"]:
        from visualize import plot_hit_miss_rate
        plot_hit_miss_rate(sim.stats, opts["plot"])
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
