import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cache import (CacheGeometry, CacheSimulator, ConfigurationError, Outcome,
                   Policy, ReferenceCache)


def random_trace(n=2000, seed=7, span=1 << 16):
    rng = np.random.default_rng(seed)
    return [int(a) for a in rng.integers(0, span, size=n)]


class TestCacheSimulator(unittest.TestCase):

    def test_counter_identities(self):
        for policy in (Policy.LRU, Policy.FIFO):
            for assoc in (1, 2, 4, 8):
                sim = CacheSimulator(CacheGeometry(4096, 64, assoc, 32), policy)
                s = sim.run(random_trace())
                self.assertEqual(s.accesses, 2000)
                self.assertEqual(s.hits + s.misses, s.accesses)
                self.assertEqual(s.miss_compulsory + s.miss_conflict + s.miss_capacity, s.misses)

    def test_first_reference_is_compulsory(self):
        sim = CacheSimulator(CacheGeometry(256, 64, 1, 32))
        seen = set()
        for addr in random_trace(500, seed=3, span=4096):
            block = addr >> 6
            hit, outcome = sim.access(addr)
            if block not in seen:
                self.assertEqual(outcome, Outcome.MISS_COMPULSORY)
                self.assertFalse(hit)
                seen.add(block)
            else:
                self.assertNotEqual(outcome, Outcome.MISS_COMPULSORY)
        self.assertEqual(sim.stats.miss_compulsory, len(seen))

    def test_single_set_has_no_conflict_misses(self):
        # 8 lines, fully associative
        sim = CacheSimulator(CacheGeometry(512, 64, 8, 32), Policy.LRU)
        s = sim.run(random_trace(3000, seed=11, span=2048))
        self.assertEqual(sim.geometry.num_sets, 1)
        self.assertEqual(s.miss_conflict, 0)
        self.assertGreater(s.miss_capacity, 0)

    def test_single_set_lru_matches_reference(self):
        sim = CacheSimulator(CacheGeometry(512, 64, 8, 32), Policy.LRU)
        ref = ReferenceCache(8)
        for addr in random_trace(3000, seed=5, span=2048):
            hit, _ = sim.access(addr)
            self.assertEqual(hit, ref.access(addr >> 6))

    def test_deterministic(self):
        trace = random_trace(5000, seed=1)
        g = CacheGeometry(2048, 32, 2, 32)
        first = CacheSimulator(g, "FIFO").run(trace)
        second = CacheSimulator(g, "FIFO").run(trace)
        self.assertEqual(first, second)

    def test_two_set_scenario(self):
        # 128 bytes, 64B blocks, direct mapped -> 2 sets
        sim = CacheSimulator(CacheGeometry(128, 64, 1, 32))
        outcomes = [sim.access(a)[1] for a in [0, 64, 128, 0, 64, 128]]
        self.assertEqual(outcomes, [
            Outcome.MISS_COMPULSORY,
            Outcome.MISS_COMPULSORY,
            Outcome.MISS_COMPULSORY,  # 128 evicts 0 from set 0
            Outcome.MISS_CAPACITY,    # 3 blocks in a 2-line cache
            Outcome.HIT,
            Outcome.MISS_CAPACITY,
        ])
        s = sim.stats
        self.assertEqual((s.accesses, s.hits, s.misses), (6, 1, 5))
        self.assertEqual((s.miss_compulsory, s.miss_conflict, s.miss_capacity), (3, 0, 2))

    def test_conflict_miss(self):
        # 4 sets, direct mapped; blocks 0 and 4 share set 0
        sim = CacheSimulator(CacheGeometry(256, 64, 1, 32))
        self.assertEqual(sim.access(0)[1], Outcome.MISS_COMPULSORY)
        self.assertEqual(sim.access(256)[1], Outcome.MISS_COMPULSORY)
        self.assertEqual(sim.access(0)[1], Outcome.MISS_CONFLICT)
        self.assertEqual(sim.access(256)[1], Outcome.MISS_CONFLICT)
        self.assertEqual(sim.stats.miss_conflict, 2)

    def test_hit_refreshes_lru_but_not_fifo(self):
        # one set, 2 ways: A B A C A
        trace = [0, 64, 0, 128, 0]
        lru = CacheSimulator(CacheGeometry(128, 64, 2, 32), Policy.LRU)
        fifo = CacheSimulator(CacheGeometry(128, 64, 2, 32), Policy.FIFO)
        self.assertEqual([lru.access(a)[0] for a in trace], [False, False, True, False, True])
        self.assertEqual([fifo.access(a)[0] for a in trace], [False, False, True, False, False])
        # reference is LRU, so FIFO's last miss is one a fully-associative cache avoids
        self.assertEqual(fifo.stats.miss_conflict, 1)

    def test_direct_mapped_matches_general_logic(self):
        trace = random_trace(3000, seed=9, span=1 << 14)
        sim = CacheSimulator(CacheGeometry(1024, 64, 1, 32))
        resident = {}
        for addr in trace:
            block = addr >> 6
            index, tag = block % 16, block // 16
            expected = resident.get(index) == tag
            resident[index] = tag
            self.assertEqual(sim.access(addr)[0], expected)

    def test_hit_rate(self):
        sim = CacheSimulator(CacheGeometry(1024, 64, 2, 32))
        self.assertEqual(sim.stats.hit_rate, 0.0)
        sim.run([0, 0, 0, 0])
        self.assertAlmostEqual(sim.stats.hit_rate, 75.0)
        self.assertEqual(sim.stats.as_dict()["hits"], 3)

    def test_reference_sees_every_access(self):
        class CountingReference(ReferenceCache):
            calls = 0

            def access(self, block_id):
                self.calls += 1
                return super().access(block_id)

        ref = CountingReference(16)
        sim = CacheSimulator(CacheGeometry(1024, 64, 2, 32), reference=ref)
        sim.run(random_trace(400, seed=2, span=4096))
        self.assertEqual(ref.calls, 400)

    def test_swapped_oracle(self):
        class NeverHits:
            def access(self, block_id):
                return False

        sim = CacheSimulator(CacheGeometry(256, 64, 1, 32), reference=NeverHits())
        sim.run([0, 256, 0, 256])
        self.assertEqual(sim.stats.miss_conflict, 0)
        self.assertEqual(sim.stats.miss_capacity, 2)

    def test_independent_instances(self):
        g = CacheGeometry(256, 64, 1, 32)
        a = CacheSimulator(g)
        b = CacheSimulator(g)
        a.run([0, 0, 64])
        self.assertEqual(b.stats.accesses, 0)
        self.assertEqual(b.access(0)[1], Outcome.MISS_COMPULSORY)

    def test_unknown_policy(self):
        with self.assertRaises(ConfigurationError):
            CacheSimulator(CacheGeometry(), "MRU")

    def test_verbose_access_line(self):
        sim = CacheSimulator(CacheGeometry(1024, 64, 2, 32))
        with self.assertLogs("cache.access", level="DEBUG") as cm:
            sim.access(0x40)
            sim.access(0x40)
        self.assertIn("0x00000040", cm.output[0])
        self.assertIn("set= 1 tag=0", cm.output[0])
        self.assertTrue(cm.output[0].endswith("=> MISS (Compulsory)"))
        self.assertTrue(cm.output[1].endswith("=> HIT"))


if __name__ == "__main__":
    unittest.main()
