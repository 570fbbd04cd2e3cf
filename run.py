# run.py

import logging

from queuesim.analytical import approximate
from queuesim.models import DistributionSpec, SimulationConfig
from queuesim.simulation import simulate
from queuesim.statistics import gantt, queue_length_trace, summarize, task_rows

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# =====================================================
# 1️⃣ Simulation (M/M/2)
# =====================================================
cfg = SimulationConfig(
    ntask=10,
    nserv=2,
    interarrival=DistributionSpec(
        name="Exponential",
        params={"rate": 0.6}
    ),
    service=DistributionSpec(
        name="Exponential",
        params={"rate": 1.0}
    ),
    seed=42
)

res = simulate(cfg)

print("=== Event log (first 10 records) ===")
for r in res.log.records()[:10]:
    print(r.as_tuple())

print("\n=== Tasks (first 5) ===")
for row in task_rows(res.log)[:5]:
    print(row)

print("Gantt blocks:", gantt(res.log)[:5])
print("Queue length trace:", queue_length_trace(res.log)[:8])
print(summarize(res))

# =====================================================
# 2️⃣ Analytical comparison
# =====================================================
print("\n=== Allen–Cunneen M/M/2 ===")
print(approximate(cfg))

# =====================================================
# 3️⃣ General distributions (G/G/3)
# =====================================================
ggc_cfg = SimulationConfig(
    ntask=5000,
    nserv=3,
    interarrival=DistributionSpec(
        name="Gamma",
        params={"shape": 2.0, "scale": 0.5}
    ),
    service=DistributionSpec(
        name="Triangular",
        params={"min": 1.0, "mode": 2.0, "max": 4.0}
    ),
    seed=7
)

print("\n=== Simulated G/G/3 (gamma arrivals, triangular service) ===")
print(summarize(simulate(ggc_cfg)))

print("\n=== Allen–Cunneen G/G/3 ===")
print(approximate(ggc_cfg))
