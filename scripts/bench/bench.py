"""
Stepping throughput benchmark: how many debugger steps per second a session
sustains on a nested-loop program.
"""
import os
import time

from backend.stepjs.session import ExecutionSession

CODE = """let total = 0;
for (let i = 0; i < 40; i++) {
  for (let j = 0; j < 40; j++) {
    if ((i + j) % 3 === 0) {
      total += i * j;
    } else {
      total -= 1;
    }
  }
}
console.log(total);
"""


def run(repeats: int = 5) -> float:
    settings = {"max_steps": 1_000_000, "max_time_s": 60.0}
    steps = 0
    start = time.time()
    for _ in range(repeats):
        state = ExecutionSession(CODE, settings).run_to_end()
        steps += state["steps"]
    elapsed = time.time() - start
    return steps / elapsed if elapsed else float("inf")


if __name__ == "__main__":
    N = int(os.environ.get("STEPJS_BENCH_REPEATS", "5"))
    rate = run(N)
    print(f"STEPS_PER_SECOND: {rate:.0f}")
