"""Step through a small program and print each published state as JSON.

Run from an installed checkout (`pip install -e .`).

Usage:
  python scripts/demo.py             # built-in sample
  python scripts/demo.py path.js     # your own file
"""

import argparse
import json
import sys
from pathlib import Path

from backend.stepjs.session import ExecutionSession

SAMPLE = """let arr = [3, 1, 2];
for (let i = 0; i < arr.length; i++) {
  for (let j = 0; j < arr.length - i - 1; j++) {
    if (arr[j] > arr[j + 1]) {
      [arr[j], arr[j + 1]] = [arr[j + 1], arr[j]];
    }
  }
}
console.log(arr);
"""


def main(code: str, limit: int) -> int:
    session = ExecutionSession(code)
    print(json.dumps(session.state, ensure_ascii=False))
    for _ in range(limit):
        more = session.step()
        print(json.dumps(session.state, ensure_ascii=False))
        if not more:
            break
    return 1 if session.state["error"] else 0


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("path", nargs="?", help="JavaScript file to step through")
    p.add_argument("--limit", type=int, default=500, help="Maximum steps to print")
    args = p.parse_args()
    source = Path(args.path).read_text(encoding="utf-8") if args.path else SAMPLE
    sys.exit(main(source, args.limit))
