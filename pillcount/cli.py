"""Command line entry point.

Usage:
    pillcount count 45            # print the count and how long it took
    pillcount count 10 --steps 1,2,3
    pillcount serve --port 8001   # run the HTTP API with uvicorn
"""

import argparse
import sys
from typing import List
from typing import Optional
from typing import Tuple

from pillcount.constants import DEFAULT_STEPS
from pillcount.services.counter import count_permutations_timed


def _parse_steps(raw: str) -> Tuple[int, ...]:
    try:
        steps = tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"steps must be a comma separated list of integers, got {raw!r}")
    if not steps or any(step < 1 for step in steps):
        raise argparse.ArgumentTypeError(f"steps must be positive integers, got {raw!r}")
    return steps


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pillcount", description="Count ordered pill dosing sequences")
    subparsers = parser.add_subparsers(dest="command", required=True)

    count = subparsers.add_parser("count", help="Count the sequences for a total and time the computation")
    count.add_argument("total", type=int, help="Number of pills to take")
    count.add_argument(
        "--steps",
        type=_parse_steps,
        default=DEFAULT_STEPS,
        help="Comma separated pills-per-day choices (default: 1,2)",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8001, help="Port to listen on (default: 8001)")

    return parser


def _run_count(total: int, steps: Tuple[int, ...]) -> int:
    if total < 0:
        print(f"❌ Total must be zero or positive, got {total}", file=sys.stderr)
        return 1
    permutations, elapsed = count_permutations_timed(total, steps=steps)
    print(f"{permutations}")
    print(f"Computed in {elapsed * 1000:.3f} ms (total={total}, steps={','.join(map(str, steps))})")
    return 0


def _run_serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("pillcount.main:app", host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with argument parsing."""
    args = build_parser().parse_args(argv)

    if args.command == "count":
        return _run_count(args.total, args.steps)
    return _run_serve(args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
