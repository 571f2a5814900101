"""Entrypoint.

Usage:
  python -m stopsim.app.main api                    # run FastAPI server
  python -m stopsim.app.main simulate --symbol ...  # one-shot simulation (see stopsim.app.simulate)
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

import uvicorn

from stopsim.infrastructure.utils.config import get_config


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser("stopsim")
    parser.add_argument("command", choices=["api", "simulate"], help="What to run")
    args, rest = parser.parse_known_args(argv)

    if args.command == "api":
        config = get_config()
        uvicorn.run(
            "stopsim.controllers.api_controller:create_app",
            factory=True,
            host=config.api.host,
            port=config.api.port,
            reload=False,
        )
        return 0

    from stopsim.app.simulate import main as simulate_main

    return simulate_main(rest)


if __name__ == "__main__":
    sys.exit(main())
