"""Re-project the whole event log onto the graph, oldest event first."""
from __future__ import annotations

import sys

from app.core.logging import configure_logging
from app.db.neo4j.driver import close_driver
from app.eventstore.store import read_all
from app.services.projection.router import project


def main(after_position: int = 0, batch_size: int = 500) -> None:
    configure_logging()
    position = after_position
    projected = 0
    ignored = 0
    try:
        while True:
            batch = read_all(position, batch_size)
            if not batch:
                break
            for position, event in batch:
                if project(event):
                    projected += 1
                else:
                    ignored += 1
    finally:
        close_driver()
    print(f"Replayed {projected} events ({ignored} ignored), last position {position}")


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 0)
