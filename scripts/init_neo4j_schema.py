from __future__ import annotations

from app.core.logging import configure_logging
from app.db.neo4j.driver import close_driver, neo4j_session
from app.db.neo4j.schema import apply_schema


def main() -> None:
    configure_logging()
    with neo4j_session() as session:
        if session is None:
            print("Graph URI not configured; nothing to apply")
            return
        applied = apply_schema(session)
        print(f"Applied {applied} constraint and index statements")
    close_driver()


if __name__ == "__main__":
    main()
