#!/usr/bin/env python
"""
CI guard for migrations:
  - exactly one Alembic head, and
  - every table registered on Base.metadata is created by some revision.
"""
import sys
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def find_up(name: str, start: Path) -> Path | None:
    p = start.resolve()
    while True:
        cand = p / name
        if cand.exists():
            return cand
        if p.parent == p:
            return None
        p = p.parent


def uncovered_tables(script: ScriptDirectory) -> list[str]:
    import models  # noqa: F401  registers tables on Base.metadata
    from db import Base

    sources = "\n".join(
        Path(rev.path).read_text(encoding="utf-8") for rev in script.walk_revisions() if rev.path
    )
    return sorted(t for t in Base.metadata.tables if f'"{t}"' not in sources)


def main():
    here = Path(__file__).resolve()
    # Start from script dir; search upwards for alembic.ini
    ini = find_up("alembic.ini", here.parent)
    if not ini:
        print("Error: could not find alembic.ini by walking up from", here)
        sys.exit(1)

    cfg = Config(str(ini))
    script = ScriptDirectory.from_config(cfg)
    heads = script.get_heads()
    if len(heads) != 1:
        print(f"Error: expected 1 Alembic head, found {len(heads)}: {heads}")
        sys.exit(1)

    missing = uncovered_tables(script)
    if missing:
        print(f"Error: tables without a migration: {', '.join(missing)}")
        sys.exit(1)
    print(f"Alembic head OK: {heads[0]}")


if __name__ == "__main__":
    main()
