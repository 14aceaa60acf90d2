"""
Schema creation and data seeding script for RawDb Bench.

Creates the `world` and `fortune` tables, loads 10,000 world rows with
deterministic pseudo-random numbers via Postgres COPY, and inserts the
standard fortune rows.
"""

from __future__ import annotations

import random
import sys
import time
from typing import Iterator, List, Tuple

import psycopg
import typer

from rawdb.domain.models import RANDOM_NUMBER_MAX, RANDOM_NUMBER_MIN, WORLD_MAX_ID
from rawdb.infrastructure.db_factory import build_dsn

app = typer.Typer(help="Create and seed the world and fortune tables.")

SCHEMA_SQL = """
DROP TABLE IF EXISTS world;
CREATE TABLE world (
    id integer NOT NULL PRIMARY KEY,
    randomnumber integer NOT NULL DEFAULT 0
);
DROP TABLE IF EXISTS fortune;
CREATE TABLE fortune (
    id integer NOT NULL PRIMARY KEY,
    message varchar(2048) NOT NULL
);
"""

FORTUNES: List[Tuple[int, str]] = [
    (1, "fortune: No such file or directory"),
    (2, "A computer scientist is someone who fixes things that aren't broken."),
    (3, "After enough decimal places, nobody gives a damn."),
    (4, "A bad random number generator: 1, 1, 1, 1, 1, 4.33e+67, 1, 1, 1"),
    (5, "A computer program does what you tell it to do, not what you want it to do."),
    (6, "Emacs is a nice operating system, but I prefer UNIX. — Tom Christaensen"),
    (7, "Any program that runs right is obsolete."),
    (8, "A list is only as strong as its weakest link. — Donald Knuth"),
    (9, "Feature: A bug with seniority."),
    (10, "Computers make very fast, very accurate mistakes."),
    (11, '<script>alert("This should not be displayed in a browser alert box.");</script>'),
    (12, "フレームワークのベンチマーク"),
]


def _generate_world_rows(rows: int, seed: int) -> Iterator[Tuple[int, int]]:
    rng = random.Random(seed)
    for world_id in range(1, rows + 1):
        yield world_id, rng.randint(RANDOM_NUMBER_MIN, RANDOM_NUMBER_MAX)


def seed_database(dsn: str, rows: int = WORLD_MAX_ID, seed: int = 42) -> int:
    """Recreate both tables and load them; return the number of world rows loaded."""
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
            with cur.copy("COPY world (id, randomnumber) FROM STDIN") as copy:
                for row in _generate_world_rows(rows, seed):
                    copy.write_row(row)
            cur.executemany("INSERT INTO fortune (id, message) VALUES (%s, %s)", FORTUNES)
        conn.commit()
    return rows


@app.command()
def main(
    rows: int = typer.Option(
        WORLD_MAX_ID,
        "--rows",
        "-r",
        help="Number of world rows to load.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
) -> None:
    """
    Recreate the benchmark tables and load seed data.
    """
    start = time.perf_counter()
    typer.echo(f"Seeding {rows:,} world rows and {len(FORTUNES)} fortunes (seed={seed})")
    seed_database(dsn or build_dsn(), rows=rows, seed=seed)
    typer.echo(f"Seed completed in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
