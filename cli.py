"""CLI tools for seeding temple data."""
import json
import logging

import click
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from config import Settings
from database import connect, create_document, get_documents
from schemas import Temple

logger = logging.getLogger(__name__)

DEFAULT_TEMPLES = [
    {"name": "Somnath Temple", "location": "Prabhas Patan, Gujarat"},
    {"name": "Kashi Vishwanath Temple", "location": "Varanasi, Uttar Pradesh"},
    {"name": "Tirumala Venkateswara Temple", "location": "Tirupati, Andhra Pradesh"},
    {"name": "Jagannath Temple", "location": "Puri, Odisha"},
]


def insert_temples(db, temples: list[dict]) -> tuple[int, int]:
    """Insert temples whose name is not present yet; returns (created, skipped)."""
    existing = {t["name"] for t in get_documents(db, Temple.collection_name(), projection={"name": 1})}
    created = skipped = 0
    for raw in temples:
        temple = Temple(**raw)
        if temple.name in existing:
            skipped += 1
            continue
        doc = create_document(db, Temple.collection_name(), temple)
        existing.add(temple.name)
        created += 1
        logger.info("Created temple %s (%s)", doc["_id"], temple.name)
    return created, skipped


def _open_db():
    try:
        return connect(Settings())
    except PyMongoError as e:
        raise click.ClickException(f"MongoDB connection error: {e}")


@click.group()
def cli():
    """Pilgrimage API admin tools."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


@cli.command("seed-temples")
@click.option("--file", "path", type=click.Path(exists=True, dir_okay=False), help="JSON list of temples")
def seed_temples(path):
    """
    Insert temples from a JSON file, or a built-in list when no file is given.

    Temples whose name already exists are skipped.

    Example:
        python cli.py seed-temples --file temples.json
    """
    temples = DEFAULT_TEMPLES
    if path:
        with open(path, encoding="utf-8") as fh:
            temples = json.load(fh)
        if not isinstance(temples, list):
            raise click.ClickException("Temple file must contain a JSON list")

    db = _open_db()
    try:
        created, skipped = insert_temples(db, temples)
    except ValidationError as e:
        raise click.ClickException(f"Invalid temple entry: {e}")
    finally:
        db.client.close()
    click.echo(f"Created {created} temple(s), skipped {skipped} existing")


@cli.command("add-temple")
@click.option("--name", required=True, help="Temple name")
@click.option("--location", required=True, help="Town / state")
@click.option(
    "--crowd-level",
    type=click.Choice(["Low", "Medium", "High", "Very High"]),
    default="Low",
    show_default=True,
)
@click.option("--wait", "wait_minutes", type=int, default=15, show_default=True, help="Estimated wait in minutes")
def add_temple(name, location, crowd_level, wait_minutes):
    """Create a single temple."""
    db = _open_db()
    try:
        temple = Temple(
            name=name,
            location=location,
            current_crowd_level=crowd_level,
            estimated_wait_time=wait_minutes,
        )
        doc = create_document(db, Temple.collection_name(), temple)
    finally:
        db.client.close()
    click.echo(f"Created temple {doc['_id']}")


if __name__ == "__main__":
    cli()
