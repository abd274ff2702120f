"""Load challenges from a JSON file.

Challenges are authored outside the web app. Each entry looks like::

    {"id": "web-101", "title": "Warmup", "points": 100, "flag": "KCTF{hello}",
     "description": "...", "attachment_url": "web-101/source.zip",
     "link_url": null, "is_active": true}

Plain flags are hashed before they are stored. Entries whose ``id`` already
exists are updated in place.

Usage: python -m scripts.seed_challenges challenges.json
"""

import argparse
import asyncio
import json
from pathlib import Path

import app.database as database
from app.flag_storage import hash_flag
from app.models.challenge import Challenge

_FIELDS = ("title", "description", "points", "attachment_url", "link_url", "is_active")


async def seed(entries: list[dict]) -> int:
    await database.init_models()
    async with database.SessionLocal() as session:
        for entry in entries:
            challenge = await session.get(Challenge, entry["id"]) if entry.get("id") else None
            if challenge is None:
                challenge = Challenge(id=entry.get("id"))
                session.add(challenge)
            for field in _FIELDS:
                if field in entry:
                    setattr(challenge, field, entry[field])
            if entry.get("flag"):
                challenge.flag_hash = hash_flag(entry["flag"].strip())
        await session.commit()
    return len(entries)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", type=Path, help="JSON file with a list of challenges")
    args = parser.parse_args()

    entries = json.loads(args.path.read_text(encoding="utf-8"))
    count = asyncio.run(seed(entries))
    print(f"Seeded {count} challenge(s).")


if __name__ == "__main__":
    main()
