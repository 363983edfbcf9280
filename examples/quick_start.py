#!/usr/bin/env python3
"""
Quick Start - Store a ship with its crew and load it back hydrated.

Usage:
    python examples/quick_start.py
    python examples/quick_start.py sqlite:///fleet.db
"""

import asyncio
import sys

from canopy import Model, connect


class CrewMember(Model):
    location = "crew"


class Ship(Model):
    location = "ships"
    relations = {"crew": CrewMember}


async def main(url: str = "memory://"):
    db = await connect(url)
    async with db:
        ship = Ship({"name": "Enterprise", "registry": "NCC-1701-D"}, store=db)

        # Children live under /crew, the ship only keeps their keys
        crew = ship.relation("crew")
        await crew.create({"name": "Jean-Luc Picard", "rank": "Captain"})
        await crew.create({"name": "William Riker", "rank": "Commander"})
        await ship.save()

        print(f"Stored ship at /ships/{ship.get_key()}")
        print(await db.read(f"ships/{ship.get_key()}"))
        print()

        # fetch() hydrates every declared relation
        loaded = await Ship.find(db, ship.get_key())
        for member in loaded.crew.values():
            print(f"{member.rank}: {member.name}")
        print()
        print(loaded.json(indent=2))


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:]))
