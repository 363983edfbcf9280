"""Tests for relations and relation hydration."""

import asyncio
import json

import pytest

from canopy.models import (
    Model,
    HasMany,
    RelationError,
    RelationLoadError,
)
from canopy.store import MemoryBackend, TreeStore, BackendError, connect


class CrewMember(Model):
    location = "crew"


class Vessel(Model):
    location = "vessels"
    relations = {"crew": CrewMember, "runabouts": "Runabout"}


class Runabout(Model):
    location = "runabouts"


class Flagship(Vessel):
    relations = {"officers": CrewMember}


class FlakyBackend(MemoryBackend):
    """Memory backend that fails reads of chosen paths."""

    def __init__(self, failing):
        super().__init__()
        self.failing = set(failing)
        self.reads = []

    async def read(self, path):
        self.reads.append(path)
        if path in self.failing:
            raise BackendError(f"boom at {path}", status=500)
        return await super().read(path)


@pytest.fixture
def db():
    """Create an in-memory store."""
    store = asyncio.run(connect("memory://"))
    yield store
    asyncio.run(store.close())


async def seed(store):
    """Store two crew members and a vessel referencing them."""
    await store.overwrite("crew/picard", {"name": "Picard", "rank": "Captain"})
    await store.overwrite("crew/riker", {"name": "Riker", "rank": "Commander"})
    await store.overwrite("runabouts/rio", {"name": "Rio Grande"})
    await store.overwrite(
        "vessels/enterprise",
        {
            "name": "Enterprise",
            "crew": {"picard": True, "riker": True},
            "runabouts": {"rio": True},
        },
    )


class TestRelationDeclaration:
    """Tests for the relation registry."""

    def test_relation_fields_in_config(self):
        config = Vessel().get_config()
        assert config.relation_fields == frozenset({"crew", "runabouts"})

    def test_relations_inherited(self):
        config = Flagship().get_config()
        assert config.relation_fields == frozenset({"crew", "runabouts", "officers"})
        assert Flagship().get_location() == "vessels"

    def test_relation_returns_fresh_descriptor(self):
        vessel = Vessel()
        first = vessel.relation("crew")
        second = vessel.relation("crew")
        assert isinstance(first, HasMany)
        assert first is not second
        assert first.parent is vessel
        assert first.child is CrewMember
        assert first.field == "crew"

    def test_relation_by_name_resolves(self):
        assert Vessel().relation("runabouts").child is Runabout

    def test_unknown_relation(self):
        with pytest.raises(RelationError):
            Vessel().relation("cargo")

    def test_unregistered_child_name(self):
        class Derelict(Model):
            location = "derelicts"
            relations = {"ghosts": "NoSuchModel"}

        with pytest.raises(RelationError):
            Derelict().relation("ghosts")

    def test_has_many_no_io(self):
        """Declaring a relation does not need a store."""
        relation = Model().has_many(CrewMember)
        assert relation.child is CrewMember
        assert relation.field is None


class TestHasMany:
    """Tests for HasMany operations."""

    def test_fetch_relation(self, db):
        async def scenario():
            await seed(db)
            return await Vessel(store=db).has_many(CrewMember).fetch_relation("picard")

        picard = asyncio.run(scenario())
        assert isinstance(picard, CrewMember)
        assert picard.get_key() == "picard"
        assert picard.name == "Picard"
        assert picard.get_store() is db

    def test_fetch_relation_missing(self, db):
        child = asyncio.run(Vessel(store=db).has_many(CrewMember).fetch_relation("data"))
        assert child.get_key() == "data"
        assert child.get_attributes() == {}

    def test_keys_and_fetch_all(self, db):
        async def scenario():
            await seed(db)
            vessel = Vessel({"crew": {"picard": True, "riker": True}}, store=db)
            relation = vessel.relation("crew")
            return relation.keys(), await relation.fetch_all(), vessel

        keys, crew, vessel = asyncio.run(scenario())
        assert keys == ["picard", "riker"]
        assert sorted(member.name for member in crew) == ["Picard", "Riker"]
        # fetch_all leaves the parent untouched
        assert vessel.crew == {"picard": True, "riker": True}

    def test_create_child(self, db):
        async def scenario():
            vessel = Vessel({"name": "Defiant"}, store=db)
            worf = await vessel.relation("crew").create({"name": "Worf"})
            await vessel.save()
            stored = await db.read(f"vessels/{vessel.get_key()}")
            return vessel, worf, stored, await db.read(f"crew/{worf.get_key()}")

        vessel, worf, stored, stored_child = asyncio.run(scenario())
        assert vessel.crew[worf.get_key()] is worf
        assert stored == {"name": "Defiant", "crew": {worf.get_key(): True}}
        assert stored_child == {"name": "Worf"}

    def test_once(self, db):
        async def scenario():
            await seed(db)
            return await Vessel(store=db).has_many(CrewMember).once("crew", "riker", "rank")

        assert asyncio.run(scenario()) == "Commander"


class TestLoadRelations:
    """Tests for Model.load_relations()."""

    def test_hydrates_in_place(self, db):
        async def scenario():
            await seed(db)
            vessel = Vessel({"crew": {"childKey1": True}}, store=db)
            crew = vessel.get_attributes()["crew"]
            await vessel.load_relations()
            return vessel, crew

        vessel, crew = asyncio.run(scenario())
        child = vessel.get_attributes()["crew"]["childKey1"]
        assert isinstance(child, CrewMember)
        assert child.get_key() == "childKey1"
        # Same mapping object, same key set
        assert vessel.get_attributes()["crew"] is crew
        assert list(crew) == ["childKey1"]

    def test_fetch_hydrates_every_relation(self, db):
        async def scenario():
            await seed(db)
            return await Vessel.find(db, "enterprise")

        vessel = asyncio.run(scenario())
        assert vessel.name == "Enterprise"
        assert set(vessel.crew) == {"picard", "riker"}
        assert vessel.crew["picard"].rank == "Captain"
        assert vessel.crew["riker"].name == "Riker"
        assert isinstance(vessel.runabouts["rio"], Runabout)

    def test_non_relation_mappings_untouched(self, db):
        async def scenario():
            vessel = Vessel({"specs": {"warp": True}}, store=db)
            await vessel.load_relations()
            return vessel

        assert asyncio.run(scenario()).specs == {"warp": True}

    def test_no_relations_no_io(self):
        """A model without relation values never touches the store."""
        vessel = Vessel({"name": "Enterprise"})
        assert asyncio.run(vessel.load_relations()) is vessel

    def test_partial_failure_isolated(self):
        async def scenario():
            store = TreeStore(FlakyBackend({"crew/riker"}))
            await store.backend.connect()
            await seed(store)
            vessel = Vessel(
                {"crew": {"picard": True, "riker": True}, "runabouts": {"rio": True}},
                store=store,
            )
            with pytest.raises(RelationLoadError) as excinfo:
                await vessel.load_relations()
            return vessel, excinfo.value

        vessel, error = asyncio.run(scenario())
        assert set(error.failures) == {("crew", "riker")}
        assert isinstance(error.failures[("crew", "riker")], BackendError)
        assert isinstance(vessel.crew["picard"], CrewMember)
        assert isinstance(vessel.runabouts["rio"], Runabout)
        assert vessel.crew["riker"] is True

    def test_fetches_run_concurrently(self):
        """All child reads are issued before any completes."""
        started = []

        class GatedBackend(MemoryBackend):
            def __init__(self):
                super().__init__()
                self.gate = None

            async def read(self, path):
                started.append(path)
                if path.startswith("crew/"):
                    await self.gate.wait()
                return await super().read(path)

        async def scenario():
            backend = GatedBackend()
            backend.gate = asyncio.Event()
            store = TreeStore(backend)
            await backend.connect()
            await seed(store)
            vessel = Vessel({"crew": {"picard": True, "riker": True}}, store=store)
            task = asyncio.ensure_future(vessel.load_relations())
            while len(started) < 2:
                await asyncio.sleep(0)
            backend.gate.set()
            await task
            return vessel

        vessel = asyncio.run(scenario())
        assert sorted(started) == ["crew/picard", "crew/riker"]
        assert vessel.crew["riker"].name == "Riker"


class TestRelationSerialization:
    """Tests for data()/json() with relations."""

    def test_hydrated_relations_become_lists(self, db):
        async def scenario():
            await seed(db)
            return await Vessel.find(db, "enterprise")

        data = asyncio.run(scenario()).data()
        assert data["key"] == "enterprise"
        assert sorted(data["crew"], key=lambda c: c["key"]) == [
            {"name": "Picard", "rank": "Captain", "key": "picard"},
            {"name": "Riker", "rank": "Commander", "key": "riker"},
        ]
        assert data["runabouts"] == [{"name": "Rio Grande", "key": "rio"}]

    def test_placeholders_keep_their_keys(self):
        vessel = Vessel({"crew": {"picard": True}, "runabouts": {}}, key="v1")
        assert vessel.data() == {"crew": [{"key": "picard"}], "runabouts": [], "key": "v1"}

    def test_partially_hydrated_field(self):
        """Children that failed to load stay listed under their key."""

        async def scenario():
            store = TreeStore(FlakyBackend({"crew/riker"}))
            await store.backend.connect()
            await seed(store)
            vessel = Vessel({"crew": {"picard": True, "riker": True}}, key="v1", store=store)
            with pytest.raises(RelationLoadError):
                await vessel.load_relations()
            return vessel

        vessel = asyncio.run(scenario())
        assert vessel.data() == {
            "crew": [
                {"name": "Picard", "rank": "Captain", "key": "picard"},
                {"key": "riker"},
            ],
            "key": "v1",
        }
        restored = Vessel.from_json(vessel.json())
        assert isinstance(restored.crew["picard"], CrewMember)
        assert restored.crew["riker"] is True

    def test_hydrated_children_saved_as_markers(self, db):
        async def scenario():
            await seed(db)
            vessel = await Vessel.find(db, "enterprise")
            vessel.name = "Enterprise-D"
            await vessel.save()
            return await db.read("vessels/enterprise")

        assert asyncio.run(scenario()) == {
            "name": "Enterprise-D",
            "crew": {"picard": True, "riker": True},
            "runabouts": {"rio": True},
        }

    def test_from_json_rebuilds_children(self, db):
        async def scenario():
            await seed(db)
            return await Vessel.find(db, "enterprise")

        text = asyncio.run(scenario()).json()
        restored = Vessel.from_json(text)
        assert restored.get_key() == "enterprise"
        assert isinstance(restored.crew["picard"], CrewMember)
        assert restored.crew["picard"].rank == "Captain"
        assert json.loads(restored.json()) == json.loads(text)
