"""End-to-end tests for the web mod loader harness."""

import pytest

from operation_engine import (
    ArtifactType,
    EngineConfig,
    EventType,
    OperationEngineError,
    OperationValidationError,
    TelemetryBus,
    WebModLoader,
)
from operation_engine.loader import GENERATE_BINDINGS_GROUP, PLAN_INJECTIONS_GROUP

SOURCES = {"main.js": "start()", "lib/util.js": "export {}"}

INJECTION_PATH = ("Source Modification", "Injection Load")


class SourceStore:
    def __init__(self, sources):
        self.sources = dict(sources)
        self.committed = None

    async def fetch(self):
        return self.sources

    async def commit(self, modified):
        self.committed = modified


class Snapshots:
    def __init__(self):
        self.items = []

    async def __call__(self, stages, progresses):
        self.items.append((list(stages), list(progresses)))


@pytest.fixture
def store():
    return SourceStore(SOURCES)


@pytest.fixture
def snapshots():
    return Snapshots()


@pytest.fixture
def telemetry():
    return TelemetryBus()


@pytest.fixture
def loader(telemetry):
    return WebModLoader(
        mods=["alpha", "beta"],
        config=EngineConfig(min_report_interval=0),
        telemetry=telemetry,
    )


def injection_load(tree):
    for name in INJECTION_PATH:
        tree = tree[name]
    return tree


# ==================== TREE ====================

def test_stage_tree_shape():
    root = WebModLoader().load_mods_operation

    assert root.name == "LoadMods"
    assert [op.name for op in root.sub_operations] == [
        "Acquisition",
        "Load Ordering",
        "Source Modification",
        "Load Modified Sources",
        "Mod Pre-Initialization",
        "API Setup",
        "Final Initialization",
    ]
    injection = root.sub_operations[2].sub_operations[1]
    assert injection.full_name == "LoadMods > Source Modification > Injection Load"
    assert injection.parent_contribution == 320
    assert [op.name for op in injection.sub_operations] == [
        "Binding Acquisition",
        "Binding Ordering",
        "Binding Generation",
        "Injection Planning",
        "Injection Application",
        "Modded Source Generation",
    ]


def test_stage_weights():
    root = WebModLoader().load_mods_operation
    source_modification = root.sub_operations[2]

    assert root.child_work_total == 325
    assert source_modification.own_work_estimate == 0
    assert source_modification.child_work_total == 340


@pytest.mark.parametrize("mods", [
    ["alpha", "alpha"],
    ["alpha", ""],
    ["   "],
    ["alpha", None],
])
def test_invalid_mod_names_rejected_at_construction(mods):
    with pytest.raises(OperationValidationError) as exc:
        WebModLoader(mods=mods)
    assert str(exc.value).startswith("LoadMods: ")


def test_mod_names_are_kept_in_order():
    assert WebModLoader(mods=("beta", "alpha")).mods == ["beta", "alpha"]


# ==================== RUN ====================

@pytest.mark.asyncio
async def test_sources_flow_from_fetch_to_commit(loader, store, snapshots):
    await loader.initialize(store.fetch, store.commit, snapshots)

    assert store.committed == SOURCES
    assert store.committed is not store.sources
    assert loader.modified_sources == SOURCES


@pytest.mark.asyncio
async def test_run_ends_at_one(loader, store, snapshots):
    context = await loader.initialize(store.fetch, store.commit, snapshots)

    assert snapshots.items[-1] == (["LoadMods"], [1.0])
    assert context.stack == []
    assert loader.load_mods_operation.executing is False


@pytest.mark.asyncio
async def test_root_progress_is_monotonic(loader, store, snapshots):
    await loader.initialize(store.fetch, store.commit, snapshots)

    root_history = [progresses[0] for _, progresses in snapshots.items]
    assert root_history == sorted(root_history)


@pytest.mark.asyncio
async def test_mods_are_attached_to_groups_during_run(loader, store, snapshots):
    planning = loader.injection_planning_operation
    generation = loader.binding_generation_operation
    assert planning.sub_operations == []

    await loader.initialize(store.fetch, store.commit, snapshots)

    assert [op.name for op in planning.bindings.groups[PLAN_INJECTIONS_GROUP]] == ["alpha", "beta"]
    assert [op.name for op in generation.bindings.groups[GENERATE_BINDINGS_GROUP]] == ["alpha", "beta"]
    assert planning.child_work_total == 10


@pytest.mark.asyncio
async def test_group_members_are_executed(loader, store, snapshots, telemetry):
    await loader.initialize(store.fetch, store.commit, snapshots)

    completed = [
        e.operation_name for e in telemetry.events_of_type(EventType.OPERATION)
        if e.payload["event"] == "operation_completed"
    ]
    prefix = "LoadMods > Source Modification > Injection Load"
    assert f"{prefix} > Binding Generation > alpha" in completed
    assert f"{prefix} > Injection Planning > beta" in completed
    # Bindings are generated before injections are planned.
    assert completed.index(f"{prefix} > Binding Generation > beta") < completed.index(
        f"{prefix} > Injection Planning > alpha"
    )
    assert completed[-1] == "LoadMods"


@pytest.mark.asyncio
async def test_api_setup_runs(loader, store, snapshots):
    await loader.initialize(store.fetch, store.commit, snapshots)

    stages_seen = {tuple(stages) for stages, _ in snapshots.items}
    assert ("LoadMods", "API Setup", "API Loading") in stages_seen


@pytest.mark.asyncio
async def test_without_mods(store, snapshots):
    loader = WebModLoader(config=EngineConfig(min_report_interval=0))

    await loader.initialize(store.fetch, store.commit, snapshots)

    assert store.committed == SOURCES
    assert loader.injection_planning_operation.sub_operations == []
    assert snapshots.items[-1] == (["LoadMods"], [1.0])


@pytest.mark.asyncio
async def test_loader_runs_once(loader, store, snapshots):
    await loader.initialize(store.fetch, store.commit, snapshots)

    with pytest.raises(OperationEngineError):
        await loader.initialize(store.fetch, store.commit, snapshots)


@pytest.mark.asyncio
async def test_fetch_failure_propagates(loader, store, snapshots, telemetry):
    async def failing_fetch():
        raise ConnectionError("offline")

    with pytest.raises(ConnectionError):
        await loader.initialize(failing_fetch, store.commit, snapshots)

    assert store.committed is None
    errors = telemetry.events_of_type(EventType.ERROR)
    assert errors[0].operation_name == "LoadMods"
    assert errors[0].payload["error"]["details"] == {"exception_type": "ConnectionError"}


# ==================== ARTIFACTS ====================

@pytest.mark.asyncio
async def test_exported_artifacts(loader, store, snapshots):
    await loader.initialize(store.fetch, store.commit, snapshots)

    info = loader.export_artifacts({ArtifactType.INFO})
    assert info["Acquisition"] == {"mods": ["alpha", "beta"]}
    assert info["API Setup"] == {"Acquisition": {}, "Load Ordering": {}, "API Loading": {}}

    sources = loader.export_artifacts({"source"})
    assert sources["targetSources"] == ["lib/util.js", "main.js"]
    assert injection_load(sources)["Modded Source Generation"] == {"modifiedSources": ["lib/util.js", "main.js"]}

    per_mod = injection_load(loader.export_artifacts({"operation"}))
    assert per_mod["Binding Generation"]["alpha"] == {"bindings": {"mod": "alpha", "generated": 0}}
    assert per_mod["Injection Planning"]["beta"] == {"injectionPlan": {"mod": "beta", "injections": []}}


@pytest.mark.asyncio
async def test_debug_artifacts_by_predicate(loader, store, snapshots):
    await loader.initialize(store.fetch, store.commit, snapshots)

    exported = loader.export_artifacts(lambda artifact: artifact.type is ArtifactType.DEBUG)

    assert exported["Load Ordering"] == {"loadOrder": ["alpha", "beta"]}
    assert exported["Acquisition"] == {}
