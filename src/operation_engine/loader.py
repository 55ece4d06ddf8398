"""Web mod loader harness.

Wires the mod-loading stages into an operation tree and drives one run of it.
The stage bodies are placeholders: acquiring mods, ordering them, generating
bindings, planning and applying injections all belong to collaborators
outside this package. What the placeholders do keep is the shape of a real
run: target sources flow in through ``fetch_target_sources``, one group member
per mod is attached to the binding-generation and injection-planning stages
while earlier stages are running, and the modified sources flow out through
``commit_modified_sources``.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from operation_engine.artifacts import ArtifactFilter
from operation_engine.exceptions import OperationValidationError
from operation_engine.operation import (
    Operation,
    OperationProgressCallback,
    SubOperationCallbackSet,
    WorkFunction,
    WorkFunctionProgressCallback,
)
from operation_engine.runtime.execution_context import ExecutionContext
from operation_engine.runtime.operation_executor import OperationExecutor
from operation_engine.schemas import ArtifactType, EngineConfig
from operation_engine.telemetry import TelemetryBus

logger = logging.getLogger(__name__)

GetTargetSourcesCallback = Callable[[], Awaitable[Mapping[str, str]]]
LoadModifiedSourcesCallback = Callable[[Mapping[str, str]], Awaitable[None]]

GENERATE_BINDINGS_GROUP = "generateBindings"
PLAN_INJECTIONS_GROUP = "planInjections"


class WebModLoader:
    """Load mods into a set of target sources, reporting progress as it goes.

    A loader instance runs once; a second run would re-attach the per-mod
    sub-operations and fail on their duplicate names.

    Args:
        mods: Names of the mods to load. Each one gets a binding-generation and
            an injection-planning sub-operation, attached during the run.
        config: Engine settings for the executor.
        telemetry: Optional bus recording run, operation and progress events.
    """

    def __init__(
        self,
        mods: Iterable[str] = (),
        config: Optional[EngineConfig] = None,
        telemetry: Optional[TelemetryBus] = None,
    ):
        self.mods = _validate_mods(mods)
        self.executor = OperationExecutor(config=config, telemetry=telemetry)
        self.target_sources: Dict[str, str] = {}
        self.modified_sources: Dict[str, str] = {}

        # (name, work function, own work estimate, contribution to parent)
        self.load_mods_operation = Operation("LoadMods", self._work("LoadMods"), 1, 1)
        root = self.load_mods_operation
        root.create_sub_operation("Acquisition", self._work("ModAcquisition"), 1, 1)
        root.create_sub_operation("Load Ordering", self._work("ModLoadOrdering"), 1, 1)
        source_modification = root.create_sub_operation("Source Modification", self._work("SourceModification"), 0, 300)
        source_modification.create_sub_operation("Cached Load", self._work("CachedLoad"), 1, 20)
        injection_load = source_modification.create_sub_operation("Injection Load", self._work("InjectionLoad"), 1, 320)
        injection_load.create_sub_operation("Binding Acquisition", self._work("InjectionBindingAcquisition"), 1, 1)
        injection_load.create_sub_operation("Binding Ordering", self._work("InjectionBindingOrdering"), 1, 1)
        self.binding_generation_operation = injection_load.create_sub_operation(
            "Binding Generation", self._work("InjectionBindingGeneration"), 1, 100
        )
        self.injection_planning_operation = injection_load.create_sub_operation(
            "Injection Planning", self._work("InjectionPlanning"), 1, 100
        )
        injection_load.create_sub_operation("Injection Application", self._work("InjectionApplication"), 30, 100)
        injection_load.create_sub_operation("Modded Source Generation", self._work("ModdedSourceGeneration"), 20, 20)
        root.create_sub_operation("Load Modified Sources", self._work("LoadModifiedSources"), 20, 20)
        root.create_sub_operation("Mod Pre-Initialization", self._work("ModPreInitialization"), 1, 1)
        api_setup = root.create_sub_operation("API Setup", self._work("APISetup"), 1, 1)
        api_setup.create_sub_operation("Acquisition", self._work("APIAcquisition"), 1, 1)
        api_setup.create_sub_operation("Load Ordering", self._work("APILoadOrdering"), 1, 1)
        api_setup.create_sub_operation("API Loading", self._work("APILoading"), 1, 1)
        root.create_sub_operation("Final Initialization", self._work("FinalInitialization"), 1, 1)

    def _work(self, name: str) -> WorkFunction:
        return WorkFunction(name, getattr(self, _STAGE_METHODS[name]))

    async def initialize(
        self,
        fetch_target_sources: GetTargetSourcesCallback,
        commit_modified_sources: LoadModifiedSourcesCallback,
        progress_callback: Optional[OperationProgressCallback],
    ) -> ExecutionContext:
        """Run every loading stage once, from fetching to committing sources."""
        return await self.executor.execute(
            self.load_mods_operation, progress_callback, fetch_target_sources, commit_modified_sources
        )

    def export_artifacts(self, artifact_filter: ArtifactFilter) -> Dict[str, Any]:
        return self.load_mods_operation.export_artifact_tree(artifact_filter)

    async def load_mods(
        self,
        operation: Operation,
        callbacks: SubOperationCallbackSet,
        progress: WorkFunctionProgressCallback,
        fetch_target_sources: GetTargetSourcesCallback,
        commit_modified_sources: LoadModifiedSourcesCallback,
    ) -> None:
        self.target_sources = dict(await fetch_target_sources() or {})
        operation.create_artifact(ArtifactType.SOURCE, "targetSources", sorted(self.target_sources))
        await progress(1)

        await callbacks["ModAcquisition"]()
        await callbacks["ModLoadOrdering"]()
        await callbacks["SourceModification"]()
        await callbacks["LoadModifiedSources"](commit_modified_sources)
        await callbacks["ModPreInitialization"]()
        await callbacks["APISetup"]()
        await callbacks["FinalInitialization"]()

    async def mod_acquisition(self, operation, callbacks, progress) -> None:
        operation.create_artifact(ArtifactType.INFO, "mods", list(self.mods))

    async def mod_load_ordering(self, operation, callbacks, progress) -> None:
        for index, mod in enumerate(self.mods):
            self.injection_planning_operation.create_sub_operation(
                mod, WorkFunction(f"plan_{mod}", self._plan_mod_injections), 5, 5, group_name=PLAN_INJECTIONS_GROUP
            )
            await progress((index + 1) / len(self.mods))
        operation.create_artifact(ArtifactType.DEBUG, "loadOrder", list(self.mods))

    async def source_modification(self, operation, callbacks, progress) -> None:
        await callbacks["CachedLoad"]()
        await callbacks["InjectionLoad"]()

    async def cached_load(self, operation, callbacks, progress) -> None:
        pass

    async def injection_load(self, operation, callbacks, progress) -> None:
        await callbacks["InjectionBindingAcquisition"]()
        await callbacks["InjectionBindingOrdering"]()
        await callbacks["InjectionBindingGeneration"]()
        await callbacks["InjectionPlanning"]()
        await callbacks["InjectionApplication"]()
        await callbacks["ModdedSourceGeneration"]()

    async def injection_binding_acquisition(self, operation, callbacks, progress) -> None:
        pass

    async def injection_binding_ordering(self, operation, callbacks, progress) -> None:
        for mod in self.mods:
            self.binding_generation_operation.create_sub_operation(
                mod, WorkFunction(f"bind_{mod}", self._generate_mod_bindings), 5, 5, group_name=GENERATE_BINDINGS_GROUP
            )

    async def injection_binding_generation(self, operation, callbacks, progress) -> None:
        if GENERATE_BINDINGS_GROUP in callbacks:
            await callbacks[GENERATE_BINDINGS_GROUP]()

    async def injection_planning(self, operation, callbacks, progress) -> None:
        if PLAN_INJECTIONS_GROUP in callbacks:
            await callbacks[PLAN_INJECTIONS_GROUP]()

    async def injection_application(self, operation, callbacks, progress) -> None:
        pass

    async def modded_source_generation(self, operation, callbacks, progress) -> None:
        # Placeholder: no injections are applied, so sources pass through as-is.
        self.modified_sources = dict(self.target_sources)
        operation.create_artifact(ArtifactType.SOURCE, "modifiedSources", sorted(self.modified_sources))

    async def load_modified_sources(self, operation, callbacks, progress, commit_modified_sources) -> None:
        await commit_modified_sources(dict(self.modified_sources))
        logger.info("Committed %d modified sources", len(self.modified_sources))

    async def mod_pre_initialization(self, operation, callbacks, progress) -> None:
        pass

    async def api_setup(self, operation, callbacks, progress) -> None:
        await callbacks["APIAcquisition"]()
        await callbacks["APILoadOrdering"]()
        await callbacks["APILoading"]()

    async def api_acquisition(self, operation, callbacks, progress) -> None:
        pass

    async def api_load_ordering(self, operation, callbacks, progress) -> None:
        pass

    async def api_loading(self, operation, callbacks, progress) -> None:
        pass

    async def final_initialization(self, operation, callbacks, progress) -> None:
        pass

    async def _generate_mod_bindings(self, operation, callbacks, progress) -> None:
        operation.create_artifact(ArtifactType.OPERATION, "bindings", {"mod": operation.name, "generated": 0})

    async def _plan_mod_injections(self, operation, callbacks, progress) -> None:
        operation.create_artifact(ArtifactType.OPERATION, "injectionPlan", {"mod": operation.name, "injections": []})


def _validate_mods(mods: Iterable[str]) -> List[str]:
    """Mod names become sub-operation names, so they must be unique and non-empty."""
    names: List[str] = []
    for mod in mods:
        if not isinstance(mod, str) or not mod.strip():
            raise OperationValidationError("LoadMods", f"mod names must be non-empty strings, got {mod!r}")
        if mod in names:
            raise OperationValidationError("LoadMods", f"mod {mod!r} is listed more than once")
        names.append(mod)
    return names


_STAGE_METHODS = {
    "LoadMods": "load_mods",
    "ModAcquisition": "mod_acquisition",
    "ModLoadOrdering": "mod_load_ordering",
    "SourceModification": "source_modification",
    "CachedLoad": "cached_load",
    "InjectionLoad": "injection_load",
    "InjectionBindingAcquisition": "injection_binding_acquisition",
    "InjectionBindingOrdering": "injection_binding_ordering",
    "InjectionBindingGeneration": "injection_binding_generation",
    "InjectionPlanning": "injection_planning",
    "InjectionApplication": "injection_application",
    "ModdedSourceGeneration": "modded_source_generation",
    "LoadModifiedSources": "load_modified_sources",
    "ModPreInitialization": "mod_pre_initialization",
    "APISetup": "api_setup",
    "APIAcquisition": "api_acquisition",
    "APILoadOrdering": "api_load_ordering",
    "APILoading": "api_loading",
    "FinalInitialization": "final_initialization",
}


__all__ = ["WebModLoader", "GetTargetSourcesCallback", "LoadModifiedSourcesCallback"]
