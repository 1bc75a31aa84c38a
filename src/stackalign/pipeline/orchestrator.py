"""Run orchestration for the two reconciliation modes.

Wires a source (MET file or TrakEM2 project), the tile store clients and
the section reconciler together for one run, and configures logging.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

from stackalign.client.render_client import RenderDataClient
from stackalign.contracts.base import require
from stackalign.contracts.failure import EmptyInputError
from stackalign.pipeline.reconciler import SectionPlan, SectionReconciler, UpdatePolicy
from stackalign.schemas.internal import InternalConfig
from stackalign.sources.met import MetRecordParser
from stackalign.sources.trakem2 import TrakProjectReader, TrakTransformFlattener
from stackalign.tiles.validator import build_validator

__all__ = ['ReconciliationOrchestrator']

logger = logging.getLogger(__name__)


class ReconciliationOrchestrator:
    """Runs one reconciliation: MET import or TrakEM2 export.

    This is the main entry point for running ``stackalign``. A run is single
    threaded and synchronous: the source is read completely, every section is
    planned, and only then is anything written to the render web service.

    **Modes:**

    - **met_import**: Parse a MET file, resolve each section to a z value in
      the acquire stack, merge the transforms into the acquire stack's
      collections and save them to the align stack (one save per z).

    - **trakem2_export**: Read visible patches from a TrakEM2 project, fold
      each patch's stage and alignment transforms into one affine, replace
      the last transform of the basis stack's tile specs and save them to a
      derived target stack (tiles keep their own, optionally remapped, z).

    **Logging:**

    Output goes to the console and, when ``logging.log_file`` is set, to that
    file. Level comes from ``logging.level``.

    Example usage::

        from stackalign.schemas import ParamConfig, resolve_config
        from stackalign.pipeline.orchestrator import ReconciliationOrchestrator

        config = resolve_config(ParamConfig(), user_config)
        ReconciliationOrchestrator(config).start()
    """

    def __init__(self, config: InternalConfig,
                 client_factory: Optional[Callable[..., object]] = None,
                 clock=None):
        """Initialize orchestrator with a resolved configuration.

        Parameters
        ----------
        config : InternalConfig
            Fully resolved runtime configuration.
        client_factory : callable, optional
            ``client_factory(base_data_url, owner, project, timeout=...)``
            returning a StackClient. Defaults to :class:`RenderDataClient`;
            tests inject an in-memory fake.
        clock : callable, optional
            Time source for progress logging (for testing).
        """
        self.config = config
        self.client_factory = client_factory or RenderDataClient
        self._clock = clock
        self.plans: List[SectionPlan] = []

    def _setup_logging(self):
        """Configure the root logger with console and optional file handlers."""
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        log_path = None
        if self.config.logging.log_file:
            log_path = Path(self.config.logging.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_path)
            fh.setLevel(log_level)
            fh.setFormatter(formatter)
            root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def _client(self, owner: str, project: str):
        service = self.config.service
        return self.client_factory(service.base_data_url, owner, project,
                                   timeout=service.timeout_sec)

    def _reconciler(self, client, source_stack: str, policy: UpdatePolicy,
                    prune: bool = False, target_client=None,
                    validate: bool = True) -> SectionReconciler:
        return SectionReconciler(
            client,
            source_stack,
            policy=policy,
            validator=build_validator(self.config) if validate else None,
            prune=prune,
            progress_interval_sec=self.config.reconcile.progress_interval_sec,
            clock=self._clock,
            target_client=target_client,
        )

    def start(self, setup_logging: bool = True) -> List[SectionPlan]:
        """Run the configured mode to completion.

        Returns
        -------
        list of SectionPlan
            The saved sections, in z order.

        Raises
        ------
        StackAlignError
            Any fatal input, server or pipeline condition. Nothing has been
            saved unless the failure happened while saving.
        """
        if setup_logging:
            self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting stack reconciliation (mode=%s)", self.config.mode)
        logger.info("=" * 60)

        if self.config.mode == "met_import":
            self.plans = self.run_met_import()
        else:
            self.plans = self.run_trakem2_export()

        logger.info("Done: %d sections, %d tiles",
                    len(self.plans), sum(p.collection.tile_count for p in self.plans))
        return self.plans

    def run_met_import(self) -> List[SectionPlan]:
        """Import a MET file into the align stack."""
        met = self.config.met
        client = self._client(self.config.service.owner, self.config.service.project)

        parser = MetRecordParser(client, met.acquire_stack,
                                 format_version=met.format_version,
                                 z_decimals=self.config.reconcile.z_decimals)
        batches = parser.parse_file(met.met_file)

        policy = UpdatePolicy.REPLACE_ALL if met.replace_all else UpdatePolicy.APPEND
        reconciler = self._reconciler(client, met.acquire_stack, policy)
        return reconciler.run(batches, met.align_stack, save_with_z=True)

    def run_trakem2_export(self) -> List[SectionPlan]:
        """Export a TrakEM2 project's alignment into a derived target stack."""
        trak = self.config.trakem2
        basis_client = self._client(trak.basis_owner, trak.basis_project)
        target_client = self._client(trak.target_owner, trak.target_project)

        reader = TrakProjectReader(trak.project_file)
        layers = reader.read_layers(trak.min_z, trak.max_z)

        section_z = {
            section.section_id: section.z
            for section in basis_client.get_stack_section_data(trak.basis_stack)
        }

        flattener = TrakTransformFlattener(section_z, trak.z_mapping,
                                           z_decimals=self.config.reconcile.z_decimals)
        batches = flattener.build_batches(layers, str(reader.path))
        require(
            len(batches) > 0,
            f"No visible patches found in {reader.path} for z {trak.min_z}..{trak.max_z}.",
            EmptyInputError,
        )

        basis_metadata = basis_client.get_stack_metadata(trak.basis_stack)
        target_client.setup_derived_stack(basis_metadata, trak.target_stack)

        # export saves patches as placed in TrakEM2, without tile validation
        reconciler = self._reconciler(basis_client, trak.basis_stack, UpdatePolicy.REPLACE_LAST,
                                      prune=True, target_client=target_client, validate=False)
        # tiles may have been mapped to different z values, so save without one
        plans = reconciler.run(batches, trak.target_stack, save_with_z=False)

        if trak.complete_stack_after_export:
            target_client.set_stack_state(trak.target_stack, "COMPLETE")

        return plans
