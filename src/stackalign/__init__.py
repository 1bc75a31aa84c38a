"""`stackalign` - reconcile externally computed alignment transforms with render tile stacks.

Subpackages:
- transforms: Transform models and their render JSON specs
- tiles: Tile specs, per-z collections, validation, alignment batches
- sources: MET file and TrakEM2 project readers
- client: Render web service client
- pipeline: Reconciler and run orchestrator
- schemas: Layered pydantic configuration
- contracts: Fail-fast invariants and the failure taxonomy
"""

__version__ = "0.1.0"
