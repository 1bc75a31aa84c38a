"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated
and normalized: mode-specific required fields are checked here, the z map
string is parsed here, and owner/project fallbacks are already filled in.
"""

from typing import Dict, Literal, Optional
from pydantic import Field, ConfigDict, model_validator
from stackalign.schemas.base import StackAlignBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalServiceConfig(StackAlignBaseModel):
    """Runtime render web service configuration."""
    base_data_url: Optional[str]
    owner: Optional[str]
    project: Optional[str]
    timeout_sec: float


class InternalMetImportConfig(StackAlignBaseModel):
    """Runtime MET import configuration."""
    acquire_stack: Optional[str]
    align_stack: Optional[str]
    met_file: Optional[str]
    format_version: Literal["v1", "v2"]
    replace_all: bool


class InternalTrakExportConfig(StackAlignBaseModel):
    """Runtime TrakEM2 export configuration.

    ``z_mapping`` is the parsed form of ``z_map``; it is empty when no
    mapping was given (identity).
    """
    project_file: Optional[str]
    basis_owner: Optional[str]
    basis_project: Optional[str]
    basis_stack: Optional[str]
    min_z: Optional[float]
    max_z: Optional[float]
    target_owner: Optional[str]
    target_project: Optional[str]
    target_stack: Optional[str]
    z_map: str
    z_mapping: Dict[float, float] = Field(default_factory=dict)
    complete_stack_after_export: bool


class InternalReconcileConfig(StackAlignBaseModel):
    """Runtime reconciliation configuration."""
    validator: Literal["tem", "none"]
    min_coordinate: float
    max_coordinate: float
    min_tile_size: float
    max_tile_size: float
    z_decimals: int
    progress_interval_sec: float


class InternalLoggingConfig(StackAlignBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    log_file: Optional[str]


# =============================================================================
# Main InternalConfig
# =============================================================================

_REQUIRED_BY_MODE = {
    "met_import": (
        ("service", "base_data_url"),
        ("service", "owner"),
        ("service", "project"),
        ("met", "acquire_stack"),
        ("met", "align_stack"),
        ("met", "met_file"),
    ),
    "trakem2_export": (
        ("service", "base_data_url"),
        ("trakem2", "project_file"),
        ("trakem2", "basis_owner"),
        ("trakem2", "basis_project"),
        ("trakem2", "basis_stack"),
        ("trakem2", "target_owner"),
        ("trakem2", "target_project"),
        ("trakem2", "target_stack"),
    ),
}


class InternalConfig(StackAlignBaseModel):
    """Authoritative runtime configuration.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.acquire_stack = config.met.acquire_stack  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation in runtime code
    """

    mode: Literal["met_import", "trakem2_export"]
    service: InternalServiceConfig
    met: InternalMetImportConfig
    trakem2: InternalTrakExportConfig
    reconcile: InternalReconcileConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

    @model_validator(mode="after")
    def check_mode_requirements(self):
        """Every field the selected mode depends on must be set."""
        missing = [
            f"{section}.{name}"
            for section, name in _REQUIRED_BY_MODE[self.mode]
            if getattr(getattr(self, section), name) in (None, "")
        ]
        if missing:
            raise ValueError(f"{self.mode} mode requires: {', '.join(missing)}")

        if self.mode == "trakem2_export":
            t = self.trakem2
            if t.min_z is not None and t.max_z is not None and t.min_z > t.max_z:
                raise ValueError(f"trakem2 min_z ({t.min_z}) is greater than max_z ({t.max_z})")

        return self
