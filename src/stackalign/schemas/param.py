"""ParamConfig: Expert defaults for stackalign runs.

This module defines the complete default configuration. ALL run parameters
must have defaults here. No runtime code should define fallback values -
this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from stackalign.schemas.base import StackAlignBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class ServiceConfig(StackAlignBaseModel):
    """Render web service connection."""
    base_data_url: Optional[str] = None
    owner: Optional[str] = None
    project: Optional[str] = None
    timeout_sec: float = Field(120.0, gt=0, description="Per-request timeout in seconds")


class MetImportConfig(StackAlignBaseModel):
    """MET file import settings."""
    acquire_stack: Optional[str] = None
    align_stack: Optional[str] = None
    met_file: Optional[str] = None
    format_version: Literal["v1", "v2"] = "v1"
    replace_all: bool = False

    @field_validator("format_version", mode="before")
    @classmethod
    def normalize_format_version(cls, v):
        """Accept 'V1', ' v2 ' etc."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class TrakExportConfig(StackAlignBaseModel):
    """TrakEM2 project export settings."""
    project_file: Optional[str] = None
    basis_owner: Optional[str] = None
    basis_project: Optional[str] = None
    basis_stack: Optional[str] = None
    min_z: Optional[float] = None
    max_z: Optional[float] = None
    target_owner: Optional[str] = None
    target_project: Optional[str] = None
    target_stack: Optional[str] = None
    z_map: str = Field("", description="Comma separated sourceZ=targetZ pairs, empty for identity")
    complete_stack_after_export: bool = True


class ReconcileConfig(StackAlignBaseModel):
    """Reconciliation and validation settings."""
    validator: Literal["tem", "none"] = "tem"
    min_coordinate: float = 0.0
    max_coordinate: float = 400000.0
    min_tile_size: float = Field(500.0, ge=0)
    max_tile_size: float = Field(5000.0, gt=0)
    z_decimals: int = Field(6, ge=0, le=12, description="Decimal places used to canonicalize z keys")
    progress_interval_sec: float = Field(5.0, gt=0)


class LoggingConfig(StackAlignBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Optional[str] = None


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(StackAlignBaseModel):
    """Expert configuration with complete defaults.

    Usage
    -----
        param = ParamConfig()
        internal = resolve_config(param, user_cfg, cli_cfg)
    """

    mode: Literal["met_import", "trakem2_export"] = "met_import"
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    met: MetImportConfig = Field(default_factory=MetImportConfig)
    trakem2: TrakExportConfig = Field(default_factory=TrakExportConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
