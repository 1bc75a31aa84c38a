"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., ACQUIRE_STACK -> acquire_stack, MODE -> mode).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from stackalign.schemas.base import StackAlignBaseModel


class UserReconcileConfig(StackAlignBaseModel):
    """User-facing reconcile config."""
    validator: Optional[str] = None
    min_coordinate: Optional[float] = None
    max_coordinate: Optional[float] = None
    min_tile_size: Optional[float] = None
    max_tile_size: Optional[float] = None
    z_decimals: Optional[int] = None
    progress_interval_sec: Optional[float] = None

    @field_validator("validator", mode="before")
    @classmethod
    def normalize_validator(cls, v):
        """Normalize validator names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserTrakExportConfig(StackAlignBaseModel):
    """User-facing TrakEM2 export config (nested form)."""
    basis_owner: Optional[str] = None
    basis_project: Optional[str] = None
    target_owner: Optional[str] = None
    target_project: Optional[str] = None


class UserConfig(StackAlignBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            mode="met_import",
            base_data_url="http://render:8080/render-ws/v1",
            owner="flyTEM",
            project="FAFB00",
            acquire_stack="v12_acquire",
            align_stack="v12_align",
            met_file="/data/section_5100.met",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    mode: Optional[Literal["met_import", "trakem2_export"]] = Field(None, alias="MODE")

    # Service settings (flat aliases)
    base_data_url: Optional[str] = Field(None, alias="BASE_DATA_URL")
    owner: Optional[str] = Field(None, alias="OWNER")
    project: Optional[str] = Field(None, alias="PROJECT")

    # MET import settings
    acquire_stack: Optional[str] = Field(None, alias="ACQUIRE_STACK")
    align_stack: Optional[str] = Field(None, alias="ALIGN_STACK")
    met_file: Optional[str] = Field(None, alias="MET_FILE")
    format_version: Optional[str] = Field(None, alias="FORMAT_VERSION")
    replace_all: Optional[bool] = Field(None, alias="REPLACE_ALL")

    # TrakEM2 export settings
    trakem2_project: Optional[str] = Field(None, alias="TRAKEM2_PROJECT")
    basis_stack: Optional[str] = Field(None, alias="BASIS_STACK")
    min_z: Optional[float] = Field(None, alias="MIN_Z")
    max_z: Optional[float] = Field(None, alias="MAX_Z")
    target_stack: Optional[str] = Field(None, alias="TARGET_STACK")
    z_map: Optional[str] = Field(None, alias="Z_MAP")
    complete_stack: Optional[bool] = Field(None, alias="COMPLETE_STACK")

    # Validation settings (flat aliases)
    validator: Optional[str] = Field(None, alias="VALIDATOR")

    # Logging
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(None, alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")

    # Nested overrides (advanced users)
    trakem2: Optional[UserTrakExportConfig] = None
    reconcile: Optional[UserReconcileConfig] = None

    model_config = StackAlignBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("min_z", "max_z", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for z bounds."""
        if v is not None:
            return float(v)
        return v

    @field_validator("format_version", "validator", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.mode is not None:
            overrides["mode"] = self.mode

        service = {}
        if self.base_data_url is not None:
            service["base_data_url"] = self.base_data_url
        if self.owner is not None:
            service["owner"] = self.owner
        if self.project is not None:
            service["project"] = self.project
        if service:
            overrides["service"] = service

        met = {}
        if self.acquire_stack is not None:
            met["acquire_stack"] = self.acquire_stack
        if self.align_stack is not None:
            met["align_stack"] = self.align_stack
        if self.met_file is not None:
            met["met_file"] = self.met_file
        if self.format_version is not None:
            met["format_version"] = self.format_version
        if self.replace_all is not None:
            met["replace_all"] = self.replace_all
        if met:
            overrides["met"] = met

        trakem2 = {}
        if self.trakem2_project is not None:
            trakem2["project_file"] = self.trakem2_project
        if self.basis_stack is not None:
            trakem2["basis_stack"] = self.basis_stack
        if self.min_z is not None:
            trakem2["min_z"] = self.min_z
        if self.max_z is not None:
            trakem2["max_z"] = self.max_z
        if self.target_stack is not None:
            trakem2["target_stack"] = self.target_stack
        if self.z_map is not None:
            trakem2["z_map"] = self.z_map
        if self.complete_stack is not None:
            trakem2["complete_stack_after_export"] = self.complete_stack

        # Merge with explicit trakem2 config
        if self.trakem2 is not None:
            trakem2.update(self.trakem2.model_dump(exclude_none=True))
        if trakem2:
            overrides["trakem2"] = trakem2

        reconcile = {}
        if self.validator is not None:
            reconcile["validator"] = self.validator
        if self.reconcile is not None:
            reconcile.update(self.reconcile.model_dump(exclude_none=True))
        if reconcile:
            overrides["reconcile"] = reconcile

        logging_cfg = {}
        if self.log_level is not None:
            logging_cfg["level"] = self.log_level
        if self.log_file is not None:
            logging_cfg["log_file"] = self.log_file
        if logging_cfg:
            overrides["logging"] = logging_cfg

        return overrides
