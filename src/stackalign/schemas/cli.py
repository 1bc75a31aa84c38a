"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: mode, input files, stack names, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import model_validator
from stackalign.schemas.base import StackAlignBaseModel


class CLIConfig(StackAlignBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Notes
    -----
    If met_file is given without a mode, mode becomes "met_import"; if
    trakem2_project is given without a mode, mode becomes "trakem2_export"
    (schema responsibility, not runtime).
    """

    mode: Optional[Literal["met_import", "trakem2_export"]] = None
    met_file: Optional[str] = None
    format_version: Optional[Literal["v1", "v2"]] = None
    replace_all: Optional[bool] = None
    trakem2_project: Optional[str] = None
    target_stack: Optional[str] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None
    log_file: Optional[str] = None

    @model_validator(mode="after")
    def infer_mode_from_inputs(self):
        """Pick the mode from whichever input file was given."""
        if self.mode is None:
            if self.met_file and not self.trakem2_project:
                self.mode = "met_import"
            elif self.trakem2_project and not self.met_file:
                self.mode = "trakem2_export"

        return self

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.mode is not None:
            overrides["mode"] = self.mode

        met_overrides = {}
        if self.met_file is not None:
            met_overrides["met_file"] = self.met_file
        if self.format_version is not None:
            met_overrides["format_version"] = self.format_version
        if self.replace_all is not None:
            met_overrides["replace_all"] = self.replace_all
        if met_overrides:
            overrides["met"] = met_overrides

        trakem2_overrides = {}
        if self.trakem2_project is not None:
            trakem2_overrides["project_file"] = self.trakem2_project
        if self.target_stack is not None:
            trakem2_overrides["target_stack"] = self.target_stack
        if trakem2_overrides:
            overrides["trakem2"] = trakem2_overrides

        logging_overrides = {}
        if self.log_level is not None:
            logging_overrides["level"] = self.log_level
        if self.log_file is not None:
            logging_overrides["log_file"] = self.log_file
        if logging_overrides:
            overrides["logging"] = logging_overrides

        return overrides
