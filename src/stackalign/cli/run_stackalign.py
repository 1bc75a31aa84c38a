"""Core stackalign run execution logic.

This module contains the actual runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import sys
import json
import logging
import argparse
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any, List

from stackalign.contracts.failure import StackAlignError
from stackalign.pipeline.orchestrator import ReconciliationOrchestrator
from stackalign.pipeline.reconciler import SectionPlan
from stackalign.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig


logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    # Find CONFIG dict
    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def run_stackalign(
    user_config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None,
    verbose: bool = False,
    client_factory=None,
) -> List[SectionPlan]:
    """Execute one reconciliation run.

    This is the core execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Instantiates the orchestrator and runs the configured mode
    3. Blocks until every section is saved or the run fails

    Parameters
    ----------
    user_config_path : str, optional
        Path to user config file (Python file with CONFIG dict).

    cli_args : dict, optional
        CLI argument overrides. Keys: mode, met_file, format_version,
        replace_all, trakem2_project, target_stack, log_level, log_file.
        All optional; None values are ignored.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    client_factory : callable, optional
        Passed to the orchestrator (for testing).

    Returns
    -------
    list of SectionPlan
        Saved sections.

    Raises
    ------
    FileNotFoundError
        If user_config_path does not exist.
    ValueError
        If configuration validation fails.
    StackAlignError
        If the run fails.

    Examples
    --------
    Import a MET file::

        run_stackalign("scripts/user_config.py", cli_args={"met_file": "/data/5100.met"})

    Export a TrakEM2 project with debug logging::

        run_stackalign(
            "scripts/user_config.py",
            cli_args={"trakem2_project": "/data/montage.xml", "target_stack": "v12_montage"},
            verbose=True,
        )
    """
    # Load configurations
    param_cfg = ParamConfig()  # Expert defaults

    if user_config_path:
        user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))
    else:
        user_cfg = UserConfig()

    cli_args = dict(cli_args or {})
    if verbose and cli_args.get("log_level") is None:
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    # Resolve to internal config (Param < User < CLI)
    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    # Print summary
    print(f"\n{'='*60}")
    print("stackalign reconciliation")
    print('='*60)
    print(f"Config:  {user_config_path}")
    print(f"Mode:    {config.mode}")
    print(f"Service: {config.service.base_data_url}")
    if config.mode == "met_import":
        print(f"Input:   {config.met.met_file} ({config.met.format_version})")
        print(f"Stacks:  {config.met.acquire_stack} -> {config.met.align_stack}")
    else:
        print(f"Input:   {config.trakem2.project_file}")
        print(f"Stacks:  {config.trakem2.basis_stack} -> {config.trakem2.target_stack}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('='*60)

    orchestrator = ReconciliationOrchestrator(config, client_factory=client_factory)
    return orchestrator.start()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile externally computed alignment transforms with render tile stacks"
    )
    parser.add_argument("config", nargs="?", help="Path to user config file")
    parser.add_argument("--mode", choices=["met_import", "trakem2_export"], help="Override mode")
    parser.add_argument("--met-file", help="MET file to import")
    parser.add_argument("--format-version", choices=["v1", "v2"], help="MET format version")
    parser.add_argument("--replace-all", action="store_true", default=None,
                        help="Replace every existing transform instead of appending")
    parser.add_argument("--trakem2-project", help="TrakEM2 XML project to export")
    parser.add_argument("--target-stack", help="Export target stack")
    parser.add_argument("--log-file", help="Also write log output to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)

    cli_args = {
        "mode": args.mode,
        "met_file": args.met_file,
        "format_version": args.format_version,
        "replace_all": args.replace_all,
        "trakem2_project": args.trakem2_project,
        "target_stack": args.target_stack,
        "log_file": args.log_file,
    }

    try:
        run_stackalign(args.config, cli_args=cli_args, verbose=args.verbose)
    except (StackAlignError, ValueError, OSError):
        logger.exception("run failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
