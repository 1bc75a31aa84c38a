"""Command-line interface modules for stackalign runs.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from stackalign.cli.run_stackalign import main, run_stackalign

__all__ = ['main', 'run_stackalign']
