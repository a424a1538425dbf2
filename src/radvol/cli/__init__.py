"""Command-line interface modules for radvol.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from radvol.cli.run_ppi import main, run_ppi

__all__ = ['main', 'run_ppi']
