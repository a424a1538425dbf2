"""Core PPI runner.

This module contains the actual runner, separated from argument parsing in
scripts/. The ``radvol-ppi`` console script points at :func:`main`.
"""

import argparse
import importlib.util
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from radvol.contracts import RadvolError
from radvol.pipeline import VolumeProcessor
from radvol.schemas import CLIConfig, InternalConfig, ParamConfig, UserConfig, resolve_config

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

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def setup_logging(config: InternalConfig, log_dir: Optional[Path] = None) -> None:
    """Configure the root logger from ``config.logging.level``.

    Console output always; a ``radvol_ppi.log`` file as well when
    ``log_dir`` is given.
    """
    log_level = getattr(logging, config.logging.level, logging.INFO)
    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / "radvol_ppi.log")
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)


def build_config(user_config_path: Optional[str] = None,
                 cli_args: Optional[Dict[str, Any]] = None) -> InternalConfig:
    """Resolve Param < User < CLI into the runtime config."""
    user_cfg = UserConfig()
    if user_config_path is not None:
        user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))

    cli_dict = {k: v for k, v in (cli_args or {}).items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    return resolve_config(ParamConfig(), user_cfg, cli_cfg)


def run_ppi(filepath: str, config: InternalConfig,
            output_dir: Optional[str] = None) -> Dict[str, object]:
    """Process one radar file into a PPI raster with the given config."""
    processor = VolumeProcessor(config)
    return processor.process_file(filepath, output_dir=output_dir)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radvol-ppi",
        description="Project one sweep of a radar volume onto a Cartesian PPI raster",
    )
    parser.add_argument("file", help="Radar volume file (NEXRAD Level-II, ODIM HDF5, CfRadial)")
    parser.add_argument("--config", help="Path to user config file (Python file with CONFIG dict)")
    parser.add_argument("--elevation", type=float, help="Sweep elevation in degrees")
    parser.add_argument("--max-range", type=float, help="Raster half-width in metres")
    parser.add_argument("--resolution", type=float, help="Raster cell size in metres")
    parser.add_argument("--parameters", nargs="+", help="Parameters to project (e.g. DBZH DBZH_clean)")
    parser.add_argument("--no-classify", action="store_true", help="Skip the classifier")
    parser.add_argument("--output-dir", help="Directory for NetCDF and plots")
    parser.add_argument("--plot", action="store_true", help="Also save a figure")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = build_config(args.config, {
        "elevation": args.elevation,
        "max_range": args.max_range,
        "resolution": args.resolution,
        "parameters": args.parameters,
        "classify": False if args.no_classify else None,
        "output_dir": args.output_dir,
        "plot": True if args.plot else None,
        "log_level": "DEBUG" if args.verbose else None,
    })

    output_dir = config.output.output_dir
    setup_logging(config, Path(output_dir) if output_dir else None)

    if args.verbose:
        logger.debug("Full internal configuration:\n%s",
                     json.dumps(config.model_dump(), indent=2))

    try:
        result = run_ppi(args.file, config)
    except RadvolError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    for key in ("netcdf", "plot"):
        if result[key] is not None:
            print(f"{key}: {result[key]}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
