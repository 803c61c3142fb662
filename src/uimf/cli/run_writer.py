"""Open, convert and maintain UIMF containers from the command line.

Opening a container through the writer converts legacy parameter tables to the
current layout. Optional steps back-fill the legacy tables, renumber frames
and refresh the global statistics.

Usage::

    uimf-tool data.uimf
    uimf-tool data.uimf --add-legacy-tables --update-global-stats
    uimf-tool data.uimf --config user_config.py --renumber-frames -v
"""

import argparse
import importlib.util
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from uimf import __version__
from uimf.schemas import CLIConfig, InternalConfig, UserConfig, WriterParamConfig, resolve_config
from uimf.storage import UimfWriter

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from a Python file.

    Returns the raw dict before Pydantic validation.

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
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def setup_logging(level: str = "INFO", log_path: Optional[str] = None) -> None:
    """Configure the root logger with a console handler and an optional file handler."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if log_path:
        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    root.addHandler(ch)


def build_config(user_config_path: Optional[str] = None,
                 cli_args: Optional[Dict[str, Any]] = None) -> InternalConfig:
    """Resolve the runtime config (Param < User < CLI)."""
    user_cfg = UserConfig()
    if user_config_path:
        user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))

    cli_dict = {k: v for k, v in (cli_args or {}).items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    return resolve_config(WriterParamConfig(), user_cfg, cli_cfg)


def run_writer(
    container_path: str,
    config: InternalConfig,
    add_legacy_tables: bool = False,
    renumber_frames: bool = False,
    update_global_stats: bool = False,
    create: bool = False,
) -> Dict[str, Any]:
    """Open ``container_path`` and apply the requested maintenance steps.

    Parameters
    ----------
    create : bool
        Start a new container when ``container_path`` does not exist.

    Returns
    -------
    dict
        Summary with the legacy table state, frame count and steps performed.

    Raises
    ------
    FileNotFoundError
        If the container does not exist and ``create`` is False.
    """
    if not create and not Path(container_path).is_file():
        raise FileNotFoundError(f"Container not found: {container_path}")

    summary: Dict[str, Any] = {"container": container_path, "steps": []}

    with UimfWriter(container_path, config) as writer:
        writer.create_tables()

        if add_legacy_tables and writer.add_legacy_parameter_tables():
            summary["steps"].append("add_legacy_tables")

        if renumber_frames:
            changed = writer.renumber_frames()
            summary["steps"].append(f"renumber_frames ({changed} changed)")

        if update_global_stats:
            writer.update_global_stats()
            summary["steps"].append("update_global_stats")

        summary["legacy_state"] = writer.legacy_state().value
        summary["num_frames"] = writer.global_params.num_frames

    logger.info("Finished %s: %s", container_path, ", ".join(summary["steps"]) or "no changes")
    return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="uimf-tool", description="Open, convert and maintain UIMF containers")
    parser.add_argument("container", help="Path to the .uimf file")
    parser.add_argument("--config", help="Path to user config file (Python file with CONFIG dict)")
    parser.add_argument("--create", action="store_true",
                        help="Create the container if it does not exist")
    parser.add_argument("--add-legacy-tables", action="store_true",
                        help="Create and back-fill Global_Parameters and Frame_Parameters")
    parser.add_argument("--renumber-frames", action="store_true",
                        help="Renumber frames to 1..n")
    parser.add_argument("--update-global-stats", action="store_true",
                        help="Refresh NumFrames and PrescanTOFPulses")
    parser.add_argument("--compressor", choices=["lz4", "none"], help="Override blob compressor")
    parser.add_argument("--flush-interval", type=float, help="Seconds between commits")
    parser.add_argument("--log-file", help="Also write log messages to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    config = build_config(args.config, {
        "compressor": args.compressor,
        "flush_interval": args.flush_interval,
        "log_level": "DEBUG" if args.verbose else None,
    })
    setup_logging(config.logging.level, args.log_file)

    if args.verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))

    summary = run_writer(
        args.container,
        config,
        add_legacy_tables=args.add_legacy_tables,
        renumber_frames=args.renumber_frames,
        update_global_stats=args.update_global_stats,
        create=args.create,
    )

    print(f"\n{'='*60}")
    print("UIMF container")
    print('='*60)
    print(f"File:   {summary['container']}")
    print(f"Frames: {summary['num_frames']}")
    print(f"Legacy: {summary['legacy_state']}")
    print(f"Steps:  {', '.join(summary['steps']) or 'none'}")
    print('='*60)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
