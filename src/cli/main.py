"""CLI entry point for the rollover strategy simulator."""

from __future__ import annotations

import argparse
import importlib.util
import json
import logging
import sys
from pathlib import Path
from typing import Any

from engine.scenario_runner import run_scenario
from strategies import describe
from utils.config_validator import ConfigValidationError, validate_scenario_config
from utils.logging_config import setup_logging

LOGGER = logging.getLogger("rollover.cli")

SUPPORTED_FORMATS = (".json", ".toml", ".yaml", ".yml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="rollover strategy CLI")
    parser.add_argument("--version", action="version", version="rollover 0.1.0")
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate_parser = subparsers.add_parser(
        "simulate", help="Run a scripted scenario against simulated pools."
    )
    simulate_parser.add_argument(
        "--config", required=True, help="Path to JSON/TOML/YAML scenario file."
    )
    simulate_parser.add_argument(
        "--state-path",
        help="Optional path to state.json (defaults to config file directory).",
    )
    simulate_parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    simulate_parser.add_argument(
        "--structured-logs",
        action="store_true",
        help="Emit JSON log lines instead of plain text.",
    )
    simulate_parser.set_defaults(handler=run_simulate)

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a scenario file without running it."
    )
    validate_parser.add_argument(
        "--config", required=True, help="Path to JSON/TOML/YAML scenario file."
    )
    validate_parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    validate_parser.set_defaults(handler=run_validate)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if hasattr(args, "handler"):
        return args.handler(args)
    parser.print_help()
    return 1


def run_simulate(args: argparse.Namespace) -> int:
    configure_logging(args.log_level, structured=args.structured_logs)
    try:
        config_path = Path(args.config).expanduser()
        config = load_config(config_path)
        try:
            validate_scenario_config(config)
        except ConfigValidationError as exc:
            LOGGER.error("Configuration validation failed: %s", exc)
            return 2
        state_path = (
            Path(args.state_path).expanduser()
            if args.state_path
            else config_path.parent / "state.json"
        )

        LOGGER.info("Strategy: %s", describe())
        LOGGER.info("Config file: %s", config_path)
        LOGGER.info("State file: %s", state_path)
        snapshot = run_scenario(config, state_path)
        for event in snapshot.events:
            params = " ".join(f"{key}={value}" for key, value in event["params"].items())
            print(f"[{event['timestamp']}] {event['name']} {params}".rstrip())
        print(
            f"phase={snapshot.phase} buffer={snapshot.buffer} cached={snapshot.cached} "
            f"total_supply={snapshot.total_supply} value={snapshot.strategy_value}"
        )
    except (FileNotFoundError, RuntimeError, ValueError) as exc:
        LOGGER.error(str(exc))
        return 2
    except Exception as exc:  # pragma: no cover - safeguard for unexpected issues.
        LOGGER.exception("Unexpected error during simulation: %s", exc)
        return 3
    return 0


def run_validate(args: argparse.Namespace) -> int:
    configure_logging(args.log_level)
    try:
        config_path = Path(args.config).expanduser()
        config = load_config(config_path)
        validate_scenario_config(config)
    except ConfigValidationError as exc:
        LOGGER.error("Configuration validation failed: %s", exc)
        return 2
    except (FileNotFoundError, RuntimeError, ValueError) as exc:
        LOGGER.error(str(exc))
        return 2
    LOGGER.info(
        "Config %s is valid: %d pools, %d steps",
        config_path,
        len(config["pools"]),
        len(config.get("steps", [])),
    )
    return 0


def configure_logging(level: str, *, structured: bool = False) -> None:
    setup_logging(level=level, structured=structured)


def load_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. Ensure the path is correct and readable."
        )
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_FORMATS:
        supported = ", ".join(SUPPORTED_FORMATS)
        raise ValueError(
            f"Unsupported config format '{suffix}'. Supported formats: {supported}."
        )
    try:
        if suffix == ".json":
            data = json.loads(config_path.read_text(encoding="utf-8"))
        elif suffix == ".toml":
            data = load_toml(config_path)
        else:
            data = load_yaml(config_path)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config file {config_path}: {exc}. Validate the file format."
        ) from exc
    except (RuntimeError, ValueError):
        raise
    except Exception as exc:
        raise RuntimeError(
            f"Failed to parse config file {config_path}: {exc}."
        ) from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {config_path} must contain a JSON/TOML/YAML object mapping."
        )
    return data


def load_toml(config_path: Path) -> dict[str, Any]:
    if sys.version_info >= (3, 11):
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(config_path.read_text(encoding="utf-8"))
    if importlib.util.find_spec("tomli") is None:
        raise RuntimeError(
            "TOML config parsing requires Python 3.11+ or the 'tomli' package. Install tomli or use JSON/YAML."
        )
    import tomli  # type: ignore[import-not-found]

    return tomli.loads(config_path.read_text(encoding="utf-8"))


def load_yaml(config_path: Path) -> dict[str, Any]:
    import yaml

    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"YAML config file {config_path} must contain a mapping at the top level."
        )
    return data


if __name__ == "__main__":
    raise SystemExit(main())
