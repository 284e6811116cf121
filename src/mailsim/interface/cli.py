"""
mailsim command line.

    mailsim run WORLD_FILE [--target N] [--timeout S] [--seed N] ...

Loads a world (YAML or JSON), runs the simulation against every provider
that has an API key (or none with --offline), and writes the results.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from ..config import load_config
from ..llm import ModelRouter, create_model_router
from ..simulation.tick import SimulationOptions, run_simulation
from ..simulation.transcript import MailboxTranscript
from ..state.store import load_world_file, save_world_file
from .renderer import THEME, console, show_cost_table, show_tick, show_world_header, show_world_summary

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mailsim",
        description="mailsim - narrative email simulation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a simulation over a world file")
    run.add_argument("world", type=Path, help="World state file (.yaml, .yml or .json)")
    run.add_argument("--target", type=int, help="Stop once the world holds this many emails")
    run.add_argument("--timeout", type=float, help="Wall-clock limit in seconds")
    run.add_argument("--seed", type=int, help="Seed for every random decision")
    run.add_argument("--config", type=Path, help="Config file (default: .mailsim_config.json)")
    run.add_argument(
        "--offline",
        action="store_true",
        help="Use no providers; every email comes from templates",
    )
    run.add_argument("--out", type=Path, help="Write the final world state here")
    run.add_argument("--transcript", type=Path, help="Directory for a markdown mailbox transcript")
    run.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def options_from(args: argparse.Namespace, config) -> SimulationOptions:
    """Command line wins over config file, config file over defaults."""
    target = args.target if args.target is not None else config["target_emails"]
    timeout = args.timeout if args.timeout is not None else config["timeout_seconds"]
    seed = args.seed if args.seed is not None else config["seed"]
    return SimulationOptions(
        target_emails=target,
        timeout_ms=int(timeout * 1000),
        tick_duration_hours=config["tick_duration_hours"],
        events_per_tick=config["events_per_tick"],
        seed=seed,
        inter_tick_delay=config["inter_tick_delay"],
        analysis_model=config["analysis_model"],
        on_tick=show_tick,
    )


def run_command(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    logging.basicConfig(
        level=(args.log_level or config["log_level"]).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        world = load_world_file(args.world)
    except (OSError, ValueError) as e:
        console.print(f"[{THEME['danger']}]Could not load {args.world}: {e}[/{THEME['danger']}]")
        return 1

    if args.offline:
        router = ModelRouter(clients={})
    else:
        router = create_model_router(openrouter_model=config["openrouter_model"])

    show_world_header(world, str(args.world))
    models = router.available_models()
    if models:
        console.print(f"[{THEME['dim']}]Providers: {', '.join(models)}[/{THEME['dim']}]")
    else:
        console.print(f"[{THEME['warning']}]No providers configured; using templates only[/{THEME['warning']}]")

    options = options_from(args, config)
    result = asyncio.run(run_simulation(world, router, options))

    show_world_summary(result.world)
    show_cost_table(router.get_cumulative_usage())

    if args.out:
        save_world_file(result.world, args.out)
        console.print(f"[{THEME['dim']}]World written to {args.out}[/{THEME['dim']}]")

    if args.transcript:
        transcript = MailboxTranscript(
            world=result.world,
            results=result.results,
            cost_summary=router.get_cost_summary(),
        )
        path = transcript.save(args.transcript)
        console.print(f"[{THEME['dim']}]Transcript saved to {path}[/{THEME['dim']}]")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.command == "run":
        return run_command(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
