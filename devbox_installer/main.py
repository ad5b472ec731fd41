from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, Optional

from .config import ProvisionConfig, load_config
from .context import ProvisionCtx
from .errors import ProvisionError
from .lib.command import CommandRunner
from .lib.env import PATHS
from .lib.fragments import ShellFragment, fragment_status
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import PipelineResult, run_pipeline
from .recipes import RECIPES, Recipe
from .state_store import ensure_defaults, load_state, record_error, record_run, save_state

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = PATHS.state_default


def _report_fragments(ctx: ProvisionCtx, recipe: Recipe) -> None:
    for step in recipe.steps:
        fragment = getattr(step, "fragment", None)
        host_path = getattr(step, "host_path", None)
        if isinstance(fragment, ShellFragment) and host_path:
            status = fragment_status(ctx.path(host_path), fragment)
            if status == "stale":
                logger.warning("%s: %s block differs from the current template", host_path, fragment.key)
            else:
                logger.info("%s: %s", host_path, status)


def run(
    recipe_name: str,
    *,
    cfg: ProvisionConfig,
    runner: Optional[CommandRunner] = None,
    state_path: Optional[str] = DEFAULT_STATE_PATH,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    check_only: bool = False,
) -> PipelineResult:
    """Run one recipe end to end, journaling the outcome to state_path."""

    runner = runner or CommandRunner(root=cfg.root)
    if os.path.normpath(runner.root) != os.path.normpath(cfg.root):
        raise ValueError(f"Command runner root {runner.root} does not match configured root {cfg.root}")
    recipe = RECIPES[recipe_name](cfg)
    persist = state_path is not None and not (runner.dry_run or check_only)

    state: Dict[str, Any] = ensure_defaults(load_state(state_path) if persist else {})
    ctx = ProvisionCtx(cfg=cfg, runner=runner, state=state, check_only=check_only)

    mode = "check" if check_only else ("dry-run" if runner.dry_run else "apply")
    logger.info("Starting %s provisioning (%s, root=%s)", recipe.name, mode, cfg.root)

    try:
        result = run_pipeline(
            ctx,
            gates=recipe.gates,
            steps=recipe.steps,
            verifications=recipe.verifications,
            start_at=start_at,
            stop_after=stop_after,
            check_only=check_only,
        )
    except ProvisionError as e:
        logger.error("%s", e)
        record_error(ctx.state, recipe=recipe.name, step=getattr(e, "step_id", None), error=str(e))
        raise
    finally:
        if persist:
            save_state(str(state_path), ctx.state)

    if check_only:
        _report_fragments(ctx, recipe)
    else:
        record_run(ctx.state, recipe.name, result.summary())
        if persist:
            save_state(str(state_path), ctx.state)
        logger.info("%s: installation complete (%d applied, %d already configured)",
                    recipe.name, len(result.ran_steps), len(result.skipped_steps))
        for w in result.warnings:
            logger.warning("%s", w)
        for note in recipe.notes:
            logger.info("%s", note)
    return result


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="devbox-installer")
    p.add_argument("--config", default=PATHS.config_default, help="YAML config file")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to run journal (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to log file")
    p.add_argument("--root", default=None, help="Resolve host files under this directory")
    p.add_argument("-v", "--verbose", action="store_true", help="Show commands and queries on the console")

    sub = p.add_subparsers(dest="recipe", required=True)
    for name, help_text in (
        ("yarn", "Install Yarn system-wide via Corepack (requires Node.js 16+)"),
        ("linuxbrew", "Install Homebrew system-wide under a shared linuxbrew account"),
    ):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("--dry-run", action="store_true", help="Log mutations without performing them")
        sp.add_argument("--check", action="store_true", help="Only report which steps are pending")
        sp.add_argument("--start-at", default=None, help="Start at step id")
        sp.add_argument("--stop-after", default=None, help="Stop after step id")

    args = p.parse_args(argv)

    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg = load_config(args.config).with_overrides(root=args.root)
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    step_ids = [s.step_id for s in RECIPES[args.recipe](cfg).steps]
    for opt, wanted in (("--start-at", args.start_at), ("--stop-after", args.stop_after)):
        if wanted is not None and wanted not in step_ids:
            p.error(f"{opt}: unknown step id {wanted!r} (choose from {', '.join(step_ids)})")

    try:
        result = run(
            args.recipe,
            cfg=cfg,
            runner=CommandRunner(dry_run=args.dry_run, root=cfg.root),
            state_path=args.state,
            start_at=args.start_at,
            stop_after=args.stop_after,
            check_only=args.check,
        )
    except ProvisionError:
        return 1
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    if args.check and result.pending_steps:
        logger.info("Pending steps: %s", ", ".join(result.pending_steps))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
