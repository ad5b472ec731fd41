from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import List, Tuple

from ..context import ProvisionCtx
from ..lib.accounts import home_users, lookup_uid
from ..lib.fragments import ShellFragment, append_fragment, fragment_present
from ..lib.perms import chown_tree
from ..state_store import record_fragment
from .base import BaseStep, PerMemberStep

logger = logging.getLogger(__name__)


def _as_user(user: str, argv: List[str]) -> List[str]:
    return ["sudo", "-u", user, *argv]


class BrewPrefixStep(BaseStep):
    """Prefix exists, home is owned by the service account and traversable
    by everyone."""

    step_id = "brew_prefix"

    def check(self, ctx: ProvisionCtx) -> bool:
        home = ctx.path(ctx.cfg.brew_home)
        if not (home.is_dir() and ctx.path(ctx.cfg.brew_prefix).is_dir()):
            return False
        st = home.stat()
        if stat.S_IMODE(st.st_mode) != 0o755:
            return False
        uid = lookup_uid(ctx.runner, ctx.cfg.brew_user)
        return uid is not None and st.st_uid == uid

    def apply(self, ctx: ProvisionCtx) -> None:
        logger.info("Creating Homebrew directory structure")
        prefix = ctx.path(ctx.cfg.brew_prefix)
        if ctx.dry_run:
            logger.info("Would create %s", prefix)
        else:
            prefix.mkdir(parents=True, exist_ok=True)
        chown_tree(ctx.runner, ctx.cfg.brew_home, ctx.cfg.brew_user, ctx.cfg.brew_group)
        if not ctx.dry_run:
            os.chmod(ctx.path(ctx.cfg.brew_home), 0o755)


class HomebrewCloneStep(BaseStep):
    """Clone Homebrew/brew as the service account.

    A directory that exists but is not a git checkout is removed first.
    """

    step_id = "homebrew_clone"

    def _repo(self, ctx: ProvisionCtx) -> str:
        return f"{ctx.cfg.brew_prefix}/Homebrew"

    def check(self, ctx: ProvisionCtx) -> bool:
        return ctx.path(self._repo(ctx) + "/.git").is_dir()

    def apply(self, ctx: ProvisionCtx) -> None:
        repo = self._repo(ctx)
        if ctx.path(repo).exists():
            logger.warning("Removing invalid Homebrew directory %s", repo)
            ctx.runner.run(["rm", "-rf", repo])
        logger.info("Cloning Homebrew from %s", ctx.cfg.brew_repo_url)
        ctx.runner.run(_as_user(ctx.cfg.brew_user, ["git", "clone", ctx.cfg.brew_repo_url, repo]))


class HomebrewPullStep(BaseStep):
    """Fast-forward an existing checkout. Only used with update_checkout.

    Runs once per apply; check mode cannot tell whether a pull is due, so
    the step is not reported as pending there.
    """

    step_id = "homebrew_update_checkout"
    critical = False
    verify_after_apply = False

    def __init__(self) -> None:
        self._pulled = False

    def check(self, ctx: ProvisionCtx) -> bool:
        return self._pulled or ctx.check_only

    def apply(self, ctx: ProvisionCtx) -> None:
        repo = f"{ctx.cfg.brew_prefix}/Homebrew"
        ctx.runner.run(_as_user(ctx.cfg.brew_user, ["git", "-C", repo, "pull"]))
        self._pulled = True


class BrewBinLinkStep(BaseStep):
    step_id = "brew_bin_link"

    def _paths(self, ctx: ProvisionCtx) -> Tuple[str, str]:
        prefix = ctx.cfg.brew_prefix
        return f"{prefix}/Homebrew/bin/brew", f"{prefix}/bin/brew"

    def check(self, ctx: ProvisionCtx) -> bool:
        target, link = self._paths(ctx)
        p = ctx.path(link)
        return p.is_symlink() and os.readlink(p) == target

    def apply(self, ctx: ProvisionCtx) -> None:
        target, link = self._paths(ctx)
        user = ctx.cfg.brew_user
        ctx.runner.run(_as_user(user, ["mkdir", "-p", f"{ctx.cfg.brew_prefix}/bin"]))
        ctx.runner.run(_as_user(user, ["ln", "-sf", target, link]))


class BrewUpdateStep(BaseStep):
    """First `brew update`; done once the checkout has fetched."""

    step_id = "brew_update"
    critical = False

    def check(self, ctx: ProvisionCtx) -> bool:
        return ctx.path(f"{ctx.cfg.brew_prefix}/Homebrew/.git/FETCH_HEAD").exists()

    def apply(self, ctx: ProvisionCtx) -> None:
        logger.info("Initializing Homebrew (this may take a few minutes)")
        ctx.runner.run(_as_user(ctx.cfg.brew_user, [f"{ctx.cfg.brew_prefix}/bin/brew", "update", "--force"]))


RcTarget = Tuple[str, Path, ShellFragment]


class UserShellRcStep(PerMemberStep[RcTarget]):
    """Append brew setup to each home user's existing .bashrc/.zshrc/.profile."""

    step_id = "user_shell_rc"

    def __init__(self, rc_files: List[Tuple[str, ShellFragment]]) -> None:
        self.rc_files = rc_files

    def members(self, ctx: ProvisionCtx) -> List[RcTarget]:
        out: List[RcTarget] = []
        for user, home in home_users(ctx.runner, ctx.path("/home"), exclude=(ctx.cfg.brew_user,)):
            for name, fragment in self.rc_files:
                rc = home / name
                if rc.is_file():
                    out.append((user, rc, fragment))
        return out

    def describe(self, member: RcTarget) -> str:
        return str(member[1])

    def member_done(self, ctx: ProvisionCtx, member: RcTarget) -> bool:
        _, rc, fragment = member
        return fragment_present(rc, fragment)

    def apply_member(self, ctx: ProvisionCtx, member: RcTarget) -> None:
        _, rc, fragment = member
        if append_fragment(rc, fragment, dry_run=ctx.dry_run) and not ctx.dry_run:
            host_path = "/" + str(rc.relative_to(ctx.root))
            record_fragment(ctx.state, path=host_path, key=fragment.key, sha256=fragment.sha256())
