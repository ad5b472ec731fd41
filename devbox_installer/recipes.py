from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from .config import ProvisionConfig
from .lib.accounts import AccountSpec
from .pipeline import Precondition, Step, Verification
from .steps import (
    AppendFragmentStep,
    AptPrerequisitesStep,
    BrewBinLinkStep,
    BrewPrefixStep,
    BrewUpdateStep,
    CommandVerification,
    CorepackEnableStep,
    EnsureDirStep,
    GroupMembersStep,
    GroupStep,
    HomebrewCloneStep,
    HomebrewPullStep,
    LocaleStep,
    ManagedFileStep,
    OsFamilyGate,
    RootGate,
    SharedTreeStep,
    ToolVersionGate,
    TreeModeStep,
    UserShellRcStep,
    UserStep,
    YarnActivateStep,
)
from .templates import (
    add_user_helper_fragment,
    brew_env_fragment,
    brew_shellenv_fragment,
    corepack_fragment,
    linuxbrew_notes,
    yarn_notes,
)


@dataclass(frozen=True)
class Recipe:
    name: str
    gates: Sequence[Precondition]
    steps: Sequence[Step]
    verifications: Sequence[Verification] = ()
    notes: List[str] = field(default_factory=list)


def build_yarn(cfg: ProvisionConfig) -> Recipe:
    fragment = corepack_fragment(cfg)
    return Recipe(
        name="yarn",
        gates=[
            OsFamilyGate(),
            RootGate(),
            ToolVersionGate("node", cfg.node_min_major, label="Node.js"),
        ],
        steps=[
            EnsureDirStep("corepack_home", cfg.corepack_home, mode=0o755),
            CorepackEnableStep(),
            YarnActivateStep(),
            TreeModeStep("corepack_home_readable", cfg.corepack_home, mode=0o755),
            ManagedFileStep("corepack_profile", "/etc/profile.d/corepack.sh", fragment, mode=0o644),
            AppendFragmentStep("corepack_bashrc", "/etc/bash.bashrc", fragment),
        ],
        verifications=[
            CommandVerification("yarn", ["yarn", "--version"], label="Yarn"),
        ],
        notes=yarn_notes(cfg),
    )


def build_linuxbrew(cfg: ProvisionConfig) -> Recipe:
    env = brew_env_fragment(cfg)
    shellenv = brew_shellenv_fragment(cfg)

    steps: List[Step] = [
        AptPrerequisitesStep("apt_prerequisites", cfg.apt_packages),
        LocaleStep("locale", cfg.locale),
        GroupStep("brew_group", cfg.brew_group),
        UserStep(
            "brew_user",
            AccountSpec(name=cfg.brew_user, home=cfg.brew_home, shell="/bin/bash", group=cfg.brew_group),
        ),
        BrewPrefixStep(),
        GroupMembersStep(
            "brew_group_members",
            cfg.brew_group,
            owner=cfg.brew_user,
            extra_members=cfg.extra_members,
        ),
        HomebrewCloneStep(),
    ]
    if cfg.update_checkout:
        steps.append(HomebrewPullStep())
    steps += [
        BrewBinLinkStep(),
        SharedTreeStep("shared_permissions", cfg.brew_prefix, user=cfg.brew_user, group=cfg.brew_group),
        ManagedFileStep("brew_profile", "/etc/profile.d/homebrew.sh", env, mode=0o644),
        AppendFragmentStep("brew_bashrc", "/etc/bash.bashrc", env),
        AppendFragmentStep("brew_zshrc", "/etc/zsh/zshrc", env, only_if_exists=True),
        UserShellRcStep([(".bashrc", shellenv), (".zshrc", shellenv), (".profile", env)]),
        AppendFragmentStep("skel_bashrc", "/etc/skel/.bashrc", shellenv, only_if_exists=True),
        ManagedFileStep(
            "add_user_helper",
            cfg.helper_script,
            add_user_helper_fragment(cfg),
            mode=0o755,
            header="#!/bin/bash\n",
        ),
        BrewUpdateStep(),
        SharedTreeStep("final_permissions", cfg.brew_prefix, user=cfg.brew_user, group=cfg.brew_group),
    ]

    return Recipe(
        name="linuxbrew",
        gates=[OsFamilyGate(), RootGate()],
        steps=steps,
        verifications=[
            CommandVerification(
                "brew",
                ["sudo", "-u", cfg.brew_user, f"{cfg.brew_prefix}/bin/brew", "--version"],
                label="Homebrew",
            ),
        ],
        notes=linuxbrew_notes(cfg),
    )


RECIPES: Dict[str, Callable[[ProvisionConfig], Recipe]] = {
    "yarn": build_yarn,
    "linuxbrew": build_linuxbrew,
}
