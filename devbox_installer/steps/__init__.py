from .accounts import GroupMembersStep, GroupStep, UserStep
from .corepack import CorepackEnableStep, YarnActivateStep
from .files import AppendFragmentStep, EnsureDirStep, ManagedFileStep
from .homebrew import (
    BrewBinLinkStep,
    BrewPrefixStep,
    BrewUpdateStep,
    HomebrewCloneStep,
    HomebrewPullStep,
    UserShellRcStep,
)
from .packages import AptPrerequisitesStep, LocaleStep
from .permissions import SharedTreeStep, TreeModeStep
from .prechecks import OsFamilyGate, RootGate, ToolVersionGate
from .verify import CommandVerification

__all__ = [
    "GroupMembersStep",
    "GroupStep",
    "UserStep",
    "CorepackEnableStep",
    "YarnActivateStep",
    "AppendFragmentStep",
    "EnsureDirStep",
    "ManagedFileStep",
    "BrewBinLinkStep",
    "BrewPrefixStep",
    "BrewUpdateStep",
    "HomebrewCloneStep",
    "HomebrewPullStep",
    "UserShellRcStep",
    "AptPrerequisitesStep",
    "LocaleStep",
    "SharedTreeStep",
    "TreeModeStep",
    "OsFamilyGate",
    "RootGate",
    "ToolVersionGate",
    "CommandVerification",
]
