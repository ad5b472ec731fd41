from __future__ import annotations

from .config import ProvisionConfig
from .lib.fragments import ShellFragment

# Marker lines written by earlier shell-script installs. Hosts carrying them
# are treated as already configured.
LEGACY_COREPACK_MARKER = "# Corepack configuration for Yarn"
LEGACY_BREW_MARKER = "# Homebrew/Linuxbrew configuration"


def corepack_fragment(cfg: ProvisionConfig) -> ShellFragment:
    return ShellFragment(
        key="corepack",
        body=f'# Corepack configuration for Yarn\nexport COREPACK_HOME="{cfg.corepack_home}"\n',
        legacy_markers=(LEGACY_COREPACK_MARKER,),
    )


def _brew_exports(prefix: str) -> str:
    return (
        f'BREW_PREFIX="{prefix}"\n'
        'if [ -d "$BREW_PREFIX" ]; then\n'
        '    export HOMEBREW_PREFIX="$BREW_PREFIX"\n'
        '    export HOMEBREW_CELLAR="$BREW_PREFIX/Cellar"\n'
        '    export HOMEBREW_REPOSITORY="$BREW_PREFIX/Homebrew"\n'
        '    export PATH="$BREW_PREFIX/bin:$BREW_PREFIX/sbin${PATH:+:$PATH}"\n'
        '    export MANPATH="$BREW_PREFIX/share/man${MANPATH:+:$MANPATH}:"\n'
        '    export INFOPATH="$BREW_PREFIX/share/info:${INFOPATH:-}"\n'
        "fi\n"
    )


def brew_env_fragment(cfg: ProvisionConfig) -> ShellFragment:
    """Static exports, for profile.d, system rc files and ~/.profile."""
    return ShellFragment(
        key="homebrew",
        body="# Homebrew/Linuxbrew configuration\n" + _brew_exports(cfg.brew_prefix),
        legacy_markers=(LEGACY_BREW_MARKER,),
    )


def brew_shellenv_fragment(cfg: ProvisionConfig) -> ShellFragment:
    """Per-user interactive rc files defer to `brew shellenv`."""
    return ShellFragment(
        key="homebrew",
        body=(
            "# Homebrew/Linuxbrew configuration\n"
            f'BREW_PREFIX="{cfg.brew_prefix}"\n'
            'if [ -d "$BREW_PREFIX" ]; then\n'
            '    eval "$($BREW_PREFIX/bin/brew shellenv)"\n'
            "fi\n"
        ),
        legacy_markers=(LEGACY_BREW_MARKER,),
    )


def add_user_helper_fragment(cfg: ProvisionConfig) -> ShellFragment:
    group = cfg.brew_group
    return ShellFragment(
        key="add-user-to-brew",
        body=(
            f"# Helper script to add a user to the {group} group\n"
            "# Usage: sudo add-user-to-brew <username>\n"
            "\n"
            'if [ $# -ne 1 ]; then\n'
            '    echo "Usage: $0 <username>"\n'
            "    exit 1\n"
            "fi\n"
            "\n"
            'USERNAME="$1"\n'
            "\n"
            'if ! id "$USERNAME" > /dev/null 2>&1; then\n'
            '    echo "Error: User $USERNAME does not exist"\n'
            "    exit 1\n"
            "fi\n"
            "\n"
            f'usermod -aG {group} "$USERNAME"\n'
            f'echo "Added $USERNAME to {group} group"\n'
            'echo "User needs to log out and back in for group changes to take effect"\n'
        ),
    )


def yarn_notes(cfg: ProvisionConfig) -> list[str]:
    return [
        "All users can now use the 'yarn' command.",
        "Users already logged in need to either log out and back in,",
        "or run: source /etc/profile.d/corepack.sh",
    ]


def linuxbrew_notes(cfg: ProvisionConfig) -> list[str]:
    return [
        "Users need to LOG OUT and LOG BACK IN for group membership to take effect",
        "DCV users must reconnect their DCV session",
        "After re-login, verify with: brew --version",
        f"To add future users to brew access, run: sudo {cfg.helper_script.rsplit('/', 1)[-1]} <username>",
        "If you encounter permission issues, re-run: devbox-installer linuxbrew",
    ]
