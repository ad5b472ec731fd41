import json
import os
import stat
import tempfile
import unittest
import unittest.mock
from pathlib import Path

from devbox_installer import main as main_mod
from devbox_installer.config import ProvisionConfig
from devbox_installer.context import ProvisionCtx
from devbox_installer.errors import MutationFailure, PreconditionUnmet
from devbox_installer.lib.command import CommandRunner
from devbox_installer.main import run
from devbox_installer.recipes import build_linuxbrew
from devbox_installer.steps import HomebrewCloneStep

from tests.fakes import FakeHost, make_ubuntu_root

PREFIX = "/home/linuxbrew/.linuxbrew"
HOMES = {
    "alice": [".bashrc", ".profile"],
    "bob": [".bashrc", ".zshrc"],
}


class LinuxbrewTestCase(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.root = make_ubuntu_root(Path(self._td.name) / "host", homes=HOMES)
        (self.root / "etc/zsh").mkdir()
        (self.root / "etc/zsh/zshrc").write_text("# /etc/zsh/zshrc\n")
        self.state_path = str(Path(self._td.name) / "state.json")
        self.cfg = ProvisionConfig({"root": str(self.root), "require_root": False})
        self.host = self.new_host()

    def tearDown(self):
        self._td.cleanup()

    def new_host(self, **kwargs):
        return FakeHost(self.root, users=("root", "alice", "bob", "ssm-user"), **kwargs)

    def carry_over(self, old, new):
        """Host-global tables survive between runs; the filesystem already does."""
        new.users = set(old.users)
        new.primary = dict(old.primary)
        new.groups = {g: set(m) for g, m in old.groups.items()}
        new.packages = set(old.packages)
        new.locales = set(old.locales)
        return new

    def provision(self, host=None, **kwargs):
        return run("linuxbrew", cfg=self.cfg, runner=host or self.host, state_path=self.state_path, **kwargs)

    def profile_files(self):
        return [
            self.root / "etc/profile.d/homebrew.sh",
            self.root / "etc/bash.bashrc",
            self.root / "etc/zsh/zshrc",
            self.root / "etc/skel/.bashrc",
            self.root / "home/alice/.bashrc",
            self.root / "home/alice/.profile",
            self.root / "home/bob/.bashrc",
            self.root / "home/bob/.zshrc",
        ]


class TestFreshHost(LinuxbrewTestCase):
    def test_full_run(self):
        result = self.provision()

        self.assertEqual(result.failed_steps, [])
        self.assertEqual(result.warnings, [])
        self.assertEqual(result.skipped_steps, [])

        m = self.host.mutations
        self.assertIn(["apt-get", "update"], m)
        self.assertIn(["apt-get", "install", "-y", "build-essential", "procps", "curl", "file", "git", "locales"], m)
        self.assertIn(["locale-gen", "en_US.UTF-8"], m)
        self.assertIn(["groupadd", "linuxbrew"], m)
        self.assertIn(
            ["useradd", "-r", "-g", "linuxbrew", "-d", "/home/linuxbrew", "-s", "/bin/bash", "linuxbrew"], m
        )
        self.assertIn(
            ["sudo", "-u", "linuxbrew", "git", "clone", "https://github.com/Homebrew/brew", f"{PREFIX}/Homebrew"], m
        )
        self.assertIn(["chown", "-R", "linuxbrew:linuxbrew", PREFIX], m)
        self.assertIn(["sudo", "-u", "linuxbrew", f"{PREFIX}/bin/brew", "update", "--force"], m)
        self.assertLess(m.index(["groupadd", "linuxbrew"]), m.index(["sudo", "-u", "linuxbrew", "git", "clone",
                                                                       "https://github.com/Homebrew/brew",
                                                                       f"{PREFIX}/Homebrew"]))

        self.assertEqual(self.host.groups["linuxbrew"], {"alice", "bob", "ssm-user", "root"})

    def test_marker_in_every_profile_file(self):
        self.provision()
        for p in self.profile_files():
            text = p.read_text()
            self.assertEqual(text.count("# >>> devbox-installer:homebrew >>>"), 1, p)
        self.assertIn("brew shellenv", (self.root / "home/bob/.zshrc").read_text())
        self.assertIn('export HOMEBREW_PREFIX="$BREW_PREFIX"', (self.root / "home/alice/.profile").read_text())
        self.assertEqual(stat.S_IMODE(os.stat(self.root / "etc/profile.d/homebrew.sh").st_mode), 0o644)

    def test_shared_prefix_permissions(self):
        self.provision()
        prefix = self.root / PREFIX.lstrip("/")
        home = self.root / "home/linuxbrew"
        self.assertEqual(stat.S_IMODE(os.stat(home).st_mode), 0o755)

        for dirpath, dirnames, filenames in os.walk(prefix):
            st = os.stat(dirpath)
            self.assertTrue(st.st_mode & stat.S_ISGID, dirpath)
            self.assertEqual(st.st_mode & 0o070, 0o070, dirpath)
            self.assertEqual(st.st_uid, os.getuid())
            for name in filenames:
                p = Path(dirpath) / name
                if p.is_symlink():
                    continue
                self.assertEqual(os.stat(p).st_mode & 0o060, 0o060, p)

        link = prefix / "bin/brew"
        self.assertTrue(link.is_symlink())
        self.assertEqual(os.readlink(link), f"{PREFIX}/Homebrew/bin/brew")

    def test_helper_script(self):
        self.provision()
        helper = self.root / "usr/local/bin/add-user-to-brew"
        text = helper.read_text()
        self.assertTrue(text.startswith("#!/bin/bash\n"))
        self.assertIn('usermod -aG linuxbrew "$USERNAME"', text)
        self.assertEqual(stat.S_IMODE(os.stat(helper).st_mode), 0o755)

    def test_missing_optional_targets_are_not_created(self):
        (self.root / "etc/zsh/zshrc").unlink()
        (self.root / "etc/skel/.bashrc").unlink()
        result = self.provision()
        self.assertIn("brew_zshrc", result.skipped_steps)
        self.assertIn("skel_bashrc", result.skipped_steps)
        self.assertFalse((self.root / "etc/zsh/zshrc").exists())
        self.assertFalse((self.root / "home/alice/.zshrc").exists())

    def test_invalid_checkout_is_replaced(self):
        stale = self.root / PREFIX.lstrip("/") / "Homebrew"
        stale.mkdir(parents=True)
        (stale / "junk").write_text("x")
        self.provision()
        self.assertIn(["rm", "-rf", f"{PREFIX}/Homebrew"], self.host.mutations)
        self.assertFalse((stale / "junk").exists())
        self.assertTrue((stale / ".git").is_dir())


class TestRerun(LinuxbrewTestCase):
    def test_second_run_is_a_no_op(self):
        self.provision()
        snapshot = {p: p.read_bytes() for p in self.profile_files()}

        second = self.carry_over(self.host, self.new_host())
        result = self.provision(second)

        self.assertEqual(result.ran_steps, [])
        self.assertEqual(result.skipped_steps, [s.step_id for s in build_linuxbrew(self.cfg).steps])
        self.assertEqual(second.mutations, [])
        for p, data in snapshot.items():
            self.assertEqual(p.read_bytes(), data, p)

    def test_check_mode_after_install_reports_nothing_pending(self):
        self.provision()
        second = self.carry_over(self.host, self.new_host())
        result = self.provision(second, check_only=True)
        self.assertEqual(result.pending_steps, [])
        self.assertEqual(second.mutations, [])

    def test_check_mode_on_fresh_host_lists_everything(self):
        result = self.provision(check_only=True)
        self.assertEqual(self.host.mutations, [])
        self.assertIn("apt_prerequisites", result.pending_steps)
        self.assertIn("brew_bashrc", result.pending_steps)
        self.assertFalse(Path(self.state_path).exists())

    def test_update_checkout_pulls_existing_clone(self):
        self.provision()
        self.cfg = self.cfg.with_overrides(linuxbrew={"update_checkout": True})
        second = self.carry_over(self.host, self.new_host())
        result = self.provision(second)
        self.assertEqual(result.ran_steps, ["homebrew_update_checkout"])
        self.assertEqual(second.mutations, [["sudo", "-u", "linuxbrew", "git", "-C", f"{PREFIX}/Homebrew", "pull"]])


class TestPropagation(LinuxbrewTestCase):
    def test_one_user_failing_does_not_stop_the_others(self):
        self.host.fail_when("usermod", "-aG", "linuxbrew", "alice")
        result = self.provision()

        self.assertEqual(self.host.groups["linuxbrew"], {"bob", "ssm-user", "root"})
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("alice", result.warnings[0])
        # later steps still ran
        self.assertIn("user_shell_rc", result.ran_steps)

    def test_rc_path_that_is_not_a_file_is_ignored(self):
        bad = self.root / "home/alice/.profile"
        bad.unlink()
        bad.mkdir()
        result = self.provision()
        self.assertEqual(result.warnings, [])
        self.assertIn("# >>> devbox-installer:homebrew >>>", (self.root / "home/bob/.bashrc").read_text())

    def test_rc_file_that_is_not_utf8(self):
        alice_rc = self.root / "home/alice/.bashrc"
        alice_rc.write_bytes(b"# caf\xe9 latin-1\n")

        result = self.provision()

        self.assertEqual(result.warnings, [])
        self.assertIn("user_shell_rc", result.ran_steps)
        data = alice_rc.read_bytes()
        self.assertTrue(data.startswith(b"# caf\xe9 latin-1\n\n# >>> devbox-installer:homebrew >>>\n"))
        for p in (self.root / "home/bob/.bashrc", self.root / "etc/skel/.bashrc"):
            self.assertIn("# >>> devbox-installer:homebrew >>>", p.read_text(), p)

        second = self.carry_over(self.host, self.new_host())
        self.assertEqual(self.provision(second).ran_steps, [])
        self.assertEqual(alice_rc.read_bytes(), data)

    def test_missing_extra_member_is_skipped(self):
        host = FakeHost(self.root, users=("root", "alice", "bob"))
        result = self.provision(host)
        self.assertEqual(host.groups["linuxbrew"], {"alice", "bob", "root"})
        self.assertEqual(result.warnings, [])
        self.assertNotIn(["usermod", "-aG", "linuxbrew", "ssm-user"], host.mutations)

    def test_new_user_picked_up_on_rerun(self):
        self.provision()
        second = self.carry_over(self.host, self.new_host())
        second.users.add("carol")
        (self.root / "home/carol").mkdir()
        (self.root / "home/carol/.bashrc").write_text("# carol\n")

        result = self.provision(second)
        self.assertEqual(sorted(result.ran_steps), ["brew_group_members", "user_shell_rc"])
        self.assertEqual(
            second.mutations,
            [["usermod", "-aG", "linuxbrew", "carol"]],
        )
        self.assertIn("devbox-installer:homebrew", (self.root / "home/carol/.bashrc").read_text())


class TestTargetRoot(LinuxbrewTestCase):
    def test_every_command_runs_inside_the_root(self):
        self.provision()
        self.assertTrue(self.host.commands)
        for argv in self.host.commands:
            self.assertEqual(argv[:2], ["chroot", str(self.root)], argv)

    def test_stale_checkout_is_removed_inside_the_root(self):
        stale = self.root / PREFIX.lstrip("/") / "Homebrew"
        stale.mkdir(parents=True)
        runner = CommandRunner(root=str(self.root))
        ctx = ProvisionCtx(cfg=self.cfg, runner=runner)
        proc = unittest.mock.Mock(returncode=0, stdout="", stderr="")

        with unittest.mock.patch("subprocess.run", return_value=proc) as sp:
            HomebrewCloneStep().apply(ctx)

        calls = [c.args[0] for c in sp.call_args_list]
        self.assertEqual(
            calls,
            [
                ["chroot", str(self.root), "rm", "-rf", f"{PREFIX}/Homebrew"],
                ["chroot", str(self.root), "sudo", "-u", "linuxbrew", "git", "clone",
                 "https://github.com/Homebrew/brew", f"{PREFIX}/Homebrew"],
            ],
        )

    def test_runner_for_another_root_is_rejected(self):
        other = FakeHost(Path(self._td.name) / "elsewhere")
        with self.assertRaises(ValueError):
            self.provision(other)
        self.assertEqual(other.commands, [])


class TestCriticalFailures(LinuxbrewTestCase):
    def test_wrong_os_mutates_nothing(self):
        (self.root / "etc/os-release").write_text("ID=debian\nPRETTY_NAME=\"Debian GNU/Linux 12\"\n")
        with self.assertRaises(PreconditionUnmet):
            self.provision()
        self.assertEqual(self.host.mutations, [])
        self.assertFalse((self.root / "home/linuxbrew").exists())
        self.assertNotIn("devbox-installer", (self.root / "etc/bash.bashrc").read_text())

    def test_apt_failure_is_fatal(self):
        self.host.fail_when("apt-get", "install")
        with self.assertRaises(MutationFailure) as cm:
            self.provision()
        self.assertEqual(cm.exception.step_id, "apt_prerequisites")
        self.assertNotIn(["groupadd", "linuxbrew"], self.host.mutations)

    def test_clone_failure_leaves_partial_state(self):
        self.host.fail_when("sudo", "-u", "linuxbrew", "git", "clone")
        with self.assertRaises(MutationFailure):
            self.provision()
        self.assertIn("linuxbrew", self.host.groups)
        self.assertFalse((self.root / "etc/profile.d/homebrew.sh").exists())
        state = json.loads(Path(self.state_path).read_text())
        self.assertEqual(state["errors"][-1]["step"], "homebrew_clone")

    def test_locale_failure_is_only_a_warning(self):
        self.host.fail_when("locale-gen")
        result = self.provision()
        self.assertEqual(result.failed_steps, ["locale"])
        self.assertIn("homebrew_clone", result.ran_steps)


class TestCli(LinuxbrewTestCase):
    def cli(self, *args, host=None):
        argv = ["--config", str(Path(self._td.name) / "devbox.yaml"),
                "--state", self.state_path,
                "--log", str(Path(self._td.name) / "devbox.log"),
                *args]
        host = host or self.host
        with unittest.mock.patch.object(main_mod, "configure_logging"), \
                unittest.mock.patch.object(main_mod, "CommandRunner", lambda dry_run=False, root="/": host):
            return main_mod.main(argv)

    def setUp(self):
        super().setUp()
        (Path(self._td.name) / "devbox.yaml").write_text(f"root: {self.root}\nrequire_root: false\n")

    def test_exit_codes(self):
        self.assertEqual(self.cli("linuxbrew", "--check"), 1)
        self.assertEqual(self.cli("linuxbrew"), 0)
        second = self.carry_over(self.host, self.new_host())
        self.assertEqual(self.cli("linuxbrew", "--check", host=second), 0)
        self.assertEqual(second.mutations, [])

    def test_precondition_exit_code(self):
        (self.root / "etc/os-release").write_text("ID=arch\n")
        self.assertEqual(self.cli("linuxbrew"), 1)
        self.assertEqual(self.host.mutations, [])

    def test_unknown_step_id_is_a_usage_error(self):
        with self.assertRaises(SystemExit) as cm:
            self.cli("linuxbrew", "--start-at", "nope")
        self.assertEqual(cm.exception.code, 2)
        self.assertEqual(self.host.commands, [])

    def test_non_utf8_rc_file_still_exits_zero(self):
        (self.root / "home/alice/.bashrc").write_bytes(b"# caf\xe9 latin-1\n")
        self.assertEqual(self.cli("linuxbrew"), 0)

    def test_check_with_update_checkout_after_install(self):
        (Path(self._td.name) / "devbox.yaml").write_text(
            f"root: {self.root}\nrequire_root: false\nlinuxbrew:\n  update_checkout: true\n"
        )
        self.assertEqual(self.cli("linuxbrew"), 0)
        second = self.carry_over(self.host, self.new_host())
        self.assertEqual(self.cli("linuxbrew", "--check", host=second), 0)
        self.assertEqual(second.mutations, [])

    def test_usage_error(self):
        with self.assertRaises(SystemExit) as cm:
            self.cli("homebrew")
        self.assertEqual(cm.exception.code, 2)


if __name__ == "__main__":
    unittest.main()
