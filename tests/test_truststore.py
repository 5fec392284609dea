"""Trust-store adapters and the synchronizer, driven through a fake runner."""
from pathlib import Path

import pytest

from conftest import FakeRunner, fs_handler
from harbor_trust.certinfo import fingerprint_file
from harbor_trust.errors import (
    CertFileMissing,
    PlatformUnsupported,
    PrivilegeRequired,
    ToolInvocationFailed,
    ToolMissing,
)
from harbor_trust.runner import CommandResult
from harbor_trust.sync import TrustSynchronizer
from harbor_trust.truststore import (
    LinuxAnchorAdapter,
    MacOSKeychainAdapter,
    WindowsCertStoreAdapter,
    select_adapter,
)
from harbor_trust.truststore.linux import AnchorTool


# --- fake OS stores ----------------------------------------------------------


class FakeKeychains:
    def __init__(self, fingerprint):
        self.fingerprint = fingerprint
        self.contents: dict[str, set] = {}
        self.fail_delete: set = set()

    def __call__(self, args):
        sub = args[1]
        if sub == "find-certificate":
            lines = [f"SHA-1 hash: {fp}" for fp in sorted(self.contents.get(args[-1], ()))]
            return CommandResult(args, 0, "\n".join(lines) + "\n")
        if sub == "add-trusted-cert":
            keychain = args[args.index("-k") + 1]
            self.contents.setdefault(keychain, set()).add(fingerprint_file(Path(args[-1])))
            return None
        if sub == "delete-certificate":
            keychain = args[-1]
            if keychain in self.fail_delete:
                return CommandResult(args, 1, "", "SecKeychainItemDelete: not permitted")
            self.contents.get(keychain, set()).discard(args[args.index("-Z") + 1])
            return None
        raise AssertionError(args)


class FakeCertStore:
    def __init__(self, fingerprint):
        self.fingerprint = fingerprint
        self.thumbprints: set = set()

    def __call__(self, args):
        script = args[-1]
        if "Import-Certificate" in script:
            self.thumbprints.add(self.fingerprint)
            return None
        present = any(tp in script for tp in self.thumbprints)
        if "Remove-Item" in script:
            for tp in list(self.thumbprints):
                if tp in script:
                    self.thumbprints.discard(tp)
            return CommandResult(args, 0, "removed\n" if present else "absent\n")
        return CommandResult(args, 0, "installed\n" if present else "absent\n")


def _macos(config, root_cert):
    keychains = FakeKeychains(fingerprint_file(root_cert))
    runner = FakeRunner(tools={"security"}, handler=keychains)
    adapter = MacOSKeychainAdapter(config, runner, "darwin")
    config.home.mkdir(parents=True, exist_ok=True)
    login = config.home / "login.keychain-db"
    system = config.home / "System.keychain"
    login.touch()
    system.touch()
    adapter.keychains = {"login": login, "system": system}
    return adapter, keychains, runner


def _linux(config, tmp_path, tools=("update-ca-certificates",), root=True, extra=None):
    runner = FakeRunner(tools=set(tools), root=root, handler=fs_handler(extra))
    adapter = LinuxAnchorAdapter(config, runner, "linux")
    adapter.tools = (
        AnchorTool("update-ca-certificates", tmp_path / "debian", ("update-ca-certificates",)),
        AnchorTool("update-ca-trust", tmp_path / "rhel", ("update-ca-trust", "extract")),
    )
    return adapter, runner


def _windows(config, root_cert, tools=("powershell.exe",)):
    store = FakeCertStore(fingerprint_file(root_cert))
    runner = FakeRunner(tools=set(tools), handler=store)
    return WindowsCertStoreAdapter(config, runner, "win32"), store, runner


@pytest.fixture(params=["macos", "linux", "windows"])
def any_adapter(request, config, root_cert, tmp_path):
    if request.param == "macos":
        return _macos(config, root_cert)[0]
    if request.param == "linux":
        return _linux(config, tmp_path)[0]
    return _windows(config, root_cert)[0]


# --- round trips ---------------------------------------------------------------


def test_install_then_remove_round_trip(any_adapter, root_cert):
    sync = TrustSynchronizer(any_adapter, root_cert)
    assert sync.status().installed is False

    report = sync.install()
    assert report.installed is True
    assert sync.status().installed is True

    again = sync.install()
    assert again.actions == [f"already installed in {any_adapter.primary_location()}"]

    removed = sync.remove()
    assert removed.installed is False
    assert any(a.startswith("removed from") for a in removed.actions)
    assert sync.status().installed is False
    assert sync.remove().actions == ["not found"]


def test_missing_cert_file(any_adapter, tmp_path):
    sync = TrustSynchronizer(any_adapter, tmp_path / "nope.crt")
    with pytest.raises(CertFileMissing):
        sync.status()


# --- macOS ---------------------------------------------------------------------


def test_macos_installed_in_either_keychain(config, root_cert):
    adapter, keychains, _ = _macos(config, root_cert)
    keychains.contents[str(adapter.keychains["system"])] = {keychains.fingerprint}

    report = TrustSynchronizer(adapter, root_cert).status()
    assert [(r.store, r.present) for r in report.records] == [("login", False), ("system", True)]
    assert report.installed is True


def test_macos_install_targets_login_only(config, root_cert):
    adapter, keychains, runner = _macos(config, root_cert)
    keychains.contents[str(adapter.keychains["system"])] = {keychains.fingerprint}

    report = TrustSynchronizer(adapter, root_cert).install()
    assert report.actions == ["installed to login"]
    adds = [c for c in runner.calls if c[1] == "add-trusted-cert"]
    assert len(adds) == 1 and str(adapter.keychains["login"]) in adds[0]


def test_macos_missing_keychain_file_counts_as_absent(config, root_cert):
    adapter, _, _ = _macos(config, root_cert)
    adapter.keychains["system"] = config.home / "gone.keychain"
    assert [r.present for r in adapter.query_installed(fingerprint_file(root_cert))] == [False, False]


def test_macos_remove_continues_after_failure(config, root_cert):
    adapter, keychains, runner = _macos(config, root_cert)
    login, system = str(adapter.keychains["login"]), str(adapter.keychains["system"])
    keychains.contents = {login: {keychains.fingerprint}, system: {keychains.fingerprint}}
    keychains.fail_delete = {login}

    with pytest.raises(ToolInvocationFailed) as exc:
        TrustSynchronizer(adapter, root_cert).remove()
    assert "login" in str(exc.value)
    assert keychains.contents[system] == set()
    assert keychains.contents[login] == {keychains.fingerprint}


def test_macos_without_security_tool(config, root_cert):
    adapter, _, runner = _macos(config, root_cert)
    runner.tools.clear()
    with pytest.raises(ToolMissing):
        TrustSynchronizer(adapter, root_cert).status()


# --- Linux ---------------------------------------------------------------------


def test_linux_install_copies_and_refreshes(config, root_cert, tmp_path):
    adapter, runner = _linux(config, tmp_path)
    TrustSynchronizer(adapter, root_cert).install()

    target = tmp_path / "debian" / "harbor-local-ca.crt"
    assert target.read_bytes() == root_cert.read_bytes()
    assert ["chmod", "0644", str(target)] in runner.calls
    assert runner.calls[-1] == ["update-ca-certificates"]


def test_linux_prefers_debian_tool_when_both_present(config, root_cert, tmp_path):
    adapter, _ = _linux(config, tmp_path, tools=("update-ca-trust", "update-ca-certificates"))
    assert adapter.primary_location() == str(tmp_path / "debian" / "harbor-local-ca.crt")


def test_linux_rhel_tool(config, root_cert, tmp_path):
    adapter, runner = _linux(config, tmp_path, tools=("update-ca-trust",))
    TrustSynchronizer(adapter, root_cert).install()
    assert (tmp_path / "rhel" / "harbor-local-ca.crt").is_file()
    assert runner.calls[-1] == ["update-ca-trust", "extract"]


def test_linux_escalates_with_sudo(config, root_cert, tmp_path):
    adapter, runner = _linux(config, tmp_path, tools=("update-ca-certificates", "sudo"), root=False)
    TrustSynchronizer(adapter, root_cert).install()
    assert all(c[0] == "sudo" for c in runner.calls)


def test_linux_without_root_or_sudo(config, root_cert, tmp_path):
    adapter, _ = _linux(config, tmp_path, root=False)
    with pytest.raises(PrivilegeRequired):
        TrustSynchronizer(adapter, root_cert).install()


def test_linux_without_trust_tool(config, root_cert, tmp_path):
    adapter, _ = _linux(config, tmp_path, tools=())
    with pytest.raises(PlatformUnsupported):
        TrustSynchronizer(adapter, root_cert).install()


def test_linux_ignores_foreign_file_under_our_name(config, root_cert, tmp_path):
    adapter, _ = _linux(config, tmp_path)
    target = tmp_path / "debian" / "harbor-local-ca.crt"
    target.parent.mkdir(parents=True)
    target.write_text("not a certificate\n")
    assert TrustSynchronizer(adapter, root_cert).status().installed is False


def test_linux_remove_from_every_anchor_dir(config, root_cert, tmp_path):
    adapter, runner = _linux(config, tmp_path, tools=("update-ca-certificates", "update-ca-trust"))
    for sub in ("debian", "rhel"):
        (tmp_path / sub).mkdir()
        (tmp_path / sub / "harbor-local-ca.crt").write_bytes(root_cert.read_bytes())

    report = TrustSynchronizer(adapter, root_cert).remove()
    assert len([a for a in report.actions if a.startswith("removed from")]) == 2
    assert runner.calls.count(["update-ca-certificates"]) == 1


def test_linux_remove_reports_the_anchor_it_could_not_delete(config, root_cert, tmp_path):
    stuck = tmp_path / "debian" / "harbor-local-ca.crt"

    def refuse_rm(args):
        if args[0] == "rm" and args[-1] == str(stuck):
            return CommandResult(args, 1, "", "Operation not permitted")
        return None

    adapter, runner = _linux(
        config, tmp_path, tools=("update-ca-certificates", "update-ca-trust"), extra=refuse_rm
    )
    for sub in ("debian", "rhel"):
        (tmp_path / sub).mkdir()
        (tmp_path / sub / "harbor-local-ca.crt").write_bytes(root_cert.read_bytes())

    with pytest.raises(ToolInvocationFailed) as exc:
        TrustSynchronizer(adapter, root_cert).remove()
    assert str(stuck) in str(exc.value)
    assert stuck.is_file()
    assert not (tmp_path / "rhel" / "harbor-local-ca.crt").exists()
    assert runner.calls.count(["update-ca-certificates"]) == 1


# --- Windows -------------------------------------------------------------------


def test_windows_uses_configured_store(tmp_path, root_cert, config):
    from dataclasses import replace

    cfg = replace(config, windows_store="LocalMachine\\Root")
    adapter, _, runner = _windows(cfg, root_cert)
    TrustSynchronizer(adapter, root_cert).install()
    assert adapter.locations() == ["Cert:\\LocalMachine\\Root"]
    assert any("'Cert:\\LocalMachine\\Root'" in c[-1] for c in runner.calls)


def test_windows_prefers_pwsh(config, root_cert):
    adapter, _, runner = _windows(config, root_cert, tools=("powershell.exe", "pwsh"))
    adapter.query_installed(fingerprint_file(root_cert))
    assert runner.calls[0][0] == "pwsh"


def test_windows_without_powershell(config, root_cert):
    adapter, _, _ = _windows(config, root_cert, tools=())
    with pytest.raises(ToolMissing):
        adapter.query_installed(fingerprint_file(root_cert))


def test_windows_unexpected_output(config, root_cert):
    runner = FakeRunner(tools={"pwsh"}, handler=lambda args: CommandResult(args, 0, "Access denied\n"))
    adapter = WindowsCertStoreAdapter(config, runner, "win32")
    with pytest.raises(ToolInvocationFailed):
        adapter.query_installed(fingerprint_file(root_cert))


def test_windows_nonzero_exit(config, root_cert):
    runner = FakeRunner(tools={"pwsh"}, handler=lambda args: CommandResult(args, 1, "", "boom"))
    adapter = WindowsCertStoreAdapter(config, runner, "win32")
    with pytest.raises(ToolInvocationFailed) as exc:
        adapter.install(root_cert)
    assert exc.value.returncode == 1


def test_windows_remove_failure_propagates(config, root_cert):
    store = FakeCertStore(fingerprint_file(root_cert))
    store.thumbprints.add(store.fingerprint)

    def handler(args):
        if "Remove-Item" in args[-1]:
            return CommandResult(args, 1, "", "Access is denied")
        return store(args)

    adapter = WindowsCertStoreAdapter(config, FakeRunner(tools={"pwsh"}, handler=handler), "win32")
    with pytest.raises(ToolInvocationFailed) as exc:
        TrustSynchronizer(adapter, root_cert).remove()
    assert exc.value.returncode == 1
    assert store.thumbprints == {store.fingerprint}


# --- registry ------------------------------------------------------------------


@pytest.mark.parametrize(
    "platform, tools, expected",
    [
        ("darwin", set(), MacOSKeychainAdapter),
        ("linux", set(), LinuxAnchorAdapter),
        ("win32", set(), WindowsCertStoreAdapter),
        ("cygwin", set(), WindowsCertStoreAdapter),
        ("freebsd13", {"powershell.exe"}, WindowsCertStoreAdapter),
    ],
)
def test_select_adapter(config, platform, tools, expected):
    adapter = select_adapter(config, FakeRunner(tools=tools), platform)
    assert type(adapter) is expected


def test_select_adapter_unsupported(config):
    with pytest.raises(PlatformUnsupported):
        select_adapter(config, FakeRunner(), "freebsd13")
