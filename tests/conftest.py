"""Shared fixtures: small-key CA config and a scriptable fake command runner."""
import logging
import shutil
from pathlib import Path

import pytest

from harbor_trust.ca import CertificateAuthority
from harbor_trust.config import Config
from harbor_trust.runner import CommandResult, CommandRunner


@pytest.fixture(autouse=True)
def reset_tool_loggers():
    yield
    for name in ("harbor-certs", "harbor-trust"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True


@pytest.fixture
def config(tmp_path):
    # 1024-bit keys keep generation fast; production default is 4096.
    return Config(cert_dir=tmp_path / "certs", key_size=1024, home=tmp_path / "home")


@pytest.fixture
def ca(config):
    return CertificateAuthority(config)


@pytest.fixture
def root_cert(ca):
    ca.ensure_root()
    return ca.store.ca_cert


class FakeRunner(CommandRunner):
    """
    Records every command. ``handler(args)`` returns a CommandResult or
    None (meaning success with empty output). ``sudo`` is stripped before
    the handler sees the command.
    """

    def __init__(self, tools=(), root=True, handler=None):
        self.tools = set(tools)
        self.root = root
        self.handler = handler or (lambda args: None)
        self.calls: list[list[str]] = []

    def which(self, name):
        return name if name in self.tools else None

    def is_root(self):
        return self.root

    def run(self, args):
        self.calls.append(list(args))
        inner = args[1:] if args and args[0] == "sudo" else args
        result = self.handler(list(inner))
        if result is None:
            return CommandResult(list(args), 0)
        return result


def fs_handler(extra=None):
    """Handle mkdir/cp/chmod/rm against the real (tmp) filesystem."""

    def handler(args):
        if extra is not None:
            res = extra(args)
            if res is not None:
                return res
        cmd = args[0]
        if cmd == "mkdir":
            Path(args[-1]).mkdir(parents=True, exist_ok=True)
        elif cmd == "cp":
            shutil.copyfile(args[1], args[2])
        elif cmd == "rm":
            Path(args[-1]).unlink(missing_ok=True)
        return None

    return handler

