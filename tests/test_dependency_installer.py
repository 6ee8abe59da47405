import pytest
from dependency_installer import (
    BufDependency,
    DependencyInstaller,
    GitDependency,
    GoDependency,
    Platform,
)
from utils.exceptions import DependencyInstallError
from fakes import PROVISIONED_HOST, FakeSession, fail, ok


def missing_until_installed(present_output):
    """Probe answers NOT_INSTALLED until the paired install rule has run."""
    state = {"installed": False}

    def probe(command):
        return ok(present_output) if state["installed"] else ok("NOT_INSTALLED\n")

    def install(command):
        state["installed"] = True
        return ok()

    return probe, install


@pytest.mark.asyncio
async def test_everything_present():
    session = FakeSession(PROVISIONED_HOST)
    messages = []

    async def reporter(message):
        messages.append(message)

    installer = DependencyInstaller(session, reporter=reporter)
    assert await installer.check_and_install() == []
    assert messages[0] == "Checking dependencies..."
    assert messages[-1] == "All dependencies ready!"
    assert "Go already installed" in messages
    assert not session.ran("uname")
    # Go, Git, Ignite, buf 순서
    assert len(session.commands) == 4
    assert "go version" in session.commands[0]
    assert "buf --version" in session.commands[3]


@pytest.mark.asyncio
async def test_installs_missing_go_for_architecture():
    probe, install = missing_until_installed("go version go1.21.6 linux/arm64")
    session = FakeSession([
        ("go version", probe),
        ("go.dev/dl", install),
        ("uname -m", ok("aarch64\n")),
    ] + PROVISIONED_HOST)
    recorded = []

    async def recorder(command, result):
        recorded.append(command)

    installer = DependencyInstaller(session, recorder=recorder)
    assert await installer.check_and_install() == ["Go"]
    install_command = session.ran("go.dev/dl")[0]
    assert "go1.21.6.linux-arm64.tar.gz" in install_command
    assert recorded == session.commands


@pytest.mark.asyncio
async def test_platform_detected_once():
    go_probe, go_install = missing_until_installed("go version go1.21.6 linux/amd64")
    buf_probe, buf_install = missing_until_installed("1.28.1")
    session = FakeSession([
        ("go version", go_probe),
        ("go.dev/dl", go_install),
        ("buf --version", buf_probe),
        ("bufbuild/buf", buf_install),
    ] + PROVISIONED_HOST)

    installer = DependencyInstaller(session)
    assert await installer.check_and_install() == ["Go", "buf"]
    assert len(session.ran("uname -s")) == 1
    assert "buf-Linux-x86_64" in session.ran("bufbuild/buf")[0]


@pytest.mark.asyncio
async def test_git_uses_distro_package_manager():
    probe, install = missing_until_installed("git version 2.43.0")
    session = FakeSession([
        ("git --version", probe),
        ("apk add git", install),
        ("/etc/os-release", ok('NAME="Alpine Linux"\nID=alpine\n')),
    ] + PROVISIONED_HOST)

    installer = DependencyInstaller(session)
    assert await installer.check_and_install() == ["Git"]
    assert not session.ran("apt-get")


@pytest.mark.asyncio
async def test_unsupported_architecture():
    session = FakeSession([
        ("go version", ok("NOT_INSTALLED\n")),
        ("uname -m", ok("riscv64\n")),
    ] + PROVISIONED_HOST)

    with pytest.raises(DependencyInstallError) as exc_info:
        await DependencyInstaller(session).check_and_install()
    assert exc_info.value.dependency == "Go"
    assert "Unsupported OS/Architecture: Linux/riscv64" in str(exc_info.value)


@pytest.mark.asyncio
async def test_failed_install_stops_remaining_dependencies():
    session = FakeSession([
        ("git --version", ok("NOT_INSTALLED\n")),
        ("install -y git", fail("E: Unable to locate package git", exit_code=100)),
    ] + PROVISIONED_HOST)

    with pytest.raises(DependencyInstallError) as exc_info:
        await DependencyInstaller(session).check_and_install()
    assert str(exc_info.value) == (
        "Dependency installation failed: Git: install command exited with 100: E: Unable to locate package git"
    )
    assert not session.ran("ignite version")


@pytest.mark.asyncio
async def test_failed_verification_after_install():
    session = FakeSession([("ignite version", ok("NOT_INSTALLED\n"))] + PROVISIONED_HOST)

    with pytest.raises(DependencyInstallError) as exc_info:
        await DependencyInstaller(session).check_and_install()
    assert "Ignite CLI installation verification failed" in str(exc_info.value)
    assert len(session.ran("ignite version")) == 2


def test_probe_predicates():
    assert GoDependency().is_present(ok("go version go1.22.0 linux/amd64"))
    assert not GoDependency().is_present(ok("NOT_INSTALLED"))
    assert not GitDependency().is_present(fail("git: command not found", exit_code=127))
    assert BufDependency().is_present(ok("1.28.1\n"))


def test_package_manager_from_os_release():
    assert Platform("Linux", "x86_64", "ID=ubuntu").package_manager == "apt"
    assert Platform("Linux", "x86_64", 'ID="rocky"').package_manager == "yum"
    assert Platform("Linux", "x86_64", "ID=alpine").package_manager == "apk"
    assert Platform("Linux", "x86_64", "ID=arch").package_manager is None
    assert "apt-get install -y git || " in GitDependency().install_command(Platform("Linux", "x86_64", "ID=arch"))
