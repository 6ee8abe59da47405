"""Toolchain dependency installer for a remote host.

Guarantees Go, Git, Ignite CLI and buf are on the host, in that order: the
Ignite installer needs Go on the PATH and buf is only used by Ignite builds.
A dependency that is still missing after its install attempt aborts the whole
phase (no retries here).
"""
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence
from executors.base import RemoteSession
from deployment_models import CommandResult
from utils.exceptions import DependencyInstallError

logger = logging.getLogger(__name__)

Reporter = Callable[[str], Awaitable[None]]
CommandRecorder = Callable[[str, CommandResult], Awaitable[None]]

NOT_INSTALLED = "NOT_INSTALLED"
GO_VERSION = "1.21.6"
BUF_VERSION = "1.28.1"
GO_BIN = "/usr/local/go/bin"
PATH_EXPORT = f"export PATH=$PATH:{GO_BIN}:$HOME/go/bin:/usr/local/bin"
# root 계정이면 sudo 없이 실행
SUDO = 'if [ "$(id -u)" -ne 0 ]; then SUDO=sudo; else SUDO=; fi'

GO_DOWNLOADS = {
    ("Linux", "x86_64"): f"https://go.dev/dl/go{GO_VERSION}.linux-amd64.tar.gz",
    ("Linux", "amd64"): f"https://go.dev/dl/go{GO_VERSION}.linux-amd64.tar.gz",
    ("Linux", "aarch64"): f"https://go.dev/dl/go{GO_VERSION}.linux-arm64.tar.gz",
    ("Linux", "arm64"): f"https://go.dev/dl/go{GO_VERSION}.linux-arm64.tar.gz",
}

BUF_DOWNLOADS = {
    ("Linux", "x86_64"): f"https://github.com/bufbuild/buf/releases/download/v{BUF_VERSION}/buf-Linux-x86_64",
    ("Linux", "aarch64"): f"https://github.com/bufbuild/buf/releases/download/v{BUF_VERSION}/buf-Linux-aarch64",
    ("Linux", "arm64"): f"https://github.com/bufbuild/buf/releases/download/v{BUF_VERSION}/buf-Linux-aarch64",
}

GIT_PACKAGE_COMMANDS = {
    "apt": "$SUDO apt-get update -y && $SUDO apt-get install -y git",
    "yum": "$SUDO yum install -y git",
    "apk": "$SUDO apk add git",
}
GIT_FALLBACK_COMMAND = "$SUDO apt-get install -y git || $SUDO yum install -y git || $SUDO apk add git"

DISTRO_PACKAGE_MANAGERS = (
    (("ubuntu", "debian"), "apt"),
    (("centos", "rhel", "fedora", "rocky", "almalinux", "amzn"), "yum"),
    (("alpine",), "apk"),
)


@dataclass(frozen=True)
class Platform:
    os: str
    arch: str
    os_release: str = ""

    @property
    def package_manager(self) -> Optional[str]:
        release = self.os_release.lower()
        for distros, manager in DISTRO_PACKAGE_MANAGERS:
            if any(distro in release for distro in distros):
                return manager
        return None


class Dependency:
    name: str = ""
    probe_command: str = ""
    # 설치 확인용 정규식 (probe 출력에서 검색)
    version_pattern: str = ""

    def is_present(self, result: CommandResult) -> bool:
        output = f"{result.stdout}\n{result.stderr}"
        if not result.ok or NOT_INSTALLED in result.stdout:
            return False
        return re.search(self.version_pattern, output) is not None

    def install_command(self, platform: Platform) -> str:
        raise NotImplementedError

    def __repr__(self):
        return f"<Dependency({self.name})>"


class GoDependency(Dependency):
    name = "Go"
    probe_command = f'{PATH_EXPORT} && go version || echo "{NOT_INSTALLED}"'
    version_pattern = r"go version go\d+"

    def install_command(self, platform: Platform) -> str:
        url = GO_DOWNLOADS.get((platform.os, platform.arch))
        if not url:
            raise DependencyInstallError(self.name, f"Unsupported OS/Architecture: {platform.os}/{platform.arch}")
        archive = url.rsplit("/", 1)[-1]
        return (
            f"{SUDO} && cd /tmp && "
            f"wget -q {url} -O {archive} && "
            f"$SUDO rm -rf /usr/local/go && "
            f"$SUDO tar -C /usr/local -xzf {archive} && "
            f"rm -f {archive} && "
            f"(grep -q '{GO_BIN}' ~/.profile 2>/dev/null || echo 'export PATH=$PATH:{GO_BIN}:$HOME/go/bin' >> ~/.profile) && "
            f"(grep -q '{GO_BIN}' ~/.bashrc 2>/dev/null || echo 'export PATH=$PATH:{GO_BIN}:$HOME/go/bin' >> ~/.bashrc)"
        )


class GitDependency(Dependency):
    name = "Git"
    probe_command = f'git --version || echo "{NOT_INSTALLED}"'
    version_pattern = r"git version \d+"

    def install_command(self, platform: Platform) -> str:
        manager = platform.package_manager
        command = GIT_PACKAGE_COMMANDS.get(manager, GIT_FALLBACK_COMMAND)
        return f"{SUDO} && {command}"


class IgniteDependency(Dependency):
    name = "Ignite CLI"
    probe_command = f'{PATH_EXPORT} && ignite version || echo "{NOT_INSTALLED}"'
    version_pattern = r"Ignite CLI"

    def install_command(self, platform: Platform) -> str:
        return (
            f"{SUDO} && {PATH_EXPORT} && cd /tmp && "
            f"curl -sSL https://get.ignite.com/cli! | bash && "
            f"($SUDO mv ignite /usr/local/bin/ || mv ignite /usr/local/bin/)"
        )


class BufDependency(Dependency):
    name = "buf"
    probe_command = f'{PATH_EXPORT} && buf --version || echo "{NOT_INSTALLED}"'
    version_pattern = r"\d+\.\d+\.\d+"

    def install_command(self, platform: Platform) -> str:
        url = BUF_DOWNLOADS.get((platform.os, platform.arch))
        if not url:
            raise DependencyInstallError(self.name, f"Unsupported OS/Architecture: {platform.os}/{platform.arch}")
        return (
            f"{SUDO} && "
            f'curl -sSL "{url}" -o /tmp/buf && '
            f"$SUDO mv /tmp/buf /usr/local/bin/buf && "
            f"$SUDO chmod +x /usr/local/bin/buf"
        )


DEFAULT_DEPENDENCIES: Sequence[Dependency] = (
    GoDependency(),
    GitDependency(),
    IgniteDependency(),
    BufDependency(),
)


async def _noop_reporter(message: str) -> None:
    pass


async def _noop_recorder(command: str, result: CommandResult) -> None:
    pass


class DependencyInstaller:
    def __init__(
        self,
        session: RemoteSession,
        reporter: Optional[Reporter] = None,
        recorder: Optional[CommandRecorder] = None,
        dependencies: Optional[Sequence[Dependency]] = None,
    ):
        self.session = session
        self.reporter = reporter or _noop_reporter
        self.recorder = recorder or _noop_recorder
        self.dependencies = list(dependencies if dependencies is not None else DEFAULT_DEPENDENCIES)
        self._platform: Optional[Platform] = None

    async def _run(self, command: str) -> CommandResult:
        result = await self.session.execute(command)
        await self.recorder(command, result)
        return result

    async def detect_platform(self) -> Platform:
        if self._platform is None:
            os_name = await self._run("uname -s")
            arch = await self._run("uname -m")
            release = await self._run('cat /etc/os-release || echo "unknown"')
            self._platform = Platform(
                os=os_name.stdout.strip(),
                arch=arch.stdout.strip(),
                os_release=release.stdout,
            )
            logger.info(f"Detected platform {self._platform.os}/{self._platform.arch}")
        return self._platform

    async def ensure(self, dependency: Dependency) -> bool:
        """Install ``dependency`` when missing; returns True if it was installed."""
        await self.reporter(f"Checking {dependency.name} installation...")
        if dependency.is_present(await self._run(dependency.probe_command)):
            await self.reporter(f"{dependency.name} already installed")
            return False

        await self.reporter(f"Installing {dependency.name}...")
        platform = await self.detect_platform()
        install = await self._run(dependency.install_command(platform))
        if not install.ok:
            raise DependencyInstallError(
                dependency.name,
                f"install command exited with {install.exit_code}: {install.stderr.strip()}",
            )

        verification = await self._run(dependency.probe_command)
        if not dependency.is_present(verification):
            raise DependencyInstallError(dependency.name, f"{dependency.name} installation verification failed")
        await self.reporter(f"{dependency.name} installed successfully")
        return True

    async def check_and_install(self) -> List[str]:
        """Ensure every dependency in order, fail-fast. Returns the installed names."""
        await self.reporter("Checking dependencies...")
        installed = []
        for dependency in self.dependencies:
            if await self.ensure(dependency):
                installed.append(dependency.name)
        await self.reporter("All dependencies ready!")
        return installed
