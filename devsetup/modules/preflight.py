"""System checks and prerequisites."""
from typing import List

from ..errors import PreconditionMissing
from ..models import Capability, ModuleResult, ModuleStatus
from ..ui import log_dry_run, log_info, log_substep, log_success, log_warn
from ..utils import get_architecture, is_macos, version_gte
from . import ModuleContext, SetupModule

MIN_MACOS_MAJOR = 12
SUPPORTED_ARCHITECTURES = {"arm64": "Apple Silicon (arm64)", "aarch64": "ARM (aarch64)", "x86_64": "Intel (x86_64)"}


class PreflightModule(SetupModule):
    name = "00-preflight"
    description = "System checks and prerequisites"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect("xcode-cli"), ctx.detector.detect("git")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        warnings: List[str] = []
        if is_macos():
            self._check_macos_version(ctx)
        else:
            warnings.append("Not running on macOS; macOS-specific steps are skipped")
            log_warn(warnings[-1])

        self._check_architecture(ctx, warnings)

        if is_macos():
            self._check_xcode_cli(ctx)

        log_success("Preflight checks passed")
        return self.result(ModuleStatus.OK, "Preflight checks passed", warnings=warnings)

    def _check_macos_version(self, ctx: ModuleContext) -> None:
        log_substep("Checking macOS version")
        version = ctx.detector.macos_version()
        if not version:
            raise PreconditionMissing("Could not determine the macOS version")
        if not version_gte(version, str(MIN_MACOS_MAJOR)):
            raise PreconditionMissing(f"macOS {MIN_MACOS_MAJOR} (Monterey) or later is required. Found: {version}")
        log_success(f"macOS {version}")

    def _check_architecture(self, ctx: ModuleContext, warnings: List[str]) -> None:
        log_substep("Checking CPU architecture")
        arch = get_architecture()
        if arch not in SUPPORTED_ARCHITECTURES:
            raise PreconditionMissing(f"Unsupported architecture: {arch}")
        log_success(SUPPORTED_ARCHITECTURES[arch])
        if arch == "x86_64" and ctx.detector.rosetta():
            warnings.append("Running under Rosetta translation")
            log_warn(warnings[-1])

    def _check_xcode_cli(self, ctx: ModuleContext) -> None:
        log_substep("Checking Xcode Command Line Tools")
        if ctx.detector.detect("xcode-cli").installed:
            log_success("Xcode CLI tools installed")
            return

        log_info("Xcode CLI tools not found, installing...")
        if ctx.simulate:
            log_dry_run("install Xcode CLI tools")
            return

        # Only triggers the system dialog; the install itself is asynchronous.
        ctx.runner(["xcode-select", "--install"], capture=True, timeout=ctx.settings.command_timeout)
        log_info("A dialog should appear asking to install Xcode Command Line Tools.")
        ctx.decisions.ask_yes_no("Has the Xcode Command Line Tools installation finished?", default=True)

        if not ctx.detector.detect("xcode-cli").installed:
            raise PreconditionMissing("Xcode CLI tools installation failed or was cancelled")
        log_success("Xcode CLI tools installed")
