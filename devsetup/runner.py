"""
Module orchestration.

Units run strictly one after another. A unit whose precondition is missing
fails on its own; failing to protect or write a document stops the whole run.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .backup import finalize_session
from .errors import BackupWriteFailed, DevSetupError, DocumentWriteFailed, ModuleSelectionError
from .models import ModuleResult, ModuleStatus
from .modules import ModuleContext, SetupModule
from .ui import log_error, log_info, log_warn

# Errors after which continuing could leave documents unprotected
FATAL_ERRORS = (BackupWriteFailed, DocumentWriteFailed)


@dataclass
class RunReport:
    results: List[ModuleResult] = field(default_factory=list)
    aborted: bool = False
    backup_dir: Optional[Path] = None

    @property
    def failed(self) -> List[ModuleResult]:
        return [r for r in self.results if r.status == ModuleStatus.FAILED]

    @property
    def success(self) -> bool:
        return not self.aborted and not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


def select_modules(
    available: Sequence[SetupModule],
    selected: Sequence[str] = (),
    skipped: Sequence[str] = (),
) -> List[SetupModule]:
    """
    Narrow the registry down to the requested units, keeping run order.
    Unknown names in selected are an error; unknown names in skipped only warn.
    """
    names = {m.name for m in available}
    unknown = [n for n in selected if n not in names]
    if unknown:
        raise ModuleSelectionError(
            f"Unknown module(s): {', '.join(unknown)}. Available: {', '.join(sorted(names))}"
        )
    for name in skipped:
        if name not in names:
            log_warn(f"Ignoring --skip {name}: no such module")

    wanted = set(selected) if selected else names
    return [m for m in available if m.name in wanted and m.name not in set(skipped)]

def run_modules(ctx: ModuleContext, modules: Sequence[SetupModule], fail_fast: bool = False) -> RunReport:
    report = RunReport()
    log_info(f"Running {len(modules)} module(s): {', '.join(m.name for m in modules)}")

    for module in modules:
        try:
            result = module.execute(ctx)
        except FATAL_ERRORS as e:
            log_error(f"{module.name}: {e}")
            report.results.append(ModuleResult(name=module.name, status=ModuleStatus.FAILED, message=str(e)))
            report.aborted = True
            break
        except DevSetupError as e:
            log_error(f"{module.name}: {e}")
            result = ModuleResult(name=module.name, status=ModuleStatus.FAILED, message=str(e))

        report.results.append(result)
        if result.status == ModuleStatus.FAILED and fail_fast:
            log_warn("Stopping after first failure (--fail-fast)")
            report.aborted = True
            break

    report.backup_dir = finalize_session(ctx.session)
    return report
