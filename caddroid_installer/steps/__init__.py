from __future__ import annotations

from typing import Dict, List, Type

from ..registry import StepDefinition, WorkFn, eta
from .context import InstallContext, InstallStep
from .step_10_storage import StorageSetupStep
from .step_20_repositories import AptConfigStep, BootstrapStep, MirrorSelectionStep, X11RepoStep
from .step_30_system_update import NetworkToolsStep, SystemUpdateStep
from .step_40_packages import CoreInstallStep, PackagePrefetchStep
from .step_50_android import AdbSetupStep, ApkInstallStep, UserConfigStep
from .step_60_desktop import ContainerSetupStep, XfceDesktopStep
from .step_90_finalize import FinalConfigStep

# Registration (and therefore execution) order.
DEFAULT_STEPS: List[Type[InstallStep]] = [
    StorageSetupStep,
    MirrorSelectionStep,
    BootstrapStep,
    X11RepoStep,
    AptConfigStep,
    SystemUpdateStep,
    NetworkToolsStep,
    CoreInstallStep,
    ApkInstallStep,
    UserConfigStep,
    PackagePrefetchStep,
    AdbSetupStep,
    XfceDesktopStep,
    ContainerSetupStep,
    FinalConfigStep,
]


def default_definitions(*, fast_mode: bool = False) -> List[StepDefinition]:
    return [
        StepDefinition(name=cls.name, work_id=cls.work_id, estimated_seconds=eta(*cls.eta, fast_mode=fast_mode))
        for cls in DEFAULT_STEPS
    ]


def build_catalog(ctx: InstallContext) -> Dict[str, WorkFn]:
    """work_id -> bound ``run`` of a step instance sharing ``ctx``."""
    return {cls.work_id: cls(ctx).run for cls in DEFAULT_STEPS}


__all__ = [
    "DEFAULT_STEPS",
    "InstallContext",
    "InstallStep",
    "build_catalog",
    "default_definitions",
    "AdbSetupStep",
    "ApkInstallStep",
    "AptConfigStep",
    "BootstrapStep",
    "ContainerSetupStep",
    "CoreInstallStep",
    "FinalConfigStep",
    "MirrorSelectionStep",
    "NetworkToolsStep",
    "PackagePrefetchStep",
    "StorageSetupStep",
    "SystemUpdateStep",
    "UserConfigStep",
    "X11RepoStep",
    "XfceDesktopStep",
]
