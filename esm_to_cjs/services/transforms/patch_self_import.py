import logging
import re
from collections.abc import Callable
from typing import TypeAlias
from pathlib import Path

from pydantic import BaseModel, Field

from esm_to_cjs.models import ModuleID, PatchImportSelf
from esm_to_cjs.services.transforms.base import ITransformPass
from esm_to_cjs.utils.paths import relative_specifier

logger = logging.getLogger(__name__)

SelfResolutionProbe: TypeAlias = Callable[[str], bool]


class SelfImportDecision(BaseModel):
    """Whether test sources get their by-name self imports rewritten.

    Computed once when a conversion run starts and passed to the pass.
    """

    package_name: str | None = None
    apply: bool = False


def decide_self_import_patch(
    mode: PatchImportSelf,
    package_name: str | None,
    probe: SelfResolutionProbe,
) -> SelfImportDecision:
    """Decide whether to patch by-name self imports in test sources.

    Args:
        mode: ``on``/``off`` force the decision, ``auto`` asks the probe.
        package_name: Declared name of the package being converted.
        probe: Returns True when the current environment already resolves
            ``package_name`` by name. Raising counts as "does not resolve".

    Returns:
        The decision for this run.
    """

    if package_name is None or mode is PatchImportSelf.OFF:
        return SelfImportDecision(package_name=package_name, apply=False)

    if mode is PatchImportSelf.AUTO:
        try:
            if probe(package_name):
                logger.debug('Package "%s" resolves by name, tests are left unchanged', package_name)
                return SelfImportDecision(package_name=package_name, apply=False)
        except Exception as e:  # noqa: BLE001
            logger.debug('Resolving "%s" by name failed: %s', package_name, e)

    logger.warning('Fixing CommonJS tests by replacing "%s" for a relative paths', package_name)
    return SelfImportDecision(package_name=package_name, apply=True)


class PatchSelfImportPass(ITransformPass):
    """Point ``from '<package>'`` in test sources at the package entry on disk."""

    name: str = "cjs-tests-fix"
    package_name: str
    package_entry: Path
    test_file_pattern: str
    root: Path = Field(default_factory=Path.cwd)

    def is_test_file(self, module_id: ModuleID) -> bool:
        """Match the test pattern against the root-relative path, with a leading slash."""

        path, root = module_id.path, self.root.resolve()
        relative = path.relative_to(root).as_posix() if path.is_relative_to(root) else path.as_posix()
        return re.search(self.test_file_pattern, f"/{relative.lstrip('/')}") is not None

    def transform(self, code: str, module_id: ModuleID) -> str | None:
        if not self.is_test_file(module_id):
            return None

        by_name = re.compile(rf"""\bfrom(\s*)(['"]){re.escape(self.package_name)}\2""")
        specifier = relative_specifier(module_id.path.parent, self.package_entry)
        patched, count = by_name.subn(lambda m: f"from{m.group(1)}'{specifier}'", code)
        return patched if count else None
