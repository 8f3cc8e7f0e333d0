import logging
from pathlib import Path

from pydantic import BaseModel, Field

from esm_to_cjs.models import ModuleID
from esm_to_cjs.services.transforms.base import ITransformPass
from esm_to_cjs.services.transforms.patch_self_import import (
    PatchSelfImportPass,
    SelfImportDecision,
)
from esm_to_cjs.services.transforms.remove_create_require import RemoveCreateRequirePass

logger = logging.getLogger(__name__)


class TransformPipeline(BaseModel):
    """Ordered source rewrites applied to each module as it is loaded."""

    passes: list[ITransformPass] = Field(default_factory=list)

    @classmethod
    def default(
        cls,
        decision: SelfImportDecision,
        package_entry: Path,
        test_file_pattern: str,
        root: Path,
    ) -> "TransformPipeline":
        """Shim removal first, then the self import patch when the decision asks for it."""

        passes: list[ITransformPass] = [RemoveCreateRequirePass()]
        if decision.apply and decision.package_name is not None:
            passes.append(
                PatchSelfImportPass(
                    package_name=decision.package_name,
                    package_entry=package_entry,
                    test_file_pattern=test_file_pattern,
                    root=root,
                )
            )
        return cls(passes=passes)

    def apply(self, code: str, module_id: ModuleID) -> str:
        for transform_pass in self.passes:
            result = transform_pass.transform(code, module_id)
            if result is not None:
                logger.debug("%s rewrote %s", transform_pass.name, module_id)
                code = result
        return code
