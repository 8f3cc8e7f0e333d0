from abc import ABC, abstractmethod

from pydantic import BaseModel

from esm_to_cjs.models import ModuleID


class ITransformPass(ABC, BaseModel):
    """A source rewrite applied to every module before it is parsed.

    Passes are idempotent: running one twice gives the same text as running
    it once. ``transform`` returns ``None`` when it leaves the code alone.
    """

    name: str

    @abstractmethod
    def transform(self, code: str, module_id: ModuleID) -> str | None:
        pass
