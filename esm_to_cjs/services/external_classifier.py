from enum import StrEnum

from pydantic import BaseModel, Field, PrivateAttr

from esm_to_cjs.models import ExternalPattern


class DependencyClass(StrEnum):
    EXTERNAL = "external"
    INTERNAL = "internal"


class ExternalClassifier(BaseModel):
    """Decide whether an import specifier stays a runtime ``require``.

    Decisions are memoized per specifier, so one classifier instance gives
    the same answer for the whole conversion run.
    """

    patterns: list[ExternalPattern] = Field(default_factory=list)
    __decisions: dict[str, DependencyClass] = PrivateAttr(default_factory=dict)

    def classify(self, specifier: str) -> DependencyClass:
        decision = self.__decisions.get(specifier)
        if decision is None:
            decision = next(
                (DependencyClass.EXTERNAL for p in self.patterns if p.matches(specifier)),
                DependencyClass.INTERNAL,
            )
            self.__decisions[specifier] = decision
        return decision

    def is_external(self, specifier: str) -> bool:
        return self.classify(specifier) is DependencyClass.EXTERNAL
