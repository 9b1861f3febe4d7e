from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WizardSessionKeys:
    """Namespaced session-state keys for one wizard instance."""

    wizard_id: str

    @property
    def prefix(self) -> str:
        return f"wiz:{self.wizard_id}:"

    def namespace(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @property
    def engine(self) -> str:
        return self.namespace("engine")

    @property
    def last_result(self) -> str:
        return self.namespace("last_result")

    def field_widget(self, field_name: str) -> str:
        return self.namespace(f"field:{field_name}")
