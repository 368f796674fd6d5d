"""Target classifier: decide the destination table from the fields themselves.

Pure, no I/O. The declared destination (the model's hint, stored on the
preview) is only a fallback: an ordered rule table inspects the reviewed
field bag and the first matching rule wins. The caller logs and emits an
event when the decision overrides the declared table.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.errors import UnsupportedDestination
from src.models.enums import DestinationTable


@dataclass(frozen=True)
class ClassificationRule:
    """One destination signature.

    A rule matches when every group in `all_of` has at least one non-empty
    field, or any `signal_keys` field is non-empty, or any field name
    contains one of `name_fragments`.
    """

    destination: DestinationTable
    reason: str
    all_of: tuple[frozenset[str], ...] = ()
    signal_keys: frozenset[str] = field(default_factory=frozenset)
    name_fragments: tuple[str, ...] = ()

    def matches(self, fields: Mapping[str, Any]) -> bool:
        present = {name.lower() for name, value in fields.items() if _has_value(value)}
        if self.all_of and all(group & present for group in self.all_of):
            return True
        if self.signal_keys & present:
            return True
        return any(fragment in name for name in present for fragment in self.name_fragments)


@dataclass(frozen=True)
class ClassificationDecision:
    destination: DestinationTable
    declared: str | None
    overridden: bool
    reason: str


# Order matters: a tax id plus a legal name means supplier regardless of
# anything else in the bag.
DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        destination=DestinationTable.SUPPLIERS,
        reason="tax id and legal name present",
        all_of=(
            frozenset({"cnpj", "tax_id", "registration_id"}),
            frozenset({"razao_social", "nome", "legal_name"}),
        ),
        signal_keys=frozenset({"fornecedores", "suppliers"}),
    ),
    ClassificationRule(
        destination=DestinationTable.WASTE_LOGS,
        reason="waste fields present",
        signal_keys=frozenset({"residuos_por_mes", "waste_entries", "tipos_residuos_quantidades_kg"}),
        name_fragments=("residuo", "waste"),
    ),
    ClassificationRule(
        destination=DestinationTable.LICENSES,
        reason="license number present",
        signal_keys=frozenset({"license_number"}),
    ),
)


def classify_target(
    fields: Mapping[str, Any],
    declared: str | None,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> ClassificationDecision:
    """Resolve the destination for a reviewed field bag.

    Raises:
        UnsupportedDestination: no rule matched and the declared table is unknown.
    """
    for rule in rules:
        if rule.matches(fields):
            return ClassificationDecision(
                destination=rule.destination,
                declared=declared,
                overridden=declared != rule.destination.value,
                reason=rule.reason,
            )

    try:
        destination = DestinationTable(declared)
    except ValueError:
        raise UnsupportedDestination(
            f"Unsupported destination table: {declared!r}",
            details=[{"declared": declared}],
        ) from None

    return ClassificationDecision(
        destination=destination,
        declared=declared,
        overridden=False,
        reason="declared destination kept",
    )


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict, tuple)):
        return bool(value)
    return True
