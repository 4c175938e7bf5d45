"""
Schema discovery for the reviewable approval object.

Resolves which physical object holds the approval rows and which of its fields
play each logical role. Candidate objects are tried in order; the first one the
platform can describe wins. Only an unknown object moves on to the next
candidate; other platform errors reach the caller. Role binding is delegated to
the ranked rules in `approval_engine.domain.roles`.

Lookup roles also get a relationship path. When the contributor lookup points at
an intermediate assignment object instead of the contact, that object is
described as well to find the nested contact lookup, and the reviewable
objective may be reached through it.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import FieldBinding, FieldDescribe, ObjectDescribe, SchemaMap
from approval_engine.domain.roles import (
    CONTACT_OBJECT,
    OBJECTIVE_OBJECT,
    ROLE_SPECS,
    ContainsAll,
    ExactName,
    LogicalRole,
    MatchRule,
    References,
    match_field,
)
from approval_engine.engine.abstract import AbstractSchemaDiscoverer
from approval_engine.errors import ObjectNotFoundError
from approval_engine.infrastructure.platform_client import PlatformClient
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)

# Lookups that already point at a person record.
_PERSON_OBJECTS = frozenset({CONTACT_OBJECT, "User"})

_NESTED_CONTACT_RULES: Sequence[MatchRule] = (
    References(CONTACT_OBJECT),
    ExactName(("Contributor__c", "Contact__c", "Contributor_Id__c")),
    ContainsAll(tokens=("Contributor",)),
    ContainsAll(tokens=("Contact",)),
)

_NESTED_OBJECTIVE_RULES: Sequence[MatchRule] = (
    References(OBJECTIVE_OBJECT),
    ExactName(("Project_Objective__c", "ProjectObjective__c", "Objective__c")),
)


def relationship_name(field: FieldDescribe) -> Optional[str]:
    """
    Relationship traversal name of a lookup field.

    Uses the describe metadata when present (custom relationships end in
    `__r`); otherwise derives it by convention: `X__c -> X__r`, `XId -> X`.
    """
    name = field.relationship_name
    if name:
        if field.name.endswith("__c") and not name.endswith("__r"):
            return f"{name}__r"
        return name
    if field.name.endswith("__c"):
        return f"{field.name[:-3]}__r"
    if field.name.endswith("Id") and len(field.name) > 2:
        return field.name[:-2]
    return None


class PlatformSchemaDiscoverer(AbstractSchemaDiscoverer):
    """
    Discover the SchemaMap by describing candidate objects on the platform.
    """

    def __init__(
        self,
        client: PlatformClient,
        candidate_objects: Optional[List[str]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.client = client
        settings = settings or get_settings()
        self.candidate_objects = list(candidate_objects or settings.candidate_objects)

    def discover(self) -> SchemaMap:
        for object_name in self.candidate_objects:
            try:
                describe = self.client.describe(object_name)
            except ObjectNotFoundError as exc:
                log.debug(
                    "candidate object not describable",
                    extra={"object": object_name, "error": str(exc)},
                )
                continue
            schema = self.build_schema(describe)
            log.info(
                "schema discovered",
                extra={
                    "object": schema.object_name,
                    "roles": {role.value: b.field for role, b in schema.roles.items()},
                },
            )
            return schema

        log.warning(
            "no reviewable object found",
            extra={"candidates": self.candidate_objects},
        )
        return SchemaMap()

    # ------------------------------------------------------------------ #
    # Role binding
    # ------------------------------------------------------------------ #

    def build_schema(self, describe: ObjectDescribe) -> SchemaMap:
        """Bind every logical role against one object describe."""
        intermediates: Dict[str, Optional[ObjectDescribe]] = {}
        taken: Set[str] = set()
        roles: Dict[LogicalRole, FieldBinding] = {}

        contributor = self._bind_contributor(describe, intermediates)
        roles[LogicalRole.CONTRIBUTOR] = contributor
        if contributor.field:
            taken.add(contributor.field)

        objective = self._bind_objective(describe, contributor, intermediates, taken)
        roles[LogicalRole.OBJECTIVE] = objective
        if objective.field:
            taken.add(objective.field)

        for role, spec in ROLE_SPECS.items():
            if role in roles:
                continue
            name = match_field(spec.rules, describe.fields, exclude=taken) or spec.default
            if name:
                taken.add(name)
                roles[role] = FieldBinding(field=name)
            else:
                roles[role] = FieldBinding()

        return SchemaMap(object_name=describe.name, roles=roles)

    def _describe_intermediate(
        self, object_name: str, cache: Dict[str, Optional[ObjectDescribe]]
    ) -> Optional[ObjectDescribe]:
        if object_name not in cache:
            try:
                cache[object_name] = self.client.describe(object_name)
            except ObjectNotFoundError as exc:
                log.warning(
                    "intermediate object describe failed",
                    extra={"object": object_name, "error": str(exc)},
                )
                cache[object_name] = None
        return cache[object_name]

    def _bind_contributor(
        self, describe: ObjectDescribe, cache: Dict[str, Optional[ObjectDescribe]]
    ) -> FieldBinding:
        name = match_field(ROLE_SPECS[LogicalRole.CONTRIBUTOR].rules, describe.fields)
        field = describe.field(name)
        if field is None:
            return FieldBinding()
        if not field.is_reference:
            return FieldBinding(field=field.name)

        target = field.reference_to[0] if field.reference_to else None
        rel = relationship_name(field)
        if target is None or target in _PERSON_OBJECTS:
            return FieldBinding(field=field.name, relationship_path=rel, reference_to=target)

        # Lookup to an assignment object; the contact sits one hop further.
        intermediate = self._describe_intermediate(target, cache)
        nested = None
        if intermediate is not None:
            nested = intermediate.field(match_field(_NESTED_CONTACT_RULES, intermediate.fields))
        if nested is None or not rel:
            log.warning(
                "contributor contact lookup not resolved",
                extra={"field": field.name, "intermediate": target},
            )
            return FieldBinding(field=field.name, reference_to=target)
        return FieldBinding(
            field=field.name,
            relationship_path=f"{rel}.{relationship_name(nested)}",
            reference_to=target,
        )

    def _bind_objective(
        self,
        describe: ObjectDescribe,
        contributor: FieldBinding,
        cache: Dict[str, Optional[ObjectDescribe]],
        taken: Set[str],
    ) -> FieldBinding:
        direct = describe.field(
            match_field((References(OBJECTIVE_OBJECT),), describe.fields, exclude=taken)
        )
        if direct is not None:
            return FieldBinding(
                field=direct.name,
                relationship_path=relationship_name(direct),
                reference_to=OBJECTIVE_OBJECT,
            )

        via = self._objective_via_intermediate(describe, contributor, cache)
        if via is not None:
            return via

        name = match_field(ROLE_SPECS[LogicalRole.OBJECTIVE].rules, describe.fields, exclude=taken)
        field = describe.field(name)
        if field is None:
            return FieldBinding()
        if field.is_reference:
            target = field.reference_to[0] if field.reference_to else OBJECTIVE_OBJECT
            return FieldBinding(
                field=field.name, relationship_path=relationship_name(field), reference_to=target
            )
        return FieldBinding(field=field.name)

    def _objective_via_intermediate(
        self,
        describe: ObjectDescribe,
        contributor: FieldBinding,
        cache: Dict[str, Optional[ObjectDescribe]],
    ) -> Optional[FieldBinding]:
        target = contributor.reference_to
        if not contributor.field or not target or target in _PERSON_OBJECTS:
            return None
        intermediate = self._describe_intermediate(target, cache)
        if intermediate is None:
            return None
        nested = intermediate.field(match_field(_NESTED_OBJECTIVE_RULES, intermediate.fields))
        contributor_field = describe.field(contributor.field)
        if nested is None or contributor_field is None:
            return None
        return FieldBinding(
            field=contributor.field,
            relationship_path=f"{relationship_name(contributor_field)}.{relationship_name(nested)}",
            reference_to=target,
        )


__all__ = ["PlatformSchemaDiscoverer", "relationship_name"]
