"""
Dependency Sequencer - Fixed processing order over entity types.

Types are pushed parent-first so that a child's create call can always
name its parent's remote node. Within a type, entities are visited in a
deterministic order so that retries after a partial failure replay the
same traversal.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from ...core.domain.entities import Entity, ENTITY_CLASSES
from ...core.domain.enums import EntityType


@dataclass(frozen=True)
class ParentRef:
    """A field on an entity that points at its parent entity."""

    field: str
    entity_type: EntityType
    required: bool = True


@dataclass(frozen=True)
class ReferenceList:
    """A list-of-ids field resolved best-effort (unmapped ids are dropped)."""

    field: str
    entity_type: EntityType


@dataclass(frozen=True)
class EntityDescriptor:
    """Everything the orchestrator needs to know about one entity type."""

    entity_type: EntityType
    parent_refs: tuple[ParentRef, ...] = ()
    reference_lists: tuple[ReferenceList, ...] = ()

    @property
    def entity_class(self) -> type[Entity]:
        return ENTITY_CLASSES[self.entity_type]

    @property
    def depends_on(self) -> set[EntityType]:
        deps = {ref.entity_type for ref in self.parent_refs}
        deps.update(ref.entity_type for ref in self.reference_lists)
        return deps


DEFAULT_TYPE_ORDER: tuple[EntityType, ...] = (
    EntityType.WORK,
    EntityType.TAG_CATEGORY,
    EntityType.TAG,
    EntityType.CHARACTER,
    EntityType.SETTING,
    EntityType.SYNOPSIS,
    EntityType.CHAPTER,
    EntityType.EPISODE,
)

_WORK = ParentRef("work_id", EntityType.WORK)

DEFAULT_DESCRIPTORS: tuple[EntityDescriptor, ...] = (
    EntityDescriptor(EntityType.WORK),
    EntityDescriptor(EntityType.TAG_CATEGORY),
    EntityDescriptor(
        EntityType.TAG,
        parent_refs=(ParentRef("category_id", EntityType.TAG_CATEGORY),),
    ),
    EntityDescriptor(EntityType.CHARACTER, parent_refs=(_WORK,)),
    EntityDescriptor(EntityType.SETTING, parent_refs=(_WORK,)),
    EntityDescriptor(
        EntityType.SYNOPSIS,
        parent_refs=(_WORK,),
        reference_lists=(
            ReferenceList("character_ids", EntityType.CHARACTER),
            ReferenceList("setting_ids", EntityType.SETTING),
        ),
    ),
    EntityDescriptor(EntityType.CHAPTER, parent_refs=(_WORK,)),
    EntityDescriptor(
        EntityType.EPISODE,
        parent_refs=(_WORK, ParentRef("chapter_id", EntityType.CHAPTER, required=False)),
    ),
)


class SequencerError(ValueError):
    """The configured order is not a valid topological order."""


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class DependencySequencer:
    """
    Owns the typed descriptor registry and the traversal order.

    Usage:
        sequencer = DependencySequencer()
        for descriptor in sequencer.descriptors():
            entities = sequencer.order_entities(snapshot.for_type(descriptor.entity_type))
    """

    def __init__(
        self,
        descriptors: Sequence[EntityDescriptor] = DEFAULT_DESCRIPTORS,
        order: Sequence[EntityType] = DEFAULT_TYPE_ORDER,
    ):
        self._registry: dict[EntityType, EntityDescriptor] = {d.entity_type: d for d in descriptors}
        self._order = tuple(order)
        self._validate()

    def _validate(self) -> None:
        if len(set(self._order)) != len(self._order):
            raise SequencerError("Entity type order contains duplicates")

        missing = set(self._registry) - set(self._order)
        if missing:
            raise SequencerError(f"Types without a position: {sorted(t.value for t in missing)}")

        unknown = set(self._order) - set(self._registry)
        if unknown:
            raise SequencerError(f"Types without a descriptor: {sorted(t.value for t in unknown)}")

        seen: set[EntityType] = set()
        for entity_type in self._order:
            for dep in self._registry[entity_type].depends_on:
                if dep == entity_type or dep not in seen:
                    raise SequencerError(
                        f"{entity_type.value} depends on {dep.value}, which is not ordered before it"
                    )
            seen.add(entity_type)

    # -------------------------------------------------------------------------
    # Type Order
    # -------------------------------------------------------------------------

    def type_order(self) -> tuple[EntityType, ...]:
        """The total order over entity types (parents first)."""
        return self._order

    def descriptors(self) -> list[EntityDescriptor]:
        """Descriptors in processing order."""
        return [self._registry[t] for t in self._order]

    def descriptor(self, entity_type: EntityType) -> EntityDescriptor:
        return self._registry[entity_type]

    # -------------------------------------------------------------------------
    # Within-Type Order
    # -------------------------------------------------------------------------

    @staticmethod
    def sort_key(entity: Entity) -> tuple:
        """
        Explicit ``order`` first (entities without one go last), then
        creation time, then id.
        """
        order: Optional[int] = getattr(entity, "order", None)
        return (
            order is None,
            order if order is not None else 0,
            entity.created_at or _EPOCH,
            entity.id,
        )

    def order_entities(self, entities: Sequence[Entity]) -> list[Entity]:
        return sorted(entities, key=self.sort_key)
