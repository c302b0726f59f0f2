from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True)
class Entity:
    """Display metadata of one operator. `id` is stored lower-case."""

    id: str
    name: str
    color_token: str
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class EntityRegistry:
    """Entity metadata keyed by id. Written once by the resolver, read-only after."""

    entities: Mapping[str, Entity] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = MappingProxyType({k.lower(): v for k, v in self.entities.items()})
        object.__setattr__(self, "entities", frozen)

    @staticmethod
    def build(entities: Iterable[Entity]) -> "EntityRegistry":
        # later entries win, matching a cache overwritten chunk by chunk
        return EntityRegistry({e.id.lower(): e for e in entities})

    def get(self, entity_id: str) -> Optional[Entity]:
        return self.entities.get(str(entity_id).lower())

    def __contains__(self, entity_id: object) -> bool:
        return isinstance(entity_id, str) and entity_id.lower() in self.entities

    def __len__(self) -> int:
        return len(self.entities)
