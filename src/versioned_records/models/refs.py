"""Polymorphic entity references."""

from pydantic import BaseModel, ConfigDict


class EntityRef(BaseModel):
    """A type tag plus identifier naming one entity (or changer) of any kind."""

    model_config = ConfigDict(frozen=True)

    type: str
    id: str

    @classmethod
    def parse(cls, raw: str) -> "EntityRef":
        """Parse the ``type:id`` form produced by ``str()``."""
        type_tag, sep, ident = raw.partition(":")
        if not sep or not type_tag or not ident:
            raise ValueError(f"Expected 'type:id', got {raw!r}")
        return cls(type=type_tag, id=ident)

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"
