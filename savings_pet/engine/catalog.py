"""
Pet Catalog

The shop's list of purchasable pets. A catalog is an immutable value
handed to the service at construction time, so tests can swap in a
fixture catalog without patching module state.

A catalog can also be loaded from a JSON file (a list of AvailablePet
records) pointed to by configuration.
"""

import json
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from savings_pet.engine.exceptions import CatalogEntryNotFoundError
from savings_pet.models.pet import AvailablePet, PetTranslation


SUPPORTED_LANGUAGES = ("en", "zh")
DEFAULT_LANGUAGE = "en"


class PetCatalog:
    """Read-only, ordered collection of AvailablePet templates."""

    def __init__(self, pets: Iterable[AvailablePet]):
        self._pets: tuple[AvailablePet, ...] = tuple(pets)
        self._by_id: dict[str, AvailablePet] = {}
        for pet in self._pets:
            if pet.id in self._by_id:
                raise ValueError(f"Duplicate catalog id: {pet.id}")
            self._by_id[pet.id] = pet

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "PetCatalog":
        return cls(AvailablePet.model_validate(record) for record in records)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "PetCatalog":
        """Load a catalog from a JSON list of pet templates."""
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
        if not isinstance(records, list):
            raise ValueError(f"Catalog file must contain a JSON list: {path}")
        return cls.from_records(records)

    def __iter__(self) -> Iterator[AvailablePet]:
        return iter(self._pets)

    def __len__(self) -> int:
        return len(self._pets)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._by_id

    def get_by_id(self, template_id: str) -> Optional[AvailablePet]:
        return self._by_id.get(template_id)

    def require(self, template_id: str) -> AvailablePet:
        """Like get_by_id, but raises CatalogEntryNotFoundError."""
        pet = self._by_id.get(template_id)
        if pet is None:
            raise CatalogEntryNotFoundError(template_id)
        return pet

    def get_by_breed(self, breed: str) -> Optional[AvailablePet]:
        """
        Find a template by breed.

        Matches the canonical breed, any localized breed, or the id, so a
        UserPet created under one display language still maps back.
        """
        if not breed:
            return None
        for pet in self._pets:
            if pet.breed == breed or pet.id == breed:
                return pet
            if any(t.breed == breed for t in pet.translations.values()):
                return pet
        return None

    def affordable(self, xp: int) -> list[AvailablePet]:
        """Templates whose price is covered by `xp`."""
        return [pet for pet in self._pets if pet.xp_cost <= xp]


def localized_text(pet: AvailablePet, language: str) -> PetTranslation:
    """
    Breed and description for `language`.

    Unsupported languages fall back to English; missing translations fall
    back to the template's own breed and description.
    """
    language = language if language in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE
    translation = pet.translations.get(language, PetTranslation())
    return PetTranslation(
        breed=translation.breed or pet.breed,
        description=translation.description or pet.description,
    )


def _pet(id, type, breed, emoji, xp_cost, description, zh_breed, zh_description, en_description=None):
    return AvailablePet(
        id=id,
        type=type,
        breed=breed,
        emoji=emoji,
        xp_cost=xp_cost,
        description=description,
        translations={
            "en": PetTranslation(breed=breed, description=en_description or description),
            "zh": PetTranslation(breed=zh_breed, description=zh_description),
        },
    )


DEFAULT_CATALOG = PetCatalog([
    _pet("turtle_common", "turtle", "Box Turtle", "🐢", 500,
         "Slow and steady wins the race!", "箱龟", "慢而稳，总会成功！"),
    _pet("hamster_syrian", "hamster", "Syrian Hamster", "🐹", 400,
         "Energetic and adorable!", "叙利亚仓鼠", "精力充沛，超可爱！"),
    _pet("rabbit_dutch", "rabbit", "Dutch Rabbit", "🐰", 600,
         "Hop to financial success!", "荷兰兔", "蹦跳到理财成功！"),
    _pet("bird_parrot", "bird", "Parrot", "🦜", 700,
         "Squawk your way to savings!", "鹦鹉", "为存钱大声叫一声！"),
    _pet("fish_goldfish", "fish", "Goldfish", "🐠", 300,
         "Swimming in savings!", "金鱼", "在存钱的海洋里游来游去！"),
    _pet("cat_siamese", "cat", "Siamese Cat", "🐱", 550,
         "Curious about every coin.", "暹罗猫", "好奇每一枚存下的硬币！",
         en_description="Curious about every coin!"),
    _pet("dog_corgi", "dog", "Corgi", "🐶", 650,
         "Small steps, big gains.", "柯基", "小短腿，也能赚大收益！",
         en_description="Small steps, big gains!"),
])


def load_catalog(path: Optional[str] = None) -> PetCatalog:
    """The catalog at `path`, or the built-in one when no path is configured."""
    if path:
        return PetCatalog.from_json_file(path)
    return DEFAULT_CATALOG
