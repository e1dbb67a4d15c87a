"""
SizePolicy - Target widths and re-encode qualities for each size class.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class SizeClass(str, Enum):
    """Named variant resolutions. The value is the object name suffix."""

    THUMB = 'thumb'
    SMALL = 'small'
    MEDIUM = 'medium'
    LARGE = 'large'
    ORIGINAL = 'original'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> 'SizeClass':
        """Parse a suffix string (case-insensitive) into a SizeClass."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Unknown size class: {value!r}") from None


ALL_SIZES: Tuple[SizeClass, ...] = tuple(SizeClass)


def _frozen(mapping: Mapping[SizeClass, int]) -> Mapping[SizeClass, int]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class SizePolicy:
    """
    Immutable size policy injected into the variant generator.

    Attributes:
        widths: Target pixel width per resized class (original has none)
        qualities: WebP quality per class, original included
    """
    widths: Mapping[SizeClass, int] = field(default_factory=lambda: _frozen({
        SizeClass.THUMB: 112,
        SizeClass.SMALL: 400,
        SizeClass.MEDIUM: 800,
        SizeClass.LARGE: 1200,
    }))
    qualities: Mapping[SizeClass, int] = field(default_factory=lambda: _frozen({
        SizeClass.THUMB: 70,
        SizeClass.SMALL: 75,
        SizeClass.MEDIUM: 80,
        SizeClass.LARGE: 85,
        SizeClass.ORIGINAL: 90,
    }))

    def __post_init__(self):
        # Callers may pass plain dicts; store read-only copies.
        object.__setattr__(self, 'widths', _frozen(self.widths))
        object.__setattr__(self, 'qualities', _frozen(self.qualities))

        if SizeClass.ORIGINAL in self.widths:
            raise ValueError("The original size class keeps native dimensions and takes no width")
        for size in ALL_SIZES:
            if size is not SizeClass.ORIGINAL and size not in self.widths:
                raise ValueError(f"Missing width for size class {size}")
            if size not in self.qualities:
                raise ValueError(f"Missing quality for size class {size}")
        for size, width in self.widths.items():
            if width <= 0:
                raise ValueError(f"Width for {size} must be positive, got {width}")
        for size, quality in self.qualities.items():
            if not 1 <= quality <= 100:
                raise ValueError(f"Quality for {size} must be within 1-100, got {quality}")

    def width_for(self, size: SizeClass) -> Optional[int]:
        """Target width for a size class, or None for original."""
        return self.widths.get(size)

    def quality_for(self, size: SizeClass) -> int:
        """WebP quality for a size class."""
        return self.qualities[size]

    def with_overrides(
        self,
        widths: Optional[Mapping[SizeClass, int]] = None,
        qualities: Optional[Mapping[SizeClass, int]] = None
    ) -> 'SizePolicy':
        """Return a new policy with some widths and/or qualities replaced."""
        new_widths = dict(self.widths)
        new_widths.update(widths or {})
        new_qualities = dict(self.qualities)
        new_qualities.update(qualities or {})
        return replace(self, widths=new_widths, qualities=new_qualities)


DEFAULT_POLICY = SizePolicy()
