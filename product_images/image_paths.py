"""
Canonical path codec.

A canonical path names one logical image without size suffix or extension,
e.g. ``produtos/1700000000000-abc123``. Each stored variant lives at
``{canonical}-{size}.webp``. These helpers never perform I/O and are safe to
call with bare object keys or full public URLs.
"""

import re
from typing import Collection, Iterable, List, Optional

from .errors import ReferenceNotFound
from .size_policy import ALL_SIZES, SizeClass

VARIANT_EXTENSION = '.webp'
VARIANT_CONTENT_TYPE = 'image/webp'

# Extension of the last path segment only
EXTENSION_PATTERN = re.compile(r'\.[^/.]+$')
SIZE_SUFFIX_PATTERN = re.compile(
    r'-(' + '|'.join(s.value for s in ALL_SIZES) + r')$'
)
VARIANT_PATTERN = re.compile(
    r'^(?P<base>.+)-(?P<size>' + '|'.join(s.value for s in ALL_SIZES) + r')\.webp$'
)


def _strip_once(path: str) -> str:
    without_ext = EXTENSION_PATTERN.sub('', path)
    return SIZE_SUFFIX_PATTERN.sub('', without_ext)


def base_path(name: str) -> str:
    """
    Return the canonical path for a variant object name, URL or canonical path.

    Strips the extension and a trailing size suffix. Stripping repeats until
    nothing changes, so ``base_path(base_path(x)) == base_path(x)`` for any
    input. Inputs without extension or suffix are returned unchanged.
    """
    current = name
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return current
        current = stripped


def object_name(canonical_path: str, size: SizeClass) -> str:
    """Build the variant object name ``{canonical}-{size}.webp``."""
    size = SizeClass.parse(str(size))
    return f"{base_path(canonical_path)}-{size.value}{VARIANT_EXTENSION}"


def variant_names(canonical_path: str, sizes: Iterable[SizeClass] = ALL_SIZES) -> List[str]:
    """Object names of every requested variant of one image."""
    return [object_name(canonical_path, size) for size in sizes]


def size_class_of(name: str) -> Optional[SizeClass]:
    """Return the size class encoded in a variant name, or None."""
    without_ext = EXTENSION_PATTERN.sub('', name)
    match = SIZE_SUFFIX_PATTERN.search(without_ext)
    if match:
        return SizeClass(match.group(1))
    return None


def has_size_suffix(name: str) -> bool:
    """True if the name (or URL) carries a recognised size suffix."""
    return size_class_of(name) is not None


def is_variant_name(name: str) -> bool:
    """True for names produced by object_name (suffix plus .webp)."""
    return VARIANT_PATTERN.match(name) is not None


def has_extension(name: str) -> bool:
    return EXTENSION_PATTERN.search(name) is not None


def matches_base(name: str, base: str) -> bool:
    """
    True if ``name`` is a variant of exactly ``base``.

    Matches on ``base + "-"`` and confirms the decoded base is identical,
    so ``shoe-42`` never matches ``shoe-420-thumb.webp`` (or ``shoe-4``
    ``shoe-42-thumb.webp``).
    """
    return name.startswith(base + '-') and base_path(name) == base


def select_variant(canonical_path: str, size: SizeClass, available: Collection[str]) -> str:
    """
    Pick the object name to serve for a requested size.

    Falls back to the original variant when the requested size is missing.
    Raises ReferenceNotFound when neither exists.
    """
    wanted = object_name(canonical_path, size)
    if wanted in available:
        return wanted
    fallback = object_name(canonical_path, SizeClass.ORIGINAL)
    if fallback in available:
        return fallback
    raise ReferenceNotFound(f"No variant stored for {base_path(canonical_path)}")
