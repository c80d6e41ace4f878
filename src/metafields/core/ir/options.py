"""
Option providers for choice fields.

Options are resolved at the point of use (render, sanitize, evaluate) rather
than once at load time, since dynamic sources may change between requests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple


class Option(NamedTuple):
    """A selectable value with its display label."""

    value: Any
    label: str


class OptionProvider(ABC):
    """Capability interface for anything that can list options."""

    @abstractmethod
    def resolve(self) -> list[Option]:
        """Return the current option list."""

    def keys(self) -> list[Any]:
        """Return the option values in declaration order."""
        return [option.value for option in self.resolve()]

    def match(self, value: Any) -> tuple[bool, Any]:
        """
        Look up a submitted value in the option set.

        Comparison is done on the string form so a submitted ``"1"`` matches
        an option declared as ``1``.

        Returns:
            (found, canonical option value)
        """
        if value is None or isinstance(value, (list, dict)):
            return False, None
        wanted = str(value)
        for option in self.resolve():
            if str(option.value) == wanted:
                return True, option.value
        return False, None


@dataclass(frozen=True)
class StaticOptions(OptionProvider):
    """A fixed option list declared in configuration."""

    options: tuple[Option, ...] = ()

    def resolve(self) -> list[Option]:
        return list(self.options)


@dataclass(frozen=True)
class CallableOptions(OptionProvider):
    """Options produced by an integrator callable, invoked on every resolve."""

    factory: Callable[[], Any]

    def resolve(self) -> list[Option]:
        return coerce_options(self.factory())


def coerce_options(raw: Any) -> list[Option]:
    """
    Convert the raw option shapes accepted in configuration to Options.

    Accepts:
        - {"value": "Label", ...}
        - ["a", "b"] (value doubles as label)
        - [{"value": "a", "label": "A"}, ...]
        - [("a", "A"), ...]
    Anything else yields an empty list.
    """
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [Option(value, str(label)) for value, label in raw.items()]
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        return []

    options: list[Option] = []
    for item in raw:
        if isinstance(item, Option):
            options.append(item)
        elif isinstance(item, Mapping):
            if "value" not in item:
                continue
            options.append(Option(item["value"], str(item.get("label", item["value"]))))
        elif isinstance(item, (tuple, list)) and len(item) == 2:
            options.append(Option(item[0], str(item[1])))
        else:
            options.append(Option(item, str(item)))
    return options


def make_option_provider(raw: Any) -> OptionProvider | None:
    """Build an OptionProvider from a raw ``options`` configuration value."""
    if raw is None:
        return None
    if isinstance(raw, OptionProvider):
        return raw
    if callable(raw):
        return CallableOptions(raw)
    return StaticOptions(tuple(coerce_options(raw)))
