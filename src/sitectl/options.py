"""Option specs contributed at runtime and the sink that registers them.

Commands whose option surface is only known at startup (extension options,
diagnostic flags) receive them through an :class:`~sitectl.protocols.OptionSink`.
:class:`CommandOptionSink` turns each registration into a ``click.Option`` on
an existing command. Parsed values are not passed to the command function;
they are collected into ``ctx.meta`` and read back with :func:`collected_flags`.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import click

FLAGS_META_KEY = "sitectl.flags"

_CLICK_TYPES: dict[str, click.ParamType] = {
    "string": click.STRING,
    "number": click.FLOAT,
    "integer": click.INT,
}


def option_dest(name: str) -> str:
    """Return the Python identifier used to store option *name*."""
    return name.strip().replace("-", "_")


@dataclass(frozen=True)
class OptionSpec:
    """Normalised description of one contributed option."""

    name: str
    type: str = "string"
    default: Any = None
    help: str | None = None
    alias: str | None = None

    @classmethod
    def from_declaration(cls, name: str, spec: object) -> OptionSpec:
        """Build a spec from an extension declaration.

        Non-mapping declarations (``{"foo": True}``) yield a plain string option.
        """
        if not isinstance(spec, Mapping):
            return cls(name=name)
        type_raw = spec.get("type", "boolean" if isinstance(spec.get("default"), bool) else "string")
        help_raw = spec.get("help", spec.get("description"))
        alias_raw = spec.get("alias")
        return cls(
            name=name,
            type=str(type_raw).lower(),
            default=spec.get("default"),
            help=str(help_raw) if help_raw is not None else None,
            alias=str(alias_raw) if alias_raw else None,
        )

    @property
    def dest(self) -> str:
        """Return the key used in the collected flags mapping."""
        return option_dest(self.name)

    @property
    def flag(self) -> str:
        """Return the long command-line flag."""
        return "--" + self.dest.replace("_", "-")

    def declarations(self) -> list[str]:
        """Return the click parameter declarations for this spec."""
        if self.type == "boolean":
            decls = [f"{self.flag}/--no-{self.flag[2:]}"]
        else:
            decls = [self.flag]
        if self.alias:
            prefix = "-" if len(self.alias) == 1 else "--"
            decls.append(prefix + self.alias)
        return [self.dest, *decls]

    def to_click_option(self) -> click.Option:
        """Return a ``click.Option`` storing its value in ``ctx.meta``."""
        kwargs: dict[str, Any] = {
            "default": self.default,
            "help": self.help,
            "expose_value": False,
            "callback": _store_flag,
        }
        if self.type == "boolean":
            kwargs["default"] = bool(self.default) if self.default is not None else None
        elif self.type == "array":
            kwargs["multiple"] = True
            kwargs["default"] = tuple(self.default) if self.default else ()
        else:
            kwargs["type"] = _CLICK_TYPES.get(self.type, click.STRING)
        return click.Option(self.declarations(), **kwargs)


def _store_flag(ctx: click.Context, param: click.Parameter, value: Any) -> Any:
    if value is None or param.name is None:
        return value
    if isinstance(value, tuple) and not value:
        return value
    flags = ctx.meta.setdefault(FLAGS_META_KEY, {})
    flags[param.name] = list(value) if isinstance(value, tuple) else value
    return value


def collected_flags(ctx: click.Context) -> dict[str, Any]:
    """Return the values parsed for sink-registered options of *ctx*'s command."""
    return dict(ctx.meta.get(FLAGS_META_KEY, {}))


class CommandOptionSink:
    """Registers contributed options on a click command, each name at most once."""

    def __init__(self, command: click.Command) -> None:
        """Attach the sink to *command*."""
        self.command = command
        self.registered: list[str] = []

    def option(self, name: str, spec: Mapping[str, Any]) -> CommandOptionSink:
        """Add option *name* to the command unless an option by that name exists."""
        option_spec = OptionSpec.from_declaration(name, spec)
        existing = {param.name for param in self.command.params}
        if option_spec.dest in existing:
            return self
        self.command.params.append(option_spec.to_click_option())
        self.registered.append(option_spec.dest)
        return self


__all__ = [
    "CommandOptionSink",
    "FLAGS_META_KEY",
    "OptionSpec",
    "collected_flags",
    "option_dest",
]
