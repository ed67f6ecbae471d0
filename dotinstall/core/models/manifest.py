"""
Manifest models — the static description of a desktop profile.

A manifest lists what should end up on the machine: repositories,
packages grouped by category (each with an ordered chain of install
methods), optional extras, directories, config directories, text blocks
to merge into rc/INI files, session settings, services and post-install
commands. The plan resolver turns it into an ordered Plan.

Entries that only carry a name may be written as plain strings in YAML:

    packages:
      - category: essentials
        packages:
          - waybar
          - name: zen-browser
            methods:
              - via: yay
                package: zen-browser-bin
              - via: pacman
                package: firefox
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

InstallVia = Literal[
    "pacman",
    "yay",
    "paru",
    "dnf",
    "flatpak",
    "cargo",
    "script",
    "command",
]


class _Entry(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _NamedEntry(_Entry):
    """Entry that may be written as a bare name string in YAML."""

    @model_validator(mode="before")
    @classmethod
    def accept_bare_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        return data


class InstallMethod(_Entry):
    """One way of installing a package, tried in manifest order."""

    via: InstallVia
    package: str | None = None          # name under this method (default: entry name)
    script: str | None = None           # helper, relative to the scripts dir
    command: list[str] | None = None    # explicit argv for via=command
    remote: str = "flathub"             # flatpak remote


class PackageEntry(_NamedEntry):
    """A desired package and its install methods.

    With no ``methods``, the OS family's native package manager is used.
    """

    name: str
    methods: list[InstallMethod] = Field(default_factory=list)
    families: list[str] | None = None   # None = every family
    required: bool | None = None        # None = inherit from the group
    description: str = ""


class PackageGroup(_Entry):
    category: str
    packages: list[PackageEntry] = Field(default_factory=list)
    required: bool = False


class ExtraGroup(_Entry):
    """Optional packages, included only when selected before planning."""

    name: str
    prompt: str = ""
    packages: list[PackageEntry] = Field(default_factory=list)


class RepositoryEntry(_Entry):
    """A package source to enable before any package is installed.

    Exactly one of ``copr``, ``flatpak_remote`` or ``command`` is expected.
    """

    name: str
    families: list[str] | None = None
    copr: str | None = None             # e.g. "solopasha/hyprland"
    flatpak_remote: str | None = None   # repo URL, added under ``name``
    command: list[str] | None = None
    fallbacks: list[list[str]] = Field(default_factory=list)
    skip_if_command: str | None = None
    required: bool = False
    description: str = ""


class ConfigDirEntry(_NamedEntry):
    """A directory copied from the dotfiles repo into the user's home.

    ``source`` is relative to the dotfiles repo (default ``config/<name>``),
    ``dest`` defaults to ``<config_root>/<name>``.
    Files matching ``executable`` (globs, searched recursively) get the
    execute bit wherever they are readable, like ``chmod +x``.
    """

    name: str
    source: str | None = None
    dest: str | None = None
    required: bool = False
    executable: list[str] = Field(default_factory=lambda: ["*.sh"])


class EnvironmentBlock(_Entry):
    """Environment variables exported from a login file such as ~/.profile."""

    file: str = "~/.profile"
    marker: str = "# dotinstall: environment"
    comment: str = ""
    variables: dict[str, str] = Field(default_factory=dict)

    def render(self) -> str:
        lines = [self.marker]
        if self.comment:
            lines.append(f"# {self.comment}")
        lines.extend(f"export {key}={value}" for key, value in self.variables.items())
        return "\n".join(lines) + "\n"


class TextBlockEntry(_Entry):
    """A block merged into a text file, at most once.

    The ``marker`` (or, without one, the exact content) decides whether
    the block is already present. With ``section`` the block goes under
    that INI section header.
    """

    target: str
    content: str
    marker: str | None = None
    section: str | None = None
    only_if_exists: bool = False
    required: bool = False
    description: str = ""


class SessionSetting(_Entry):
    """A desktop session setting (gsettings by default)."""

    namespace: str | None = None        # gsettings schema
    key: str
    value: str
    command: list[str] | None = None


class ServiceEntry(_NamedEntry):
    name: str
    user: bool = True


class CommandEntry(_Entry):
    """A post-install command, e.g. a headless editor plugin sync."""

    name: str
    command: list[str]
    families: list[str] | None = None
    requires_path: str | None = None
    skip_if_command: str | None = None
    required: bool = False
    timeout: int = 600
    description: str = ""


class Manifest(_Entry):
    """Top-level profile description."""

    version: int = 1
    name: str
    description: str = ""
    families: list[str] = Field(default_factory=lambda: ["arch", "fedora"])

    repositories: list[RepositoryEntry] = Field(default_factory=list)
    packages: list[PackageGroup] = Field(default_factory=list)
    extras: list[ExtraGroup] = Field(default_factory=list)
    directories: list[str] = Field(default_factory=list)
    config_dirs: list[ConfigDirEntry] = Field(default_factory=list)
    environment: EnvironmentBlock | None = None
    text_blocks: list[TextBlockEntry] = Field(default_factory=list)
    session_settings: list[SessionSetting] = Field(default_factory=list)
    services: list[ServiceEntry] = Field(default_factory=list)
    commands: list[CommandEntry] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)   # printed after a successful run

    def get_extra(self, name: str) -> ExtraGroup | None:
        for extra in self.extras:
            if extra.name == name:
                return extra
        return None
