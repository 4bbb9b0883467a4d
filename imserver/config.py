"""INI configuration loading with forgiving lookups."""

from __future__ import annotations

import configparser
import functools
import logging
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Iterator, Mapping

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.ini"


@dataclass(frozen=True)
class SectionInfo:
    """Key/value pairs of one section; unknown keys read as an empty string."""

    values: Mapping[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> str:
        return self.values.get(key, "")

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def items(self) -> list[tuple[str, str]]:
        return sorted(self.values.items())


@dataclass(frozen=True)
class ConfigMgr:
    """All sections of a configuration; unknown sections read as empty."""

    sections: Mapping[str, SectionInfo] = field(default_factory=dict)

    def __getitem__(self, key: str) -> SectionInfo:
        return self.sections.get(key, SectionInfo())

    def __contains__(self, key: object) -> bool:
        return key in self.sections

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.sections))

    def __len__(self) -> int:
        return len(self.sections)


def load_config(path: str | PathLike[str]) -> ConfigMgr:
    """Read an INI file; keys keep their case and values are taken literally."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    logger.info("config path is %s", path)
    with open(path, encoding="utf-8") as handle:
        parser.read_file(handle)

    sections = {
        name: SectionInfo(dict(parser.items(name, raw=True)))
        for name in parser.sections()
    }
    for name in sorted(sections):
        logger.debug("[%s]", name)
        for key, value in sections[name].items():
            logger.debug("%s=%s", key, value)
    return ConfigMgr(sections)


@functools.lru_cache(maxsize=None)
def get_config() -> ConfigMgr:
    """Return the process-wide configuration read from ./config.ini."""
    return load_config(Path.cwd() / CONFIG_FILE_NAME)