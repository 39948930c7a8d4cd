"""Load desired-state YAML files."""
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError as SchemaError

from pvelxc.config.schema import GuestFile
from pvelxc.core.errors import ConfigFileError
from pvelxc.core.logger import get_logger

logger = get_logger(__name__)


class GuestFileLoader:
    """Reads one guest file and validates it against the schema."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.raw_config = None

    def load(self) -> GuestFile:
        if not self.path.exists():
            raise FileNotFoundError(f"Config file not found: {self.path}")

        try:
            with open(self.path) as f:
                self.raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigFileError(f"{self.path}: invalid YAML: {e}") from e

        if not self.raw_config:
            raise ConfigFileError(f"{self.path}: config file is empty")
        if not isinstance(self.raw_config, dict):
            raise ConfigFileError(f"{self.path}: expected a mapping at the top level")

        try:
            guest_file = GuestFile.model_validate(self.raw_config)
        except SchemaError as e:
            raise ConfigFileError(f"{self.path}: {_format_errors(e)}") from e

        logger.debug(f"Loaded {self.path} for {guest_file.guest.node}/{guest_file.guest.id or 'new'}")
        return guest_file


def _format_errors(error: SchemaError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def load_guest_file(path: Union[str, Path]) -> GuestFile:
    return GuestFileLoader(path).load()
