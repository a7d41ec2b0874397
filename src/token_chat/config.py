"""
Client configuration — ``~/.tokenchat/config.json``.

``TOKENCHAT_CONFIG`` points at a different file.
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from token_chat.errors import ConfigError
from token_chat.submitter import DEFAULT_SUBMIT_DELAY_S

DEFAULT_CONFIG_FILE = Path.home() / ".tokenchat" / "config.json"


class ChatConfig(BaseModel):
    address: Optional[str] = None
    provider_name: str = "cli"
    rpc_url: Optional[str] = None
    relay_url: Optional[str] = None
    rooms_file: Optional[str] = None
    # {token_address: {wallet_address: raw_units}} for the offline oracle
    balances: dict[str, dict[str, int]] = Field(default_factory=dict)
    submit_delay: float = Field(default=DEFAULT_SUBMIT_DELAY_S, ge=0)
    submit_timeout: Optional[float] = Field(default=None, gt=0)


def config_path() -> Path:
    override = os.environ.get("TOKENCHAT_CONFIG")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_FILE


def load_config() -> ChatConfig:
    """Read the config file. A missing or unparseable file yields defaults.

    Raises ConfigError when the file is JSON but not a valid config.
    """
    path = config_path()
    try:
        data = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return ChatConfig()
    try:
        return ChatConfig.model_validate(data)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        raise ConfigError(f"Invalid config file {path}: check {fields}", str(path)) from e


def save_config(cfg: ChatConfig) -> None:
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg.model_dump(exclude_none=True), indent=2))
