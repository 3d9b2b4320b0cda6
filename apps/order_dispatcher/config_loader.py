"""
Per-broker configuration files.

Each broker reads ``config_<broker>.json`` from the configured directory.
The file carries the user's credential, the orders to send and the loop
timing. Orders stay as raw JSON objects here; session construction
validates them against the broker's payload model.
"""

import json
import logging
from datetime import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from libs.brokers.identity import BrokerName
from libs.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_DELAY_MS = 100


class BrokerConfigFile(BaseModel):
    """
    Contents of one ``config_<broker>.json``.

    Example:
        {
            "cookie": "PASTE_YOUR_COOKIE_HERE",
            "orders": [{"canonical": {"side": "buy", "price": 5420,
                        "quantity": 100, "instrument_id": "IRO1FOLD0001"}}],
            "batch_delay_ms": 100
        }
    """

    # Unknown keys are ignored so files written for older releases still load
    model_config = ConfigDict(extra="ignore")

    cookie: str = ""
    authorization: str = ""
    user_agent: str | None = None
    order_url: str | None = None
    origin: str | None = None
    referer: str | None = None
    orders: list[dict[str, Any]] = Field(default_factory=list)
    batch_delay_ms: int = Field(DEFAULT_BATCH_DELAY_MS, ge=0)
    failure_backoff_ms: int | None = Field(None, ge=0)
    target_time: time | None = Field(
        None, description="Wall-clock start time in Asia/Tehran (HH:MM:SS[.mmm])"
    )
    x_user_trace: str | None = None
    nt: str | None = None


def config_path(broker: BrokerName, config_dir: str | Path) -> Path:
    """Path of a broker's config file inside ``config_dir``."""
    return Path(config_dir) / f"config_{broker.value}.json"


def load_broker_config(broker: BrokerName, config_dir: str | Path) -> BrokerConfigFile:
    """
    Read and parse a broker's config file.

    Args:
        broker: Broker to load
        config_dir: Directory holding the config files

    Returns:
        Parsed configuration record

    Raises:
        ConfigurationError: If the file is missing, unreadable, not valid
            JSON or does not match the expected shape
    """
    path = config_path(broker, config_dir)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to read {path}: {e.strerror or e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    try:
        record = BrokerConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    logger.debug(f"Loaded {path}", extra={"orders": len(record.orders)})
    return record
