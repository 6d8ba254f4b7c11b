import logging
import os
import yaml
from pathlib import Path
from pydantic import BaseModel, Field, PositiveInt


class Config(BaseModel):
    library: str|None = Field(default=None)
    read_buffer_size: PositiveInt = Field(default=1024 * 1024)


def config_path() -> Path:
    return Path(os.environ.get('SIMPLE_SANE_CONFIG', '~/.config/simple-sane/config.yml')).expanduser()


def load_config() -> Config:
    config_file = config_path()
    data = {}
    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}
    except IOError:
        logging.info(f"can not read config {config_file}, using default values")
    except Exception as err:
        logging.exception(err)
        logging.info("invalid config, using default values")

    return Config(**data)
