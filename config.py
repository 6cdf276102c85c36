"""
ConsoleKeeper
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import datetime
import logging

from voluptuous import Schema, Optional, All, Range, Coerce
import voluptuous.error
import aiofiles
import tomlkit
import tomlkit.exceptions
from pathlib import Path

from constants import CONSOLE_OPEN_TIMEOUT, CONSOLE_PING_INTERVAL, SERVER_HEARTBEAT_TIMEOUT


class ConfigurationLoadError(Exception): pass


class Config:
    config: tomlkit.TOMLDocument
    config_opened: bool = False

    def __init__(self, config_location: Path):
        self.config_location = config_location

        self.config_schema = Schema({
            Optional('console', default=dict): {
                Optional('heartbeat_timeout', default=SERVER_HEARTBEAT_TIMEOUT.total_seconds()):
                    All(Coerce(float), Range(min=0, min_included=False)),
                Optional('open_timeout', default=CONSOLE_OPEN_TIMEOUT):
                    All(Coerce(float), Range(min=0, min_included=False)),
                Optional('ping_interval', default=CONSOLE_PING_INTERVAL):
                    All(Coerce(float), Range(min=0)),
            },
            Optional('groups', default=dict): {
                Optional('include', default=list): [int],
                Optional('exclude', default=list): [int],
            },
        })
        self.values: dict = self.config_schema({})

    async def _read(self) -> str:
        async with aiofiles.open(self.config_location, 'r') as config_file:
            return await config_file.read()

    async def initialize(self):
        try:
            self.config = tomlkit.parse(await self._read())
            logging.debug(f"Parsed {self.config_location}, validating console and groups settings.")
            self.values = self.config_schema(self.config.unwrap())
        except FileNotFoundError as e:
            logging.error(f"No configuration at {self.config_location}. "
                          f"Copy .example/config.toml there or set CONSOLE_KEEPER_CONFIG.")
            raise ConfigurationLoadError(self.config_location) from e
        except IOError as e:
            logging.exception(e)
            logging.error(f"Could not read configuration {self.config_location}")
            raise ConfigurationLoadError(self.config_location) from e
        except tomlkit.exceptions.ParseError as e:
            logging.error(f"Configuration {self.config_location} is not valid TOML: {e}")
            raise ConfigurationLoadError(self.config_location) from e
        except voluptuous.error.MultipleInvalid as e:
            for error in e.errors:
                logging.error(f"Configuration {self.config_location}: {'.'.join(map(str, error.path))} {error.msg}")
            raise ConfigurationLoadError(self.config_location) from e

        self.config_opened = True
        logging.info(f"Configuration loaded: heartbeat timeout {self.heartbeat_timeout}, "
                     f"{len(self.values['groups']['include']) or 'all'} group(s) included, "
                     f"{len(self.values['groups']['exclude'])} excluded.")

    @property
    def heartbeat_timeout(self) -> datetime.timedelta:
        return datetime.timedelta(seconds=self.values['console']['heartbeat_timeout'])

    @property
    def open_timeout(self) -> float:
        return self.values['console']['open_timeout']

    @property
    def ping_interval(self) -> float:
        return self.values['console']['ping_interval']

    def manages_group(self, group_id: int) -> bool:
        include = self.values['groups']['include']
        if group_id in self.values['groups']['exclude']:
            return False
        return not include or group_id in include
