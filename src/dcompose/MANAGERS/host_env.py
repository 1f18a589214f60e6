"""
Environment for processes that run on the host but talk to services in
containers.
"""
import json
import os
from typing import Any, List, MutableMapping, Optional, Tuple

from dotenv import dotenv_values

from ..MODELS.project_config import ProjectConfig
from ..UTILS.net_info import NetInfo
from .mapper import Mapper
from .session import Session


class HostEnvironment:
    """
    Resolves the host_env of a project to real addresses and merges in the
    verbatim variables.
    """
    def __init__(self,
                 config: ProjectConfig,
                 session: Session,
                 net_info: Optional[NetInfo] = None):
        """
        :param config: Project configuration holding the variables.
        :param session: Session used to look up published ports.
        :param net_info: Passed on to the Mapper.
        """
        self.config = config
        self.session = session
        self.net_info = net_info

    @staticmethod
    def serialize(value: Any) -> Optional[str]:
        """
        Converts a mapped value to something that can be stored in the
        environment: strings as-is, None as None, lists as JSON.
        """
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)):
            return json.dumps(list(value))
        raise TypeError(f"Can't represent a {type(value).__name__} in the environment")

    def extra_env(self):
        """
        Verbatim variables: the .env file first, then extra_host_env.
        """
        env = {}
        if self.config.env_file and os.path.exists(self.config.env_file):
            env.update({k: v for k, v in dotenv_values(self.config.env_file).items() if v is not None})
        env.update(self.config.extra_host_env)
        return env

    def resolve(self) -> List[Tuple[str, Optional[str]]]:
        """
        Maps every host_env variable, then appends the verbatim ones.

        :return: Variable names with their values; None means the service is
            not running and the variable should be unset.
        """
        pairs = [
            (key, self.serialize(value))
            for key, value in Mapper.map_env(self.config.host_env,
                                             session=self.session,
                                             net_info=self.net_info)
        ]
        pairs.extend((key, self.serialize(value)) for key, value in self.extra_env().items())
        return pairs

    def export(self, environ: Optional[MutableMapping[str, str]] = None) -> List[Tuple[str, Optional[str]]]:
        """
        Applies the resolved variables to an environment.

        :param environ: The environment to change. Defaults to os.environ.
        :return: The variables that were applied.
        """
        if environ is None:
            environ = os.environ
        pairs = self.resolve()
        for key, value in pairs:
            if value is None:
                environ.pop(key, None)
            else:
                environ[key] = value
        return pairs
