"""
Models for the dcompose project configuration file.
"""
import os
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel


class ProjectConfig(BaseModel):
    """
    Settings for running host processes against a docker-compose project.
    Loaded from ``dcompose.yml``.
    """
    # Directory that docker-compose runs in
    dir: str = "."
    # Compose file, or files in override order
    file: Optional[Union[str, List[str]]] = None
    project: Optional[str] = None

    # Variables for host processes whose values name services and ports,
    # e.g. {"DATABASE_URL": "mysql://db:3306/app"}
    host_env: Dict[str, Union[str, List[str]]] = {}
    # Variables set verbatim, never substituted; these win over host_env
    extra_host_env: Dict[str, str] = {}
    # .env file with more verbatim variables
    env_file: Optional[str] = None

    # Services to bring up before running a host command; all if unset
    host_services: Optional[List[str]] = None

    @classmethod
    def load(cls, path: str) -> "ProjectConfig":
        """
        Loads configuration from a YAML file.

        :param path: Path to the file. A missing file yields the defaults.
        :return: The configuration, with relative paths resolved against the
            file's directory.
        """
        if not os.path.exists(path):
            config = cls()
            base_dir = os.getcwd()
        else:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
            config = cls(**data)
            base_dir = os.path.dirname(os.path.abspath(path))

        config.dir = os.path.normpath(os.path.join(base_dir, config.dir))
        if config.env_file:
            config.env_file = os.path.join(config.dir, config.env_file)
        return config
