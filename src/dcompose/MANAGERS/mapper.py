# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Mapping of service names and container ports to addresses reachable from
the host.
"""
import logging
import os
import re
from typing import Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

from ..errors import BadSubstitution, NoService
from ..UTILS.net_info import NetInfo
from .session import Session

logger = logging.getLogger(__name__)

# An "elided" host or port: needed to find the container and port, but left
# out of the result.
ELIDED = re.compile(r'^\[.+\]$')

# Strips elision marks
REMOVE_ELIDED = re.compile(r'[\[\]]')

# The address line printed by `docker-compose port`.
PUBLISHED_ADDRESS = re.compile(r'^(.*):([0-9]+)$')

# Ports implied by URL schemes that do not name one.
DEFAULT_PORTS = {
    'http': 80,
    'https': 443,
    'ftp': 21,
}

MappedValue = Union[str, List[str]]


class Mapper:
    """
    Uses a Session to find the host addresses that services publish their
    ports on, then rewrites URLs and host:port strings to point there.

    When DOCKER_HOST names a remote daemon, the addresses reported by
    docker-compose are those of the remote machine's interfaces, so the
    mapper substitutes the address it reaches the daemon at instead.
    """
    def __init__(self,
                 session: Optional[Session] = None,
                 net_info: Optional[NetInfo] = None,
                 strict: bool = True,
                 override_host: Optional[str] = None):
        """
        Initializes the mapper.

        :param session: Session used to look up published ports.
        :param net_info: Used to find the docker host's address when DOCKER_HOST is remote.
        :param strict: Raise BadSubstitution for values that cannot be parsed,
            instead of returning them unchanged.
        :param override_host: Host to report for every service. Guessed from
            DOCKER_HOST when not given.
        """
        if override_host is None:
            docker_host = os.environ.get('DOCKER_HOST')
            if docker_host and not re.match(r'^(/|unix|file)', docker_host):
                override_host = (net_info or NetInfo(docker_host)).docker_routable_ip()

        self.session = session or Session()
        self.strict = strict
        self.override_host = override_host

    @classmethod
    def map_env(cls,
                env: Mapping[str, MappedValue],
                session: Optional[Session] = None,
                net_info: Optional[NetInfo] = None,
                strict: bool = True) -> Iterator[Tuple[str, Optional[MappedValue]]]:
        """
        Maps every value of an environment.

        A variable whose service is not running maps to None; every other
        error propagates.

        :param env: Variable names and the values to map.
        :return: Each variable name with its mapped value.
        """
        mapper = cls(session, net_info, strict=strict)
        for key, value in env.items():
            try:
                yield key, mapper.map(value)
            except NoService as e:
                logger.debug("%s: %s", key, e)
                yield key, None

    def map(self, value: MappedValue) -> MappedValue:
        """
        Substitutes service names and ports in a URL, in a host:port string,
        or in each element of a list of those.

        Either side of host:port can be elided with square brackets:

            map("tcp://db:3306")      # -> "tcp://127.0.0.1:13847"
            map("db:[3306]")          # -> "127.0.0.1"
            map("[db]:3306")          # -> "13847"
            map(["[db1]:3306", "[db2]:3306"])

        :raises BadSubstitution: If a value cannot be parsed in strict mode.
        :raises NoService: If a service is not up or does not publish the port.
        """
        if isinstance(value, str):
            return self._map_scalar(value)
        if isinstance(value, (list, tuple)):
            return [self._map_scalar(v) for v in value]
        raise TypeError(f"Cannot map a {type(value).__name__}")

    def host_and_port(self, service: str, port: Union[str, int]) -> Tuple[str, int]:
        """
        Finds the host address a service port is published on.

        :return: Host and port number.
        :raises NoService: If the service is not running or does not publish the port.
        :raises BadSubstitution: If the lookup printed something other than an address.
        """
        result = self.session.port(service, str(port)) or ""
        # docker-compose may print warnings ahead of the address
        lines = [line.strip() for line in result.splitlines() if line.strip()]
        if not lines:
            raise NoService(f"Service '{service}' not running, or does not publish port '{port}'")

        match = PUBLISHED_ADDRESS.match(lines[-1])
        if not match:
            raise BadSubstitution(f"Unexpected output from port lookup of {service}:{port}: '{result}'")

        host, published = match.groups()
        if self.override_host:
            host = self.override_host
        return host, int(published)

    def _map_scalar(self, value: str) -> str:
        url = _parse_url(value)
        if url is not None:
            mapped = self._map_url(url)
            logger.debug("Mapped %s to %s", value, mapped)
            return mapped

        pair = value.split(':')
        if len(pair) != 2 or '://' in value:
            if self.strict:
                raise BadSubstitution(f"Can't understand '{value}'")
            return value

        service, port = pair
        if ELIDED.match(service):
            # output only the port
            _, published = self.host_and_port(REMOVE_ELIDED.sub('', service), port)
            mapped = str(published)
        elif ELIDED.match(port):
            # output only the host; the port is still looked up to make sure the service is up
            mapped, _ = self.host_and_port(service, REMOVE_ELIDED.sub('', port))
        else:
            host, published = self.host_and_port(service, port)
            mapped = f"{host}:{published}"

        logger.debug("Mapped %s to %s", value, mapped)
        return mapped

    def _map_url(self, url: SplitResult) -> str:
        userinfo, at, hostport = url.netloc.rpartition('@')
        service = hostport.split(':')[0] if hostport.count(':') == 1 else hostport

        port = url.port or DEFAULT_PORTS[url.scheme.lower()]
        host, published = self.host_and_port(service, port)
        return urlunsplit(url._replace(netloc=f"{userinfo}{at}{host}:{published}"))


def _parse_url(value: str) -> Optional[SplitResult]:
    """
    Parses an absolute URL with a host and a port, explicit or implied by
    its scheme. Returns None for anything else.
    """
    try:
        url = urlsplit(value)
        port = url.port
    except ValueError:
        return None
    if not url.scheme or not url.hostname:
        return None
    if port is None and url.scheme.lower() not in DEFAULT_PORTS:
        return None
    return url
