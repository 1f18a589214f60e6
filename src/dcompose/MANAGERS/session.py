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
Session bound to one docker-compose project directory.
"""
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import yaml

from ..errors import CommandError
from ..MODELS.container import PS_FORMAT, Container, ContainerCollection
from ..PARSERS.record_parser import RecordParser
from ..RUNNERS.option_encoder import OptionEncoder
from ..RUNNERS.process_runner import ProcessRunner

logger = logging.getLogger(__name__)


def opts(**options: Tuple[Any, Any]) -> Dict[str, Any]:
    """
    Keeps only the options whose value differs from its default.

    Each keyword maps to a ``(value, default)`` pair, so that docker-compose
    is never handed a flag it would assume anyway.
    """
    return {name: value for name, (value, default) in options.items() if value != default}


class Session:
    """
    Runs docker-compose commands for a project.

    A session is bound to a directory and (optionally) to one or more
    compose files. Each method takes keyword options equivalent to the CLI
    flags of the matching docker-compose command; only a subset of flags is
    exposed, sometimes under a clearer name (``-d`` is always ``detached``).
    """
    def __init__(self,
                 runner: Optional[ProcessRunner] = None,
                 dir: Optional[str] = None,
                 file: Union[str, Sequence[str], None] = None,
                 project: Optional[str] = None,
                 interactive: bool = False,
                 executable: str = "docker-compose",
                 docker: str = "docker"):
        """
        Initializes the session.

        :param runner: Runs commands; a fresh ProcessRunner by default.
        :param dir: Directory to run docker-compose in. Defaults to the current directory.
        :param file: Compose file, or list of files where later files override earlier ones.
        :param project: Project name passed to docker-compose.
        :param interactive: Whether lifecycle commands (up, logs, run...) echo their
            output and read our stdin. Queries never do.
        :param executable: The docker-compose program.
        :param docker: The docker program, used to inspect containers.
        """
        self.runner = runner or ProcessRunner()
        self.dir = dir or os.getcwd()
        self.file = file
        self.project = project
        self.interactive = interactive
        self.executable = executable
        self.docker = docker
        self.encoder = OptionEncoder()

    def project_args(self) -> List[str]:
        """
        Flags that select the compose files and project; they precede the
        subcommand, one ``--file`` per file in override order.
        """
        if self.file is None:
            files = []
        elif isinstance(self.file, str):
            files = [self.file]
        else:
            files = list(self.file)

        args = [f"--file={f}" for f in files]
        if self.project:
            args.append(f"--project={self.project}")
        return args

    def execute(self, *args: Any, interactive: Optional[bool] = None) -> str:
        """
        Runs docker-compose without checking that the arguments make sense.

        :param args: Subcommand followed by option mappings, lists of words and words.
        :param interactive: Overrides the session default.
        :return: The command's stdout.
        :raises CommandError: If docker-compose exits with a nonzero status.
        """
        if interactive is None:
            interactive = self.interactive

        argv = [self.executable] + self.project_args() + self.encoder.command(*args)
        result = self.runner.run(argv, interactive=interactive, cwd=self.dir)
        if not result.success:
            raise CommandError(str(args[0]) if args else self.executable,
                               result.status, result.stdout + result.stderr)
        return result.output()

    def ps(self, *services: str) -> ContainerCollection:
        """
        Lists the project's containers, optionally limited to some services.

        :param services: Service names from the compose file.
        :return: Containers in the order docker-compose listed them.
        """
        output = self.execute('ps', {'q': True}, list(services), interactive=False)
        ids = [RecordParser.strip_ansi(line).strip() for line in output.splitlines()]

        containers = ContainerCollection()
        for id in ids:
            if not id:
                continue
            container = self.inspect(id)
            if container is not None:
                containers.append(container)
        return containers

    def inspect(self, id: str) -> Optional[Container]:
        """
        Describes a single container with ``docker ps``.

        :param id: Container ID.
        :return: The container, or None if docker no longer knows it.
        """
        argv = [self.docker, 'ps'] + self.encoder.encode({
            'a': True,
            'f': f"id={id}",
            'no_trunc': True,
            'format': PS_FORMAT,
        })
        result = self.runner.run(argv, interactive=False, cwd=self.dir)
        if not result.success:
            raise CommandError('docker ps', result.status, result.stdout + result.stderr)

        lines = [line for line in result.output().splitlines() if line.strip()]
        if not lines:
            logger.debug("Container %s disappeared before it could be inspected", id)
            return None
        return Container.from_line(lines[0])

    def port(self, service: str, port: Union[str, int],
             protocol: str = 'tcp', index: int = 1) -> Optional[str]:
        """
        Finds the host address that a service port has been published to.

        :param service: Service name from the compose file.
        :param port: Container port.
        :param protocol: 'tcp' or 'udp'.
        :param index: Which container, if the service is scaled.
        :return: "ip:port", or None if the service is down or does not publish the port.
        """
        o = opts(protocol=(protocol, 'tcp'), index=(index, 1))
        output = self.execute('port', o, service, port, interactive=False)
        address = RecordParser.strip_ansi(output).strip()
        return address or None

    def up(self, *services: str,
           abort_on_container_exit: bool = False,
           detached: bool = False,
           timeout: int = 10,
           build: bool = False,
           exit_code_from: Optional[str] = None,
           no_build: bool = False,
           no_deps: bool = False,
           no_start: bool = False) -> bool:
        """
        Idempotently creates and starts services.

        :param services: Services to start; all of them if none are given.
        :param detached: Start in the background instead of following logs.
        :param timeout: Seconds to wait for containers to stop when recreating.
        :param build: Build images before starting.
        :param no_build: Never build missing images.
        :param no_deps: Do not start linked services.
        """
        o = opts(abort_on_container_exit=(abort_on_container_exit, False),
                 d=(detached, False),
                 timeout=(timeout, 10),
                 build=(build, False),
                 exit_code_from=(exit_code_from, None),
                 no_build=(no_build, False),
                 no_deps=(no_deps, False),
                 no_start=(no_start, False))
        self.execute('up', o, list(services))
        return True

    def down(self, remove_volumes: bool = False) -> bool:
        """Stops and removes the project's containers and networks."""
        self.execute('down', opts(v=(bool(remove_volumes), False)))
        return True

    def stop(self, *services: str, timeout: int = 10) -> bool:
        self.execute('stop', opts(timeout=(timeout, 10)), list(services))
        return True

    def restart(self, *services: str, timeout: int = 10) -> bool:
        self.execute('restart', opts(timeout=(timeout, 10)), list(services))
        return True

    def kill(self, *services: str, signal: str = 'KILL') -> bool:
        """
        Sends a signal to running containers.

        :param signal: Signal name, e.g. 'TERM'.
        """
        self.execute('kill', opts(s=(signal, 'KILL')), list(services))
        return True

    def pause(self, *services: str) -> bool:
        self.execute('pause', list(services))
        return True

    def unpause(self, *services: str) -> bool:
        self.execute('unpause', list(services))
        return True

    def rm(self, *services: str, force: bool = False, volumes: bool = False) -> bool:
        """
        Removes stopped containers.

        :param force: Do not ask for confirmation.
        :param volumes: Also remove anonymous volumes.
        """
        self.execute('rm', opts(f=(force, False), v=(volumes, False)), list(services))
        return True

    def scale(self, container_count: Dict[str, int], timeout: int = 10) -> bool:
        """
        Sets the number of containers per service.

        :param container_count: Desired count for each service, e.g. {"web": 3}.
        """
        args = [f"{service}={count}" for service, count in container_count.items()]
        self.execute('scale', opts(timeout=(timeout, 10)), args)
        return True

    def run(self, service: str, *cmd: str,
            detached: bool = False,
            no_deps: bool = False,
            volumes: Iterable[str] = (),
            env: Iterable[str] = (),
            rm: bool = False,
            no_tty: bool = False,
            user: Optional[str] = None,
            service_ports: bool = False) -> str:
        """
        Runs a one-off command in a new container for a service.

        :param service: Service name.
        :param cmd: Command and arguments; the image default if empty.
        :param volumes: Bind mounts, each passed as its own -v.
        :param env: "NAME=value" entries, each passed as its own -e.
        :param rm: Remove the container when the command exits.
        :param no_tty: Do not allocate a pseudo-TTY.
        :param user: Run as this user.
        :param service_ports: Publish the service's ports to the host.
        :return: The command's output.
        """
        o = opts(d=(detached, False),
                 no_deps=(no_deps, False),
                 rm=(rm, False),
                 T=(no_tty, False),
                 u=(user, None),
                 service_ports=(service_ports, False))
        env_params = [{'e': e} for e in env]
        volume_params = [{'v': v} for v in volumes]
        return self.execute('run', o, env_params, volume_params, service, list(cmd))

    def build(self, *services: str,
              force_rm: bool = False,
              no_cache: bool = False,
              pull: bool = False) -> bool:
        o = opts(force_rm=(force_rm, False),
                 no_cache=(no_cache, False),
                 pull=(pull, False))
        self.execute('build', o, list(services))
        return True

    def logs(self, *services: str) -> bool:
        """Shows the output of services."""
        self.execute('logs', list(services))
        return True

    def version(self, short: bool = False) -> Union[str, Dict[str, str]]:
        """
        Reports the installed docker-compose version.

        :param short: Return only the version number.
        :return: The version string, or component names mapped to their versions.
        """
        output = self.execute('version', opts(short=(short, False)), interactive=False)
        if short:
            return output.strip()

        versions = {}
        for line in output.splitlines():
            if not line.strip():
                continue
            key, _, value = line.partition(':')
            versions[key.strip()] = value.strip()
        return versions

    def config(self, *args: Any) -> Dict[str, Any]:
        """
        Returns the project configuration as docker-compose resolved it.
        """
        output = self.execute('config', *args, interactive=False)
        return yaml.safe_load(output) or {}
