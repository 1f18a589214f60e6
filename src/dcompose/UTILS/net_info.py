"""
Utilities for guessing which addresses the local host and the docker host
can reach each other on.
"""
import logging
import os
import socket
from typing import List, Optional
from urllib.parse import urlsplit

import psutil

logger = logging.getLogger(__name__)

# Port assumed when DOCKER_HOST names no port, or is not a network address.
DEFAULT_DOCKER_PORT = 2376


class NetInfo:
    """
    Gathers information about the relationship between this host and the
    docker host, then guesses their mutually routable IP addresses.

    The guess is right for the common cases:
      - DOCKER_HOST is unset (daemon on this machine)
      - DOCKER_HOST points to a unix socket (daemon on this machine)
      - DOCKER_HOST points to a tcp, http or https address
    """
    def __init__(self, docker_host: Optional[str] = None, my_ips: Optional[List[str]] = None):
        """
        :param docker_host: URL of the docker daemon. Defaults to $DOCKER_HOST.
        :param my_ips: IPv4 addresses of this host. Defaults to every local interface.
        """
        docker_host = docker_host or os.environ.get('DOCKER_HOST') or 'unix:///var/run/docker.sock'
        self.docker_url = urlsplit(docker_host)
        self.my_ips = my_ips if my_ips is not None else self.ipv4_interfaces()

    @staticmethod
    def ipv4_interfaces() -> List[str]:
        """
        Lists the IPv4 addresses of the local host's network interfaces.
        """
        ips = []
        for addresses in psutil.net_if_addrs().values():
            for address in addresses:
                if address.family == socket.AF_INET:
                    ips.append(address.address)
        return ips

    def host_routable_ip(self, target_ip: Optional[str] = None) -> str:
        """
        Picks the local address most likely to share a route with target_ip.

        This compares the addresses as text and prefers the longest common
        leading run of characters, which approximates a subnet match.

        :param target_ip: IPv4 address to reach. Defaults to the docker host.
        :return: The best local address, or "" if none shares a prefix.
        """
        if target_ip is None:
            target_ip = self.docker_routable_ip() or ''

        best_match = ''
        best_prefix = 0
        for my_ip in self.my_ips:
            prefix = 0
            for mine, theirs in zip(my_ip, target_ip):
                if mine != theirs:
                    break
                prefix += 1
            if prefix > best_prefix:
                best_match = my_ip
                best_prefix = prefix
        return best_match

    def docker_routable_ip(self) -> Optional[str]:
        """
        Resolves the IPv4 address of the docker host named by docker_url.

        For unix sockets and other local transports, docker ports are assumed
        to be published on localhost.

        :return: The address, or None if the name does not resolve to IPv4.
        """
        if self.docker_url.scheme in ('tcp', 'http', 'https'):
            docker_dns = self.docker_url.hostname
            docker_port = self.docker_url.port or DEFAULT_DOCKER_PORT
        else:
            docker_dns = 'localhost'
            docker_port = DEFAULT_DOCKER_PORT

        try:
            addresses = socket.getaddrinfo(docker_dns, docker_port,
                                           socket.AF_INET, socket.SOCK_STREAM)
        except socket.gaierror as e:
            logger.debug("Cannot resolve docker host %s: %s", docker_dns, e)
            return None
        if not addresses:
            return None
        return addresses[0][4][0]
