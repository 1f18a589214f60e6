"""
Models for containers reported by ``docker ps``.
"""
import re
from typing import Callable, List, Optional

from pydantic import BaseModel

from ..errors import ContainerParseError
from ..PARSERS.record_parser import RecordParser

# Format string for `docker ps`; one parenthesized field per Container.build argument.
PS_FORMAT = '({{.ID}}) ({{.Image}}) ({{.Size}}) ({{.Status}}) ({{.Names}}) ({{.Labels}}) ({{.Ports}})'

# Number of fields in PS_FORMAT
PS_FIELDS = PS_FORMAT.count('{{')

# Human-readable status, e.g. "Up 2 hours" or "Exited (1) 3 minutes ago"
PS_STATUS = re.compile(r'^([A-Za-z]+) ?\(?([0-9]*)\)? ?(.*)$', re.IGNORECASE)

# First "<number><unit>" in a size such as "1.2kB (virtual 7.3MB)"
PS_SIZE = re.compile(r'([0-9]*\.?[0-9]+)\s*([A-Za-z]+)')

SIZE_UNITS = {
    'b': 1,
    'kb': 1024,
    'mb': 1024 ** 2,
    'gb': 1024 ** 3,
    'tb': 1024 ** 4,
}


class Container(BaseModel):
    """
    A container as reported by ``docker ps``, with its human-readable
    size and status decoded.
    """
    id: str
    image: str
    size: int = 0
    status: str
    exitstatus: Optional[int] = None
    names: List[str] = []
    labels: List[str] = []
    ports: List[str] = []

    @classmethod
    def build(cls, id: str, image: str, size: str, status: str,
              names: str, labels: str, ports: str) -> "Container":
        """
        Builds a container from the raw text of each ``docker ps`` field.

        :raises ContainerParseError: If the size unit or the status is not recognized.
        """
        match = PS_STATUS.match(status.strip())
        if not match:
            raise ContainerParseError('status', status, 'Unrecognized status')

        keyword = match.group(1).lower()
        if keyword == 'up':
            exitstatus = None
        else:
            exitstatus = int(match.group(2)) if match.group(2) else 0

        return cls(
            id=id,
            image=image,
            size=cls._parse_size(size),
            status=keyword,
            exitstatus=exitstatus,
            names=cls._split(names),
            labels=cls._split(labels),
            ports=cls._split(ports),
        )

    @classmethod
    def from_line(cls, line: str) -> "Container":
        """
        Builds a container from one line printed with PS_FORMAT.

        :raises ContainerParseError: If the line does not hold exactly PS_FIELDS fields.
        """
        line = RecordParser.strip_ansi(line).strip()
        fields = RecordParser.parse(line)
        if len(fields) != PS_FIELDS:
            raise ContainerParseError(
                'record', line, f'Expected {PS_FIELDS} fields, found {len(fields)}'
            )
        return cls.build(*fields)

    @staticmethod
    def _parse_size(size: str) -> int:
        """
        Converts the first size in a field to bytes; later sizes such as
        "(virtual 7.3MB)" are ignored.
        """
        match = PS_SIZE.search(size)
        if not match:
            raise ContainerParseError('size', size, 'Unrecognized size')
        scalar, unit = match.groups()
        multiplier = SIZE_UNITS.get(unit.lower())
        if multiplier is None:
            raise ContainerParseError('size', size, f"Unrecognized unit '{unit}'")
        return int(float(scalar) * multiplier)

    @staticmethod
    def _split(value: str) -> List[str]:
        if not value.strip():
            return []
        return [item.strip() for item in value.split(',')]

    @property
    def name(self) -> Optional[str]:
        return self.primary_name()

    def primary_name(self) -> Optional[str]:
        """First of the container's names, or None."""
        return self.names[0] if self.names else None

    def is_running(self) -> bool:
        return self.status == 'up'


class ContainerCollection(list):
    """
    Containers in the order docker-compose listed them.

    Example::

        who_is_up = containers.where(lambda c: c.is_running())
    """
    def where(self, predicate: Callable[[Container], bool]) -> "ContainerCollection":
        """
        Collects the containers for which predicate is true.

        :param predicate: Test applied to each container.
        :return: A new collection, in the same order.
        """
        return ContainerCollection(c for c in self if predicate(c))

    def running(self) -> "ContainerCollection":
        return self.where(lambda c: c.is_running())

    def total_size(self) -> int:
        """Bytes used by all containers."""
        return sum(c.size for c in self)
