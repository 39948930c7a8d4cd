"""CPU limits of a container. Zero on any field means 'no limit'."""
from dataclasses import dataclass
from typing import Optional, Union

CPU_CORES_MAXIMUM = 8192
CPU_LIMIT_MAXIMUM = 8192
CPU_UNITS_MINIMUM = 8
CPU_UNITS_MAXIMUM = 100000


@dataclass
class LxcCpu:
    cores: Optional[int] = None
    limit: Optional[Union[int, float]] = None
    units: Optional[int] = None


def cpu_limit_value(limit: Union[int, float]) -> Union[int, float]:
    """Whole limits go out as ints, fractional ones unchanged."""
    if float(limit).is_integer():
        return int(limit)
    return limit
