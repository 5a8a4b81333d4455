from enum import Enum
from typing import Union

import pint
import pint_pandas

ureg = pint.UnitRegistry()
ureg.define("thousand_cubic_feet = 1000 * foot ** 3 = MCF")
ureg.define("million_cubic_feet = 1000000 * foot ** 3 = MMCF")
ureg.define("billion_cubic_feet = 1000000000 * foot ** 3 = BCF")
pint_pandas.PintType.ureg = ureg

class VolumeUnit(Enum):
    """Gas volume units used for readings and segment capacities."""
    MCF = 'MCF'
    MMCF = 'MMCF'
    BCF = 'BCF'
    CUBIC_FOOT = 'cf'
    CUBIC_METER = 'm3'

    @property
    def pint_name(self) -> str:
        """Name of the unit in the registry"""
        return _PINT_NAMES[self]

    @staticmethod
    def convert(value: float, from_unit: Union['VolumeUnit', str],
                to_unit: Union['VolumeUnit', str]) -> float:
        """Convert a volume between units."""
        if isinstance(from_unit, str):
            from_unit = VolumeUnit(from_unit)
        if isinstance(to_unit, str):
            to_unit = VolumeUnit(to_unit)

        if from_unit == to_unit or value == 0:
            return value

        quantity = ureg.Quantity(value, from_unit.pint_name)
        return float(quantity.to(to_unit.pint_name).magnitude)

_PINT_NAMES = {
    VolumeUnit.MCF: 'thousand_cubic_feet',
    VolumeUnit.MMCF: 'million_cubic_feet',
    VolumeUnit.BCF: 'billion_cubic_feet',
    VolumeUnit.CUBIC_FOOT: 'foot ** 3',
    VolumeUnit.CUBIC_METER: 'meter ** 3',
}
