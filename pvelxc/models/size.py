"""Mount sizes in kibibytes and their wire renderings."""
import re

MEBIBYTE = 1024
GIBIBYTE = 1024 * MEBIBYTE
TEBIBYTE = 1024 * GIBIBYTE

MOUNT_SIZE_MINIMUM = GIBIBYTE // 8  # 131072 KiB

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)([KMGT]?)$")
_UNITS = {"K": 1, "M": MEBIBYTE, "G": GIBIBYTE, "T": TEBIBYTE}


def render_size(kibibytes: int) -> str:
    """Render with the largest unit that divides the size exactly.

    >>> render_size(1048576)
    '1G'
    >>> render_size(1536)
    '1536K'
    """
    if kibibytes % TEBIBYTE == 0:
        return f"{kibibytes // TEBIBYTE}T"
    if kibibytes % GIBIBYTE == 0:
        return f"{kibibytes // GIBIBYTE}G"
    if kibibytes % MEBIBYTE == 0:
        return f"{kibibytes // MEBIBYTE}M"
    return f"{kibibytes}K"


def parse_size(raw: str) -> int:
    """Parse '8G', '512M', '0.5T' or a bare GiB figure into kibibytes."""
    match = _SIZE_PATTERN.match(raw.strip())
    if not match:
        raise ValueError(f"invalid size: {raw!r}")
    number, unit = match.groups()
    multiplier = _UNITS[unit or "G"]
    if "." in number:
        return int(float(number) * multiplier)
    return int(number) * multiplier


def trimmed_decimal(value: float, max_decimals: int) -> str:
    """Fixed-point rendering with trailing zeros and dot removed."""
    text = f"{value:.{max_decimals}f}".rstrip("0")
    if text.endswith("."):
        return text[:-1]
    return text


def approximate_gibibytes(kibibytes: int) -> str:
    """Size in GiB floored to three decimals, e.g. 917504 -> '0.875'.

    This is lossy: 131073 KiB renders the same as 131072 KiB.
    """
    thousandths = kibibytes * 1000 // GIBIBYTE
    return trimmed_decimal(thousandths / 1000, 3)


def boot_create_size(kibibytes: int) -> str:
    """Size token for a new root volume (implicit GiB)."""
    if kibibytes < GIBIBYTE:
        return approximate_gibibytes(kibibytes)
    return str(kibibytes // GIBIBYTE)


def data_create_size(kibibytes: int) -> str:
    """Size token for a new data volume (implicit GiB)."""
    if kibibytes < GIBIBYTE:
        return "0.001"
    return str(kibibytes // GIBIBYTE)
