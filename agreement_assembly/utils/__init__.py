from .logger import setup_logging
from .hashing import sha256_hash, reference_number
from .formatting import to_number, format_currency

__all__ = ["setup_logging", "sha256_hash", "reference_number", "to_number", "format_currency"]
