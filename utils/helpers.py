"""
Helper utility functions for the Volume Orchestrator.
"""

import json
import uuid
from decimal import Decimal, ROUND_DOWN
from typing import Any, Dict, Union


def load_json_config(file_path: str) -> Dict[str, Any]:
    """
    Load JSON configuration file.

    Args:
        file_path: Path to JSON file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file is invalid JSON
    """
    try:
        with open(file_path, 'r') as f:
            return json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}") from e


def generate_signature(sequence: int) -> str:
    """
    Generate a unique paper trade signature.

    Args:
        sequence: Sequence index of the trade

    Returns:
        Signature string
    """
    return f"paper_{sequence}_{uuid.uuid4().hex[:16]}"


def to_atomic(amount: Union[str, float, Decimal], decimals: int) -> int:
    """
    Convert a display amount to atomic units, rounding down.

    Args:
        amount: Amount in whole units (e.g. "0.05")
        decimals: Decimal places of the asset

    Returns:
        Amount in atomic units
    """
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_atomic(amount: int, decimals: int) -> Decimal:
    """
    Convert atomic units to a display amount.

    Args:
        amount: Amount in atomic units
        decimals: Decimal places of the asset

    Returns:
        Amount in whole units
    """
    return Decimal(amount) / (Decimal(10) ** decimals)


def format_amount(amount: int, decimals: int, places: int = 6) -> str:
    """Atomic amount formatted in whole units."""
    return f"{from_atomic(amount, decimals):.{places}f}"


def short_address(address: str) -> str:
    """First six and last four characters of an address."""
    return f"{address[:6]}...{address[-4:]}" if len(address) > 12 else address
