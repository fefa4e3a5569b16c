"""
Wallet list and allocation table loading.

Only public addresses and signer references are read here. Key material is
owned by the external signer and never passes through the orchestrator.
"""

import os
from decimal import InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

from models.wallet import WalletConfig
from utils.helpers import load_json_config, to_atomic
from utils.logger import get_logger

logger = get_logger(__name__)


def load_wallets_from_env() -> List[WalletConfig]:
    """
    Load wallets from environment variables.

    Format: WALLET_<ID>_ADDRESS, WALLET_<ID>_NAME, WALLET_<ID>_ENABLED,
    WALLET_<ID>_SIGNER.

    Returns:
        Wallet configurations sorted by ID
    """
    wallet_ids = set()
    for key in os.environ.keys():
        if key.startswith('WALLET_') and key.endswith('_ADDRESS'):
            wallet_ids.add(key[len('WALLET_'):-len('_ADDRESS')])

    wallets = []
    for wallet_id in sorted(wallet_ids, key=lambda w: (len(w), w)):
        address = os.environ.get(f'WALLET_{wallet_id}_ADDRESS', '').strip()
        if not address:
            logger.warning("Wallet address empty in environment", wallet_id=wallet_id)
            continue
        wallets.append(WalletConfig(
            address=address,
            name=os.environ.get(f'WALLET_{wallet_id}_NAME', f'Wallet {wallet_id}'),
            signer_ref=os.environ.get(f'WALLET_{wallet_id}_SIGNER'),
            enabled=os.environ.get(f'WALLET_{wallet_id}_ENABLED', 'true').lower() == 'true',
        ))

    logger.info("Loaded wallets from environment", count=len(wallets))
    return wallets


def load_wallets_from_file(path: str) -> List[WalletConfig]:
    """
    Load wallets from a JSON file.

    Accepts ``{"wallets": [...]}`` or a bare list; entries are either
    address strings or objects with ``address``, ``name``, ``enabled`` and
    ``signer_ref``.
    """
    data = load_json_config(path)
    entries = data.get('wallets', []) if isinstance(data, dict) else data

    wallets = []
    for i, entry in enumerate(entries, start=1):
        if isinstance(entry, str):
            wallets.append(WalletConfig(address=entry, name=f'Wallet {i}'))
        elif isinstance(entry, dict) and entry.get('address'):
            wallets.append(WalletConfig(
                address=entry['address'],
                name=entry.get('name', f'Wallet {i}'),
                signer_ref=entry.get('signer_ref'),
                enabled=entry.get('enabled', True),
            ))
        else:
            logger.warning("Skipping malformed wallet entry", position=i)

    logger.info("Loaded wallets from file", path=path, count=len(wallets))
    return wallets


def load_wallets(path: Optional[str] = None) -> List[WalletConfig]:
    """Wallets from ``path`` when it exists, otherwise from the environment."""
    if path and Path(path).exists():
        return load_wallets_from_file(path)
    if path:
        logger.warning("Wallet file not found, falling back to environment", path=path)
    return load_wallets_from_env()


def load_allocations(path: Optional[str], decimals: int) -> Dict[str, int]:
    """
    Load the per-wallet buy allocation table.

    Keys are wallet addresses or ``walletN`` (1-based position); values are
    whole quote units. A missing file yields an empty table.

    Returns:
        Mapping of key to amount in atomic units
    """
    if not path:
        return {}
    if not Path(path).exists():
        logger.warning("Allocation file not found", path=path)
        return {}

    raw = load_json_config(path)
    if not isinstance(raw, dict):
        logger.error("Allocation file must hold a JSON object", path=path)
        return {}

    allocations = {}
    for key, value in raw.items():
        try:
            amount = to_atomic(value, decimals)
        except (InvalidOperation, TypeError, ValueError):
            logger.warning("Dropping unparseable allocation", key=key, value=value)
            continue
        if amount <= 0:
            logger.warning("Dropping non-positive allocation", key=key, value=value)
            continue
        allocations[key] = amount

    logger.info("Loaded allocation table", path=path, entries=len(allocations))
    return allocations
