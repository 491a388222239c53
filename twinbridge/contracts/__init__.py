"""Contract ABIs shipped with twinbridge."""

from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List
import json

BRIDGE_ABI_FILE = "bridge_abi.json"
ERC20_ABI_FILE = "erc20_abi.json"
TWIN_ADAPTER_ABI_FILE = "twin_adapter_abi.json"


@lru_cache(maxsize=None)
def _read_abi(filename: str) -> str:
    with resources.files(__package__).joinpath(filename).open("r", encoding="utf-8") as fh:
        return fh.read()


def load_contract_abi(filename: str) -> List[Dict[str, Any]]:
    """Load an ABI JSON file from the contracts package."""
    return json.loads(_read_abi(filename))


__all__ = ["BRIDGE_ABI_FILE", "ERC20_ABI_FILE", "TWIN_ADAPTER_ABI_FILE", "load_contract_abi"]
