"""
History providers, one per on-disk format.
"""

from shellsense.history.providers.bash import BashHistoryProvider
from shellsense.history.providers.fish import FishHistoryProvider
from shellsense.history.providers.owned import OwnedHistoryProvider
from shellsense.history.providers.zsh import ZshHistoryProvider

# Shell family -> provider class for that shell's native log
SHELL_PROVIDERS = {
    "bash": BashHistoryProvider,
    "zsh": ZshHistoryProvider,
    "fish": FishHistoryProvider,
}

__all__ = [
    "BashHistoryProvider",
    "FishHistoryProvider",
    "OwnedHistoryProvider",
    "SHELL_PROVIDERS",
    "ZshHistoryProvider",
]
