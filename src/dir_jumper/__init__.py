from __future__ import annotations

from .jumper import Jumper
from .jumper import NoMatchError
from .jumperconfig import JumperConfig
from .jumperstore import CorruptStoreError

__all__ = [
    "CorruptStoreError",
    "Jumper",
    "JumperConfig",
    "NoMatchError",
]
