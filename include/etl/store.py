import threading
from types import MappingProxyType
from typing import Mapping

import pandas as pd

from include.logger import setup_logger

logger = setup_logger("etl.store")


class LayerStore:
    """
    In-memory tables of one warehouse layer (conformed or dimensional).

    Writers build complete tables first and hand them to ``publish``, which
    swaps in a new mapping under a lock. ``snapshot`` and ``get`` hand out
    copies, so readers keep seeing the tables as they were when they read them
    and can never change a published table.
    """

    def __init__(self, layer: str):
        self.layer = layer
        self._lock = threading.Lock()
        self._tables: Mapping[str, pd.DataFrame] = MappingProxyType({})
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def publish(self, tables: Mapping[str, pd.DataFrame]) -> int:
        """
        Replace the given tables in full; tables not named keep their rows.

        Returns the new store version.
        """
        staged = {name: df.copy() for name, df in tables.items()}
        with self._lock:
            merged = dict(self._tables)
            merged.update(staged)
            self._tables = MappingProxyType(merged)
            self._version += 1
            version = self._version

        logger.info(
            f"Published {len(staged)} table(s) to {self.layer} layer (version {version}): "
            + ", ".join(f"{name}={len(df)}" for name, df in staged.items())
        )
        return version

    def snapshot(self) -> Mapping[str, pd.DataFrame]:
        """
        Read-only mapping of copies of the published tables.

        Mutating a returned frame never changes what the store holds.
        """
        with self._lock:
            tables = self._tables
        return MappingProxyType({name: df.copy() for name, df in tables.items()})

    def get(self, name: str) -> pd.DataFrame:
        with self._lock:
            tables = self._tables
        if name not in tables:
            raise KeyError(f"Table '{name}' not published in {self.layer} layer")
        return tables[name].copy()

    def table_names(self) -> list[str]:
        with self._lock:
            return sorted(self._tables)
