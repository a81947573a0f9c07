from pathlib import Path
from typing import Mapping, Union

import pandas as pd

from include.etl.errors import StageError
from include.logger import setup_logger

logger = setup_logger("etl.extract_local")


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Lowercase column names and replace spaces with underscores."""
    df.columns = df.columns.str.strip().str.lower().str.replace(" ", "_")
    return df


def read_raw_table(table: str, path: Union[str, Path]) -> pd.DataFrame:
    """
    Read one raw CSV as text.

    Every value stays a string (blank cells become null) so the conformance
    stages see the source representation, surrounding whitespace included.
    """
    path = Path(path)
    logger.info(f"Extracting {table} from {path}")
    try:
        df = pd.read_csv(path, dtype=str, skipinitialspace=False)
    except FileNotFoundError as e:
        logger.error(f"Source file for {table} not found: {path}")
        raise StageError(f"extract:{table}", f"Source file not found: {path}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        logger.error(f"Source file for {table} is unreadable: {e}")
        raise StageError(f"extract:{table}", f"Unreadable source file {path}: {e}") from e

    df = normalize_columns(df)
    logger.info(f"Successfully extracted {len(df)} rows from {table}")
    return df


def read_raw_tables(directory: Union[str, Path], sources: Mapping[str, str]) -> dict[str, pd.DataFrame]:
    """Read every raw table named in ``sources`` (table -> path relative to ``directory``)."""
    directory = Path(directory)
    return {table: read_raw_table(table, directory / relative) for table, relative in sources.items()}
