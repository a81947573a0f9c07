"""
Batch orchestration: raw tables -> conformed layer -> dimensional layer -> report.

Run state lives in an explicit ``RunContext`` passed in and a ``RunResult``
returned; nothing is kept in module globals. Layers are published only when
every stage succeeded, so a failed run leaves the previous snapshot intact.
"""

import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional

import pandas as pd

from include.etl.conform import DIMENSION_SOURCES, FACT_SOURCES, ConformSettings, conform
from include.etl.errors import BatchError, StageError
from include.etl.project import project
from include.etl.store import LayerStore
from include.logger import set_log_level, setup_logger
from include.validations.integrity import validate_dimensional_model
from include.validations.report import ValidationReport
from include.validations.validate_inputs import validate_raw
from include.validations.validate_outputs import validate_conformed_layer

logger = setup_logger("etl.orchestrator")

SUCCEEDED = "succeeded"
FAILED = "failed"


@dataclass(frozen=True)
class RunContext:
    batch_id: str
    settings: ConformSettings
    max_workers: int = 4
    sample_size: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Mapping[str, Any], as_of: Optional[date] = None) -> "RunContext":
        pipeline = config.get("pipeline", {})
        settings = ConformSettings(
            min_date_code=int(pipeline.get("min_date_code", 19000101)),
            max_date_code=int(pipeline.get("max_date_code", 20500101)),
            birthdate_floor=pd.Timestamp(pipeline.get("birthdate_floor", "1924-01-01")).date(),
            as_of=as_of or date.today(),
        )
        return cls(
            batch_id=uuid.uuid4().hex,
            settings=settings,
            max_workers=int(pipeline.get("max_workers", 4)),
            sample_size=int(pipeline.get("sample_size", 10)),
            log_level=str(config.get("logging", {}).get("level", "INFO")),
        )


@dataclass
class RunResult:
    context: RunContext
    status: str
    failures: list[StageError] = field(default_factory=list)
    row_counts: dict[str, int] = field(default_factory=dict)
    report: Optional[ValidationReport] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    def raise_for_status(self) -> None:
        """Raise one ``BatchError`` listing every failed stage, if the run failed."""
        if self.failures:
            raise BatchError(self.failures)


def _conform_stage(table: str, raw_tables: Mapping[str, pd.DataFrame], settings: ConformSettings) -> pd.DataFrame:
    stage = f"conform:{table}"
    if table not in raw_tables:
        raise StageError(stage, f"Raw table '{table}' was not supplied")
    try:
        validate_raw(table, raw_tables[table])
        return conform(table, raw_tables[table], settings)
    except StageError:
        raise
    except Exception as e:
        logger.error(f"Stage {stage} failed: {str(e)}", exc_info=True)
        raise StageError(stage, str(e)) from e


def conform_all(
    raw_tables: Mapping[str, pd.DataFrame],
    context: RunContext,
) -> tuple[dict[str, pd.DataFrame], list[StageError]]:
    """
    Conform every entity; dimension sources in parallel, then the fact source.

    Failures are collected, not raised, so one broken table still lets the
    others report.
    """
    conformed: dict[str, pd.DataFrame] = {}
    failures: list[StageError] = []

    def run_wave(tables: tuple[str, ...]) -> None:
        with ThreadPoolExecutor(max_workers=max(1, context.max_workers)) as pool:
            futures = {
                table: pool.submit(_conform_stage, table, raw_tables, context.settings)
                for table in tables
            }
            for table, future in futures.items():
                try:
                    conformed[table] = future.result()
                except StageError as e:
                    failures.append(e)

    run_wave(DIMENSION_SOURCES)
    if failures:
        logger.error(f"Dimension conformance failed; skipping fact conformance ({len(failures)} failures)")
        return conformed, failures

    run_wave(FACT_SOURCES)
    return conformed, failures


def run_batch(
    raw_tables: Mapping[str, pd.DataFrame],
    conformed_store: LayerStore,
    dimensional_store: LayerStore,
    context: RunContext,
) -> RunResult:
    """
    Run one full-refresh batch.

    Structural failures end the run with status ``failed`` and nothing
    published. Validation findings never fail the run; they are in
    ``RunResult.report``.
    """
    set_log_level(context.log_level)
    logger.info(f"Starting batch {context.batch_id} (as of {context.settings.as_of})")

    # --------------------------------------------------
    # 1. Conformance (dimension sources before the fact)
    # --------------------------------------------------
    conformed, failures = conform_all(raw_tables, context)
    if failures:
        for failure in failures:
            logger.error(f"✗ {failure}")
        return RunResult(context=context, status=FAILED, failures=failures)

    # --------------------------------------------------
    # 2. Dimensional projection from the staged conformed layer
    # --------------------------------------------------
    try:
        dimensional = project(conformed)
    except Exception as e:
        logger.error(f"✗ Projection failed: {str(e)}", exc_info=True)
        failure = StageError("project", str(e))
        failure.__cause__ = e
        return RunResult(context=context, status=FAILED, failures=[failure])

    # --------------------------------------------------
    # 3. Publish both layers (each swap is atomic)
    # --------------------------------------------------
    conformed_store.publish(conformed)
    dimensional_store.publish(dimensional)

    # --------------------------------------------------
    # 4. Validate the published snapshot (read-only, non-fatal)
    # --------------------------------------------------
    conformed_snapshot = conformed_store.snapshot()
    dimensional_snapshot = dimensional_store.snapshot()

    report = ValidationReport()
    report.extend(validate_conformed_layer(
        conformed_snapshot,
        context.settings.birthdate_floor,
        context.settings.as_of,
        context.sample_size,
    ))
    report.extend(validate_dimensional_model(
        conformed_snapshot, dimensional_snapshot, context.sample_size
    ).findings)

    row_counts = {
        **{f"{conformed_store.layer}.{name}": len(df) for name, df in conformed_snapshot.items()},
        **{f"{dimensional_store.layer}.{name}": len(df) for name, df in dimensional_snapshot.items()},
    }

    if report.passed:
        logger.info(f"✓ Batch {context.batch_id} completed; all validation checks passed")
    else:
        logger.warning(
            f"⚠ Batch {context.batch_id} completed with {len(report.failures)} failed validation checks"
        )

    return RunResult(context=context, status=SUCCEEDED, row_counts=row_counts, report=report)
