"""
Structural failures of a batch run.

Per-row data problems never raise; these exceptions are reserved for stages
that cannot read their input or produce their output.
"""


class StageError(RuntimeError):
    """A single stage (``extract:<table>``, ``conform:<table>``, ``project``...) failed."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


class BatchError(RuntimeError):
    """Aggregated failure of a batch run, one entry per failed stage."""

    def __init__(self, failures: list[StageError]):
        stages = ", ".join(failure.stage for failure in failures)
        details = "; ".join(str(failure) for failure in failures)
        super().__init__(f"Batch failed in {len(failures)} stage(s) ({stages}): {details}")
        self.failures = list(failures)
