"""Per-task logging context carried in contextvars."""

from contextvars import ContextVar

# Each asyncio task gets a copy, so worker_id/source_file never leak between workers
_FIELDS: dict[str, ContextVar[str]] = {
    name: ContextVar(f"log_{name}", default="")
    for name in ("run_id", "stage", "worker_id", "domain", "source_file")
}


def set_log_context(
    run_id: str | None = None,
    stage: str | None = None,
    worker_id: str | None = None,
    domain: str | None = None,
    source_file: str | None = None,
) -> None:
    """Set the given fields; None leaves a field unchanged."""
    for name, value in (
        ("run_id", run_id),
        ("stage", stage),
        ("worker_id", worker_id),
        ("domain", domain),
        ("source_file", source_file),
    ):
        if value is not None:
            _FIELDS[name].set(value)


def get_log_context() -> dict[str, str]:
    return {name: var.get() for name, var in _FIELDS.items()}


def clear_log_context() -> None:
    for var in _FIELDS.values():
        var.set("")
