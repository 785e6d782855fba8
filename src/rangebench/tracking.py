from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .config import RunConfig
from .types import MetricsReport


def _flatten_dict(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flattened.update(_flatten_dict(value, prefix=full_key))
        else:
            flattened[full_key] = value
    return flattened


def report_metrics(report: MetricsReport) -> dict[str, float]:
    metrics: dict[str, float] = {
        f"{report.mode}/elapsed_s": float(report.elapsed_s),
        f"{report.mode}/peak_threads": float(report.peak_threads),
    }
    if report.qps is not None:
        metrics[f"{report.mode}/qps"] = float(report.qps)
    if report.recall is not None:
        metrics[f"{report.mode}/recall"] = float(report.recall)
    for line in report.status_lines:
        # e.g. "VmHWM:\t  123456 kB"
        key, _, rest = line.partition(":")
        parts = rest.split()
        if key.startswith("Vm") and parts and parts[0].isdigit():
            metrics[f"{report.mode}/{key}_kb"] = float(parts[0])
    return metrics


class TrackingSink:
    def log_report(self, *, report: MetricsReport) -> None:
        del report

    def finish(self) -> None:
        return


class NullTrackingSink(TrackingSink):
    pass


@dataclass(slots=True)
class WandbConfig:
    enabled: bool = False
    project: str | None = None
    entity: str | None = None
    run_name: str | None = None
    group: str | None = None
    tags: list[str] | None = None
    mode: str | None = None


class WandbTrackingSink(TrackingSink):
    def __init__(self, *, config: WandbConfig, run_config: dict[str, Any]):
        try:
            import wandb
        except Exception as exc:  # pragma: no cover - depends on env
            raise RuntimeError(
                "WandB is enabled but 'wandb' is not installed. "
                "Install with: pip install -e '.[wandb]'"
            ) from exc

        if not config.project:
            raise ValueError("WandB is enabled but project is missing")

        self._wandb = wandb
        self._run = wandb.init(
            project=config.project,
            entity=config.entity,
            name=config.run_name,
            group=config.group,
            job_type=str(run_config.get("mode", "")) or None,
            tags=config.tags,
            mode=config.mode,
            config=_flatten_dict(run_config),
        )

    def log_report(self, *, report: MetricsReport) -> None:
        metrics = report_metrics(report)
        self._wandb.log(metrics)
        for key, value in metrics.items():
            self._run.summary[key] = value

    def finish(self) -> None:
        self._run.finish()


def build_tracking_sink(config: RunConfig) -> TrackingSink:
    wandb_cfg_raw = dict(config.wandb or {})
    wandb_config = WandbConfig(
        enabled=bool(wandb_cfg_raw.get("enabled", False)),
        project=wandb_cfg_raw.get("project"),
        entity=wandb_cfg_raw.get("entity"),
        run_name=wandb_cfg_raw.get("run_name"),
        group=wandb_cfg_raw.get("group"),
        tags=list(wandb_cfg_raw.get("tags", [])) if wandb_cfg_raw.get("tags") else None,
        mode=wandb_cfg_raw.get("mode"),
    )
    if not wandb_config.enabled:
        return NullTrackingSink()
    return WandbTrackingSink(config=wandb_config, run_config=config.as_dict())


__all__ = ["NullTrackingSink", "TrackingSink", "WandbTrackingSink", "build_tracking_sink", "report_metrics"]
