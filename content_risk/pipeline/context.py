from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..models.config import EngineConfig
from ..models.results import TrackerEntry
from ..modules.tracker_audit import load_tracker_directory
from ..utils.domains import DEFAULT_TABLES, ReferenceTables
from ..utils.http import HttpClient


@dataclass
class AnalysisContext:
    config: EngineConfig
    tables: ReferenceTables = DEFAULT_TABLES
    trackers: tuple[TrackerEntry, ...] = field(default_factory=tuple)
    http_client: Optional[HttpClient] = None

    @classmethod
    def build(cls, config: EngineConfig, http_client: Optional[HttpClient] = None) -> "AnalysisContext":
        return cls(
            config=config,
            tables=DEFAULT_TABLES,
            trackers=load_tracker_directory(config.tracker_list_path),
            http_client=http_client,
        )
