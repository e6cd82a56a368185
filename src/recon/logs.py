"""
Stage-aware logging helpers.

Records produced through a StageLogger carry ``stage`` and ``page`` attributes
so handlers can filter or format on them. Adapters are created per run and
handed to each component rather than looked up globally.
"""

import logging
from typing import Any, MutableMapping, Optional, Tuple


class StageLogger(logging.LoggerAdapter):
    """LoggerAdapter that tags records with a pipeline stage and page index."""

    def __init__(
        self,
        logger: logging.Logger,
        stage: str = "pipeline",
        page: Optional[int] = None
    ):
        super().__init__(logger, {"stage": stage, "page": page})

    @property
    def stage(self) -> str:
        return self.extra["stage"]

    def for_stage(self, stage: str) -> "StageLogger":
        return StageLogger(self.logger, stage=stage)

    def for_page(self, page: int) -> "StageLogger":
        return StageLogger(self.logger, stage=self.extra["stage"], page=page)

    def process(
        self,
        msg: Any,
        kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra

        if extra.get("page") is not None:
            prefix = f"[{extra['stage']} page={extra['page']}]"
        else:
            prefix = f"[{extra['stage']}]"
        return f"{prefix} {msg}", kwargs
