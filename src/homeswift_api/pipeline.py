"""Pipeline class — ordered, validated container of Stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from homeswift_api.exceptions import PipelineConfigurationError
from homeswift_api.stage import Stage, StageCategory

if TYPE_CHECKING:
    from homeswift_api.errors import ErrorHandler


@dataclass(frozen=True)
class ResolvedPipeline:
    """Immutable, pre-computed execution plan."""

    stages: tuple[Stage, ...]
    error_handler: ErrorHandler | None = None
    debug: bool = False

    @property
    def categories(self) -> tuple[StageCategory, ...]:
        return tuple(stage.category for stage in self.stages)


class Pipeline:
    """Ordered container of Stage instances.

    Stages are sorted by category order on ``resolve()``; registration
    order is preserved within a category. Resolution fails when a
    singleton category repeats or a stage's prerequisites are missing.
    """

    def __init__(
        self,
        *stages: Stage | Pipeline,
        error_handler: ErrorHandler | None = None,
        route_level: bool = False,
        debug: bool = False,
    ) -> None:
        self._items: list[Stage | Pipeline] = list(stages)
        self._error_handler = error_handler
        self._route_level = route_level
        self._debug = debug
        self._resolved: ResolvedPipeline | None = None

    def add(self, *stages: Stage | Pipeline) -> Pipeline:
        self._items.extend(stages)
        self._resolved = None
        return self

    def set_error_handler(self, handler: ErrorHandler) -> Pipeline:
        if self._error_handler is not None:
            raise PipelineConfigurationError("An error handler is already registered")
        self._error_handler = handler
        self._resolved = None
        return self

    def resolve(self) -> ResolvedPipeline:
        if self._resolved is not None:
            return self._resolved

        flat: list[Stage] = []
        self._flatten(self._items, flat)

        sorted_stages = sorted(flat, key=lambda s: s.category.order)
        self._validate(sorted_stages)

        self._resolved = ResolvedPipeline(
            stages=tuple(sorted_stages),
            error_handler=self._error_handler,
            debug=self._debug,
        )
        return self._resolved

    def _validate(self, stages: list[Stage]) -> None:
        present = {stage.category for stage in stages}

        seen: set[StageCategory] = set()
        for stage in stages:
            category = stage.category
            if category.singleton and category in seen:
                raise PipelineConfigurationError(
                    f"Only one {category.value} stage may be registered"
                )
            seen.add(category)

            if category.route_level != self._route_level:
                scope = "route guard" if self._route_level else "request pipeline"
                raise PipelineConfigurationError(
                    f"{stage.name} ({category.value}) cannot run in a {scope}"
                )

            missing = [req for req in stage.requires if req not in present]
            if missing:
                names = ", ".join(req.value for req in missing)
                raise PipelineConfigurationError(
                    f"{stage.name} requires a {names} stage"
                )

    @staticmethod
    def _flatten(items: list[Stage | Pipeline], out: list[Stage]) -> None:
        for item in items:
            if isinstance(item, Pipeline):
                Pipeline._flatten(item._items, out)
            elif isinstance(item, Stage):
                out.append(item)
            else:
                raise PipelineConfigurationError(f"{item!r} is not a Stage")
