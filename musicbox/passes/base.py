"""Pass contract and the sequential composer.

A pass is configured once and then run on data:

    pass_ = MergeKeyPass(max_interval=35)
    keys = pass_.run(keys)
    pass_.get_statistics()   # {"dropped_same_key_count": 3}

Every pass declares a ``PassConfig`` subclass as ``config_class``.  The
constructor accepts a config instance, a mapping, or keyword arguments;
validation happens immediately and any failure surfaces as
``ConfigurationError`` before data is touched.  ``run`` may mutate and
return its input: callers must treat the input as consumed.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from musicbox.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]
"""Called with ``(percent, description)``; percent is in ``[0, 100]``."""

Statistics = dict[str, Any]


class PassConfig(BaseModel):
    """Base for immutable pass configuration records."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)


def _format_validation_error(exc: ValidationError) -> list[str]:
    details = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "config"
        details.append(f"{location}: {err['msg']}")
    return details


class Pass:
    """One configured transformation step.

    Subclasses set ``name``, ``description`` and ``config_class`` and
    implement ``run``.  Statistics are reset at the start of every run and
    stay readable until the next one.
    """

    name: ClassVar[str] = "Pass"
    description: ClassVar[str] = ""
    config_class: ClassVar[type[PassConfig]] = PassConfig

    def __init__(self, config: PassConfig | Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self.config = self._build_config(config, kwargs)
        self._statistics: Statistics = {}

    @classmethod
    def _build_config(cls, config: PassConfig | Mapping[str, Any] | None, overrides: Mapping[str, Any]) -> Any:
        if isinstance(config, cls.config_class) and not overrides:
            return config
        data: dict[str, Any] = {}
        if isinstance(config, PassConfig):
            data.update(dict(config))
        elif config is not None:
            data.update(config)
        data.update(overrides)
        try:
            return cls.config_class.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid configuration for {cls.name}",
                details=_format_validation_error(exc),
            ) from exc

    def run(self, data: Any, progress_callback: Optional[ProgressCallback] = None) -> Any:
        raise NotImplementedError

    def get_statistics(self) -> Statistics:
        return dict(self._statistics)

    def _report(self, progress_callback: Optional[ProgressCallback], percent: float) -> None:
        if progress_callback is not None:
            progress_callback(percent, self.description)

    def _log_statistics(self) -> None:
        if self._statistics:
            logger.debug("%s statistics: %s", self.name, self._statistics)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config!r})"


class NopPass(Pass):
    """Returns its input unchanged."""

    name = "NopPass"
    description = "No-operation"

    def run(self, data: Any, progress_callback: Optional[ProgressCallback] = None) -> Any:
        return data


class SequentialPassConfig(PassConfig):
    passes: tuple[Pass, ...]


class SequentialPass(Pass):
    """Runs ``passes`` in order, feeding each output into the next pass.

    Progress is reported once per sub-pass as ``(i / total) * 100`` with
    that pass's description.  Statistics are collected per pass ``name``;
    two passes with the same name overwrite each other.  Errors from
    sub-passes propagate unchanged.
    """

    name = "SequentialPass"
    description = "Run passes sequentially"
    config_class = SequentialPassConfig

    def __init__(
        self,
        config: PassConfig | Mapping[str, Any] | Sequence[Pass] | None = None,
        **kwargs: Any,
    ) -> None:
        if isinstance(config, (list, tuple)):
            config = {"passes": tuple(config)}
        super().__init__(config, **kwargs)

    @property
    def passes(self) -> tuple[Pass, ...]:
        return self.config.passes

    def run(self, data: Any, progress_callback: Optional[ProgressCallback] = None) -> Any:
        self._statistics = {}
        total = len(self.passes)
        current = data
        for i, sub_pass in enumerate(self.passes):
            if progress_callback is not None:
                progress_callback(i / total * 100, sub_pass.description)
            logger.debug("Running %s (%d/%d)", sub_pass.name, i + 1, total)
            current = sub_pass.run(current)
            self._statistics[sub_pass.name] = sub_pass.get_statistics()
        return current
