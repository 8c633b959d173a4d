"""Event files: time series driving boundary conditions and sources.

An event file is a time-ordered table of values, one column per patch
(patch events) or per source point (source events)::

    time,top,inlet
    0,1e-6,0.0
    3600,5e-6,2e-6
    7200,0.0,0.0

Event files are registered by field name in an
:class:`EventFileRegistry` scoped to one simulation run.  Boundary
conditions and source terms keep the returned key, not the event file.

Classes
-------
EventFile
    Time series with a declared interpolation policy.
PatchEventFile
    Event file whose columns are boundary patches.
SourceEventFile
    Event file whose columns are point sources.
EventFileRegistry
    Append-only map from field name to event files.
EventChannel
    Registry bound to one field name.

Functions
---------
set_event_file_registry
    Bind a registry to a field name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Sequence

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.errors import ConfigurationError, MissingInputError

logger = logging.getLogger(__name__)

INTERPOLATIONS = ("linear", "step")
BEYOND_POLICIES = ("hold", "zero", "error")

EventKey = tuple[str, int]


class EventFile:
    """Time series of one or more columns.

    Args:
        name: Identifier, usually the file name.  Event files are
            registered once per name and field.
        times: Strictly increasing times (s).
        values: Values, shape ``(n_times,)`` or ``(n_times, n_columns)``.
        labels: Column labels.  Defaults to ``"0"``, ``"1"``, ...
        interpolation: ``"linear"`` or ``"step"`` (hold the last
            recorded value until the next record).
        beyond: Value after the last record: ``"hold"`` the last
            value, ``"zero"``, or ``"error"``.

    Raises:
        ConfigurationError: If the series is empty, times are not
            strictly increasing, shapes disagree or a policy is unknown.

    Example::

        rain = EventFile("rain", times=[0, 10], values=[1.0, 5.0])
        rain.value(5.0)   # array([3.])
        rain.value(20.0)  # array([5.]), last value held
    """

    def __init__(
        self,
        name: str,
        times: ArrayLike,
        values: ArrayLike,
        labels: Sequence[str] | None = None,
        interpolation: str = "linear",
        beyond: str = "hold",
    ) -> None:
        self.name = name
        t = np.asarray(times, dtype=float).ravel()
        v = np.asarray(values, dtype=float)
        if v.ndim == 1:
            v = v[:, np.newaxis]

        if len(t) == 0:
            raise ConfigurationError(f"Event file {name!r} contains no records.")
        if v.ndim != 2 or v.shape[0] != len(t):
            raise ConfigurationError(
                f"Event file {name!r}: {len(t)} times but values of shape {v.shape}"
            )
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(v))):
            raise ConfigurationError(f"Event file {name!r} contains non-finite entries.")
        if np.any(np.diff(t) <= 0.0):
            i = int(np.argmax(np.diff(t) <= 0.0)) + 1
            raise ConfigurationError(
                f"Event file {name!r}: times must be strictly increasing "
                f"(record {i}: t={t[i]:g} after t={t[i - 1]:g})"
            )
        if interpolation not in INTERPOLATIONS:
            raise ConfigurationError(
                f"Event file {name!r}: unknown interpolation {interpolation!r}.  "
                f"Available: {list(INTERPOLATIONS)}"
            )
        if beyond not in BEYOND_POLICIES:
            raise ConfigurationError(
                f"Event file {name!r}: unknown beyond policy {beyond!r}.  "
                f"Available: {list(BEYOND_POLICIES)}"
            )

        if labels is None:
            labels = [str(i) for i in range(v.shape[1])]
        labels = [str(label) for label in labels]
        if len(labels) != v.shape[1]:
            raise ConfigurationError(
                f"Event file {name!r}: {len(labels)} labels for {v.shape[1]} columns"
            )
        if len(set(labels)) != len(labels):
            raise ConfigurationError(f"Event file {name!r}: duplicate column labels")

        self.times = t
        self.values = v
        self.labels = labels
        self.interpolation = interpolation
        self.beyond = beyond
        self.times.flags.writeable = False
        self.values.flags.writeable = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @staticmethod
    def _read_csv(path: str | Path) -> tuple[list[str], np.ndarray]:
        path = Path(path)
        if not path.is_file():
            raise MissingInputError(f"Event file not found: {path}")
        with open(path) as fh:
            header = fh.readline().strip()
        columns = [c.strip() for c in header.split(",")]
        if not columns or columns[0].lower() != "time":
            raise ConfigurationError(
                f"Event file {path}: header must start with 'time', got {header!r}"
            )
        try:
            data = np.loadtxt(path, delimiter=",", skiprows=1, ndmin=2, comments="#")
        except ValueError as exc:
            raise ConfigurationError(f"Event file {path}: {exc}") from exc
        if data.size == 0:
            raise ConfigurationError(f"Event file {path} contains no records.")
        if data.shape[1] != len(columns):
            raise ConfigurationError(
                f"Event file {path}: {data.shape[1]} columns for header {columns}"
            )
        return columns[1:], data

    @classmethod
    def from_csv(cls, path: str | Path, **kwargs: Any) -> "EventFile":
        """Load an event file from a CSV file with a ``time,...`` header.

        Keyword arguments are passed to the constructor.
        """
        labels, data = cls._read_csv(path)
        kwargs.setdefault("name", Path(path).name)
        return cls(times=data[:, 0], values=data[:, 1:], labels=labels, **kwargs)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    @property
    def n_columns(self) -> int:
        return self.values.shape[1]

    @property
    def start(self) -> float:
        return float(self.times[0])

    @property
    def end(self) -> float:
        return float(self.times[-1])

    def value(self, t: float) -> np.ndarray:
        """Values of all columns at time *t*.

        Before the first record the first values hold.

        Raises:
            ConfigurationError: After the last record when the beyond
                policy is ``"error"``.
        """
        if t > self.times[-1]:
            if self.beyond == "hold":
                return self.values[-1].copy()
            if self.beyond == "zero":
                return np.zeros(self.n_columns)
            raise ConfigurationError(
                f"Event file {self.name!r} ends at t={self.end:g}, "
                f"queried at t={t:g}"
            )
        if t <= self.times[0]:
            return self.values[0].copy()
        if self.interpolation == "step":
            idx = int(np.searchsorted(self.times, t, side="right")) - 1
            return self.values[idx].copy()
        return np.array(
            [np.interp(t, self.times, self.values[:, c]) for c in range(self.n_columns)]
        )

    def column(self, label: str) -> int:
        """Index of the column called *label*."""
        try:
            return self.labels.index(label)
        except ValueError:
            raise ConfigurationError(
                f"Event file {self.name!r} has no column {label!r}.  "
                f"Available: {self.labels}"
            ) from None

    def average(self, t0: float, t1: float) -> np.ndarray:
        """Exact time average of every column over ``[t0, t1]``.

        Used to inject the mass of a time step without missing short
        events.  Returns :meth:`value` at *t0* when ``t1 <= t0``.
        """
        if t1 <= t0:
            return self.value(t0)
        inner = self.times[(self.times > t0) & (self.times < t1)]
        points = np.concatenate([[t0], inner, [t1]])
        total = np.zeros(self.n_columns)
        for a, b in zip(points[:-1], points[1:]):
            outside = a >= self.times[-1] or b <= self.times[0]
            if self.interpolation == "step":
                seg = self.value(a) if not outside else self.value(0.5 * (a + b))
            elif outside:
                seg = self.value(0.5 * (a + b))
            else:
                seg = 0.5 * (self.value(a) + self.value(b))
            total += seg * (b - a)
        return total / (t1 - t0)

    def next_time(self, t: float, tol: float = 1e-12) -> float | None:
        """First recorded time strictly after *t*, or ``None``."""
        later = self.times[self.times > t + tol]
        return float(later[0]) if len(later) else None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, n_times={len(self.times)}, "
            f"labels={self.labels}, interpolation={self.interpolation!r})"
        )


class PatchEventFile(EventFile):
    """Event file with one column per boundary patch."""

    def patch_value(self, patch: str, t: float) -> float:
        """Value on *patch* at time *t*."""
        return float(self.value(t)[self.column(patch)])

    def patch_average(self, patch: str, t0: float, t1: float) -> float:
        """Time-averaged value on *patch* over ``[t0, t1]``."""
        return float(self.average(t0, t1)[self.column(patch)])


class SourceEventFile(EventFile):
    """Event file with one column per point source.

    Args:
        coordinates: Source locations, shape ``(n_columns, dim)``.
        **kwargs: Passed to :class:`EventFile`.

    Values are source rates (e.g. kg/s for a species).
    """

    def __init__(self, *args: Any, coordinates: ArrayLike, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        coords = np.atleast_2d(np.asarray(coordinates, dtype=float))
        if coords.shape[0] != self.n_columns:
            raise ConfigurationError(
                f"Source event file {self.name!r}: {coords.shape[0]} coordinates "
                f"for {self.n_columns} columns"
            )
        self.coordinates = coords


class EventFileRegistry:
    """Append-only registry of event files, keyed by field name.

    One registry is created per simulation run and passed explicitly to
    every object that registers or queries events.  Registration is
    closed with :meth:`freeze` before the first evaluation; lookups are
    read-only afterwards.

    Example::

        registry = EventFileRegistry()
        key = registry.register("h", PatchEventFile("rain.csv", ...))
        registry.get(key).patch_value("top", 3600.0)
    """

    def __init__(self) -> None:
        self._events: dict[str, list[EventFile]] = {}
        self._frozen = False

    def register(self, field_name: str, event_file: EventFile) -> EventKey:
        """Register *event_file* for *field_name* and return its key.

        An event file object already registered for the field is not
        added again; its key is returned.  Distinct event files are kept
        apart even when they share a name.

        Raises:
            RuntimeError: If the registry is frozen.
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register event file {event_file.name!r}: registry is frozen."
            )
        entries = self._events.setdefault(field_name, [])
        for i, existing in enumerate(entries):
            if existing is event_file:
                return (field_name, i)
        entries.append(event_file)
        logger.info("Registered event file %r for field %r", event_file.name, field_name)
        return (field_name, len(entries) - 1)

    def get(self, key: EventKey) -> EventFile:
        """Event file for a key returned by :meth:`register`."""
        field_name, index = key
        return self._events[field_name][index]

    def events_for(self, field_name: str) -> tuple[EventFile, ...]:
        """Event files registered for *field_name* (possibly empty)."""
        return tuple(self._events.get(field_name, ()))

    @property
    def fields(self) -> list[str]:
        """Field names with at least one event file."""
        return list(self._events)

    def freeze(self) -> None:
        """Close registration."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __iter__(self) -> Iterator[EventFile]:
        for entries in self._events.values():
            yield from entries

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._events.values())

    def next_event_time(self, t: float) -> float | None:
        """Earliest event time strictly after *t* over all event files."""
        candidates = [ef.next_time(t) for ef in self]
        candidates = [c for c in candidates if c is not None]
        return min(candidates) if candidates else None

    def clip_time_step(self, t: float, dt: float) -> float:
        """Shorten *dt* so that ``t + dt`` does not step over an event time."""
        t_next = self.next_event_time(t)
        if t_next is not None and t + dt > t_next:
            return t_next - t
        return dt

    def __repr__(self) -> str:
        counts = {f: len(e) for f, e in self._events.items()}
        return f"EventFileRegistry({counts}, frozen={self._frozen})"


@dataclass(frozen=True)
class EventChannel:
    """Registry bound to one field name.

    Objects built with a channel append their event files to the
    registry under :attr:`field_name`.
    """

    registry: EventFileRegistry
    field_name: str

    def register(self, event_file: EventFile) -> EventKey:
        return self.registry.register(self.field_name, event_file)

    def events(self) -> tuple[EventFile, ...]:
        return self.registry.events_for(self.field_name)


def set_event_file_registry(registry: EventFileRegistry, field_name: str) -> EventChannel:
    """Associate event objects built with the returned channel with *field_name*."""
    return EventChannel(registry, field_name)
