"""Mass-balance reports.

One space-separated text file per balance, a ``#``-prefixed header
line followed by one row per reported time::

    waterMassBalance.csv      #Time flux(<patch>)...
    <species>massBalance.csv  #Time TotalMass(kg) flux(<patch>)...

Only boundary patches of type ``"patch"`` are reported; ``"empty"``
patches of reduced-dimension meshes carry no flux.

Classes
-------
MassBalanceCSV
    A single balance file.
MassBalanceReports
    The water balance and one balance per species.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Sequence

from pyvadose.errors import ConfigurationError

logger = logging.getLogger(__name__)

WATER_BALANCE_FILE = "waterMassBalance.csv"
SPECIES_BALANCE_SUFFIX = "massBalance.csv"


class MassBalanceCSV:
    """Append-only balance file.

    Args:
        path: Output file, overwritten on open.
        columns: Column labels written after ``#Time``.
    """

    def __init__(self, path: str | Path, columns: Sequence[str]) -> None:
        self.path = Path(path)
        self.columns = list(columns)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w")
        self._file.write(" ".join(["#Time", *self.columns]) + "\n")
        self._file.flush()
        logger.info("Writing balance to %s", self.path)

    def write_row(self, time: float, values: Sequence[float]) -> None:
        """Append the values at *time*, one per column."""
        if len(values) != len(self.columns):
            raise ConfigurationError(
                f"{self.path.name}: expected {len(self.columns)} values, "
                f"got {len(values)}"
            )
        row = [f"{time:g}", *(f"{float(v):.10g}" for v in values)]
        self._file.write(" ".join(row) + "\n")
        self._file.flush()

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "MassBalanceCSV":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MassBalanceCSV({str(self.path)!r}, columns={self.columns})"


def _flux_columns(patches: Sequence[str]) -> list[str]:
    return [f"flux({p})" for p in patches]


class MassBalanceReports:
    """Water and species balance files of a case.

    Args:
        directory: Directory receiving the files.
        mesh: The mesh; its ``"patch"`` patches become the flux columns.
        species: Species names, one file each.
    """

    def __init__(self, directory: str | Path, mesh: Any, species: Sequence[str]) -> None:
        directory = Path(directory)
        self.patches = mesh.patch_names("patch")
        flux_columns = _flux_columns(self.patches)
        with ExitStack() as stack:
            self.water = stack.enter_context(
                MassBalanceCSV(directory / WATER_BALANCE_FILE, flux_columns)
            )
            self.species = {
                name: stack.enter_context(
                    MassBalanceCSV(
                        directory / f"{name}{SPECIES_BALANCE_SUFFIX}",
                        ["TotalMass(kg)", *flux_columns],
                    )
                )
                for name in species
            }
            # Opened files stay open once every report exists
            stack.pop_all()

    def write(
        self,
        time: float,
        coupler: Any,
        mixture: Any,
        boundary_conditions: Any = None,
        dt: float | None = None,
    ) -> None:
        """Append one row to every balance at *time*."""
        water = coupler.patch_fluxes()
        self.water.write_row(time, [water[p] for p in self.patches])
        for name, report in self.species.items():
            fluxes = mixture.boundary_fluxes(
                name, coupler.phi, time, boundary_conditions, dt
            )
            report.write_row(
                time, [mixture.total_mass(name), *(fluxes[p] for p in self.patches)]
            )

    def close(self) -> None:
        self.water.close()
        for report in self.species.values():
            report.close()

    def __enter__(self) -> "MassBalanceReports":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
