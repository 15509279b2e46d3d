"""
Trial/Condition Index.

Maps trial identifiers to their experimental condition label and any other
per-trial covariates from the epoch table (e.g. onset time, response). The
index is built once from an already-parsed table with at least the columns
`Trial` and `Condition` and is immutable afterwards.

Lookups by condition are permissive by default: labels that match no trial
produce a logged warning rather than an error, so a misspelled condition
label is visible in the log instead of silently yielding an empty selection.
Build the index with `strict=True` to turn such misses into
`UnknownCondition` errors.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Hashable, Iterable, Mapping

import pandas as pd

from ieeg_power.exceptions import UnknownCondition

logger = logging.getLogger(__name__)

TRIAL_COLUMN = "Trial"
CONDITION_COLUMN = "Condition"


class TrialIndex:
    """
    Immutable mapping from trial id to condition label and covariates.

    Attributes:
        strict: If True, `trials_for` raises UnknownCondition for labels that
            match no trial
    """

    def __init__(
        self,
        conditions: Mapping[Hashable, str],
        covariates: Mapping[Hashable, Mapping[str, Any]] | None = None,
        strict: bool = False,
    ) -> None:
        self._conditions = MappingProxyType(
            {trial: str(label) for trial, label in conditions.items()}
        )
        covariates = covariates or {}
        unknown = set(covariates) - set(self._conditions)
        if unknown:
            raise ValueError(
                f"Covariates given for trials without a condition: {sorted(unknown)}"
            )
        self._covariates = MappingProxyType(
            {
                trial: MappingProxyType(dict(covariates.get(trial, {})))
                for trial in self._conditions
            }
        )
        self._strict = strict

    @classmethod
    def from_table(
        cls,
        table: pd.DataFrame | Iterable[Mapping[str, Any]],
        strict: bool = False,
    ) -> "TrialIndex":
        """
        Build the index from an epoch table.

        Args:
            table: DataFrame (or rows as mappings) with at least `Trial` and
                `Condition` columns. Other columns are stored as covariates.
            strict: Raise UnknownCondition on unmatched condition lookups

        Returns:
            TrialIndex

        Raises:
            ValueError: If a required column is missing or trial ids repeat

        Example:
            >>> table = pd.DataFrame({"Trial": [1, 2], "Condition": ["a_av", "b_a"]})
            >>> index = TrialIndex.from_table(table)
            >>> index.trials_for({"a_av"})
            frozenset({1})
        """
        frame = table if isinstance(table, pd.DataFrame) else pd.DataFrame(list(table))

        missing = [
            column
            for column in (TRIAL_COLUMN, CONDITION_COLUMN)
            if column not in frame.columns
        ]
        if missing:
            raise ValueError(
                f"Epoch table is missing required columns: {missing}. "
                f"Available columns: {list(frame.columns)}"
            )

        duplicated = frame[TRIAL_COLUMN][frame[TRIAL_COLUMN].duplicated()]
        if not duplicated.empty:
            raise ValueError(
                f"Epoch table has duplicated trial ids: {sorted(duplicated.unique().tolist())}"
            )

        extra_columns = [
            column
            for column in frame.columns
            if column not in (TRIAL_COLUMN, CONDITION_COLUMN)
        ]
        conditions = {}
        covariates = {}
        for row in frame.to_dict(orient="records"):
            trial = _plain(row[TRIAL_COLUMN])
            conditions[trial] = str(row[CONDITION_COLUMN])
            covariates[trial] = {column: _plain(row[column]) for column in extra_columns}

        logger.debug(
            f"Built trial index: {len(conditions)} trials, "
            f"{len(set(conditions.values()))} conditions"
        )
        return cls(conditions, covariates, strict=strict)

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def trials(self) -> tuple:
        """Trial ids in table order."""
        return tuple(self._conditions)

    @property
    def conditions(self) -> frozenset[str]:
        """Distinct condition labels."""
        return frozenset(self._conditions.values())

    def trials_for(self, conditions: str | Iterable[str]) -> frozenset:
        """
        Return the trials whose condition is one of `conditions`.

        Args:
            conditions: One label or a collection of labels

        Returns:
            Set of trial ids (empty if nothing matches and strict is False)

        Raises:
            UnknownCondition: In strict mode, if any label matches no trial
        """
        if isinstance(conditions, str):
            conditions = {conditions}
        wanted = {str(label) for label in conditions}

        unmatched = sorted(wanted - self.conditions)
        if unmatched:
            if self.strict:
                raise UnknownCondition(
                    f"Condition(s) {unmatched} not found. "
                    f"Available conditions: {sorted(self.conditions)}"
                )
            logger.warning(
                f"Condition(s) {unmatched} match no trial and were ignored. "
                f"Available conditions: {sorted(self.conditions)}"
            )

        return frozenset(
            trial for trial, label in self._conditions.items() if label in wanted
        )

    def trials_where(self, predicate: Callable[[str], bool]) -> frozenset:
        """
        Return the trials whose condition label satisfies `predicate`.

        Example:
            >>> index.trials_where(lambda label: label.endswith("_av"))
        """
        selected = frozenset(
            trial for trial, label in self._conditions.items() if predicate(label)
        )
        if not selected:
            logger.warning("Condition predicate matched no trial")
        return selected

    def condition_of(self, trial: Hashable) -> str:
        """Return the condition label of one trial."""
        try:
            return self._conditions[trial]
        except KeyError:
            raise KeyError(f"Trial {trial!r} is not in the index") from None

    def covariate(self, trial: Hashable, name: str) -> Any:
        """Return one covariate value of one trial."""
        self.condition_of(trial)
        covariates = self._covariates[trial]
        if name not in covariates:
            raise KeyError(
                f"Unknown covariate '{name}'. Available covariates: {list(covariates)}"
            )
        return covariates[name]

    def to_frame(self) -> pd.DataFrame:
        """Return the index as an epoch table (one row per trial)."""
        rows = [
            {TRIAL_COLUMN: trial, CONDITION_COLUMN: label, **self._covariates[trial]}
            for trial, label in self._conditions.items()
        ]
        return pd.DataFrame(rows, columns=_columns(rows))

    def restrict(self, trials: Iterable[Hashable]) -> "TrialIndex":
        """Return a new index holding only `trials`, in this index's order."""
        keep = set(trials)
        return TrialIndex(
            {trial: label for trial, label in self._conditions.items() if trial in keep},
            {trial: self._covariates[trial] for trial in self._conditions if trial in keep},
            strict=self.strict,
        )

    def __len__(self) -> int:
        return len(self._conditions)

    def __contains__(self, trial: object) -> bool:
        return trial in self._conditions

    def __repr__(self) -> str:
        return (
            f"TrialIndex({len(self)} trials, conditions={sorted(self.conditions)}, "
            f"strict={self.strict})"
        )


def _plain(value: Any) -> Any:
    """Convert numpy scalars from pandas into plain Python values."""
    return value.item() if hasattr(value, "item") else value


def _columns(rows: list[dict]) -> list[str]:
    columns = [TRIAL_COLUMN, CONDITION_COLUMN]
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)
    return columns
