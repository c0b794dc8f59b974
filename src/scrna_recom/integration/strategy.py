"""Integration strategies and their run parameters."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from scrna_recom.errors import UnsupportedStrategy


class Strategy(Enum):
    """The closed set of integration strategies, valued by artifact stem."""

    CCA = "seurat-cca"
    LARGEDATA = "seurat-largedata"
    SCTRANSFORM = "sctransform"
    HARMONY = "harmony"
    LIGER = "liger"

    @property
    def stem(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union["Strategy", str]) -> "Strategy":
        """
        Resolve a strategy from an enum member, artifact stem or member name.

        Raises
        ------
        UnsupportedStrategy
            If ``value`` names no known strategy.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for strategy in cls:
                if key in (strategy.value, strategy.name.lower()):
                    return strategy
        choices = ", ".join(strategy.value for strategy in cls)
        raise UnsupportedStrategy(f"Unsupported integration strategy {value!r}; choose one of: {choices}")


@dataclass(frozen=True)
class IntegrationParams:
    """Caller-tunable constants shared by the strategy pipelines."""

    n_features: int = 2000
    sct_n_features: int = 5000
    target_sum: float = 1e4
    hvg_flavor: str = "seurat"
    reference: Tuple[int, ...] = (0, 1)
    liger_k: int = 20
    liger_lambda: float = 5.0
    liger_resolution: float = 0.55
    seed: int = 0

    @classmethod
    def from_settings(cls, settings=None, **overrides) -> "IntegrationParams":
        """Build parameters from ``Settings``, with keyword overrides (``None`` values are ignored)."""
        if settings is None:
            from scrna_recom.config import get_settings
            settings = get_settings()

        values = dict(
            n_features=settings.N_VARIABLE_FEATURES,
            sct_n_features=settings.SCT_N_VARIABLE_FEATURES,
            target_sum=settings.NORM_TARGET_SUM,
            hvg_flavor=settings.HVG_FLAVOR,
            reference=tuple(settings.LARGEDATA_REFERENCE),
            liger_k=settings.LIGER_K,
            liger_lambda=settings.LIGER_LAMBDA,
            liger_resolution=settings.LIGER_RESOLUTION,
            seed=settings.RANDOM_SEED,
        )
        values.update({key: value for key, value in overrides.items() if value is not None})
        if "reference" in overrides and overrides["reference"] is not None:
            values["reference"] = tuple(overrides["reference"])
        return cls(**values)

    def to_dict(self, strategy: Optional[Strategy] = None) -> dict:
        """Parameters as a plain dict, restricted to those ``strategy`` uses."""
        params = asdict(self)
        params["reference"] = list(self.reference)
        if strategy is None:
            return params

        used = {
            Strategy.CCA: ("n_features", "target_sum", "hvg_flavor", "seed"),
            Strategy.LARGEDATA: ("n_features", "target_sum", "hvg_flavor", "reference", "seed"),
            Strategy.SCTRANSFORM: ("sct_n_features", "seed"),
            Strategy.HARMONY: ("n_features", "target_sum", "hvg_flavor", "seed"),
            Strategy.LIGER: ("n_features", "liger_k", "liger_lambda", "liger_resolution", "seed"),
        }[strategy]
        return {key: params[key] for key in used}
