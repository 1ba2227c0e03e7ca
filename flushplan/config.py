"""Configuration classes for flushplan schedulers."""

from dataclasses import dataclass

from flushplan.algorithms.types import OrderMode

# 2**24 subsets per DP table is the largest memory footprint we accept
EXACT_FILAMENT_HARD_LIMIT = 24


@dataclass
class SequencingConfig:
    """Thresholds that select the per-layer ordering strategy."""

    # Lookahead is used when both the current and the next layer are this small
    max_forecast_filaments: int = 5

    # Held-Karp ceiling; larger layers fall back to the greedy heuristic
    max_exact_filaments: int = 20

    # Reuse solved layers with the same (prev, current, next) context
    use_cache: bool = True

    def __post_init__(self) -> None:
        if self.max_forecast_filaments < 0:
            raise ValueError("max_forecast_filaments must be non-negative")
        if self.max_exact_filaments < 0:
            raise ValueError("max_exact_filaments must be non-negative")
        if self.max_exact_filaments > EXACT_FILAMENT_HARD_LIMIT:
            raise ValueError(
                f"max_exact_filaments must not exceed {EXACT_FILAMENT_HARD_LIMIT}"
            )

    def select_mode(self, n_curr: int, n_next: int) -> OrderMode:
        """Pick the ordering strategy for a layer of ``n_curr`` filaments."""
        if (
            n_curr <= self.max_forecast_filaments
            and n_next <= self.max_forecast_filaments
        ):
            return OrderMode.FORECAST
        if n_curr <= self.max_exact_filaments:
            return OrderMode.EXACT
        return OrderMode.GREEDY


# Global configuration instance
SEQUENCING_CONFIG = SequencingConfig()
