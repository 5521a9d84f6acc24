from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from scipy.stats import norm

from fdsim.config import (
    SimulationConfig,
    check_sample_size,
    check_seed,
    validate_time_grid,
)
from fdsim.constants import (
    BETA_FEATURES,
    CLASSES,
    COEF_MEAN,
    COEF_VARIANCE,
    N_FEATURES,
    SIGMA_X,
    SIGMA_Y,
)
from fdsim.exceptions import ConfigurationError
from fdsim.mean_functions import evaluate_input_means, evaluate_output_means
from fdsim.utils.utils_logging import logger


class Coefficients(NamedTuple):
    """Per-individual scale coefficients, both of shape (n,)."""

    beta: np.ndarray
    beta_prime: np.ndarray


@dataclass(frozen=True, eq=False)
class SampleSet:
    """One simulated dataset of size n.

    Attributes:
        X: Input curves, shape (n, N_FEATURES, nt).
        Y: Output curves, shape (n, nt).
        class_labels: Latent class per individual and feature, shape (n, N_FEATURES),
            values in CLASSES. Column 0 and 1 key the output mean function.
        coefficients: beta (features 1, 2 and Y) and beta_prime (features 3..6).
        time_grid: Grid shared by X and Y, shape (nt,).
        seed: Seed the sample was drawn with.

    Unpacks as (X, Y, class_labels, coefficients).
    """

    X: np.ndarray
    Y: np.ndarray
    class_labels: np.ndarray
    coefficients: Coefficients
    time_grid: np.ndarray
    seed: int

    def __iter__(self) -> Iterator:
        return iter((self.X, self.Y, self.class_labels, self.coefficients))

    @property
    def n(self) -> int:
        return int(self.X.shape[0])

    @property
    def n_time_points(self) -> int:
        return int(self.time_grid.size)

    def feature_scales(self) -> np.ndarray:
        """Scale coefficient b(i, j) applied to each feature, shape (n, N_FEATURES)."""
        return _feature_scales(self.coefficients)

    def signal_x(self) -> np.ndarray:
        """Noise-free part of X: b(i, j) * f_{j, class(i, j)}(t)."""
        means = evaluate_input_means(self.time_grid)
        return self.feature_scales()[:, :, None] * _select_input_means(
            means, self.class_labels
        )

    def signal_y(self) -> np.ndarray:
        """Noise-free part of Y: beta(i) * g_{class(i, 1), class(i, 2)}(t)."""
        means = evaluate_output_means(self.time_grid)
        return self.coefficients.beta[:, None] * _select_output_means(
            means, self.class_labels
        )


def _feature_scales(coefficients: Coefficients) -> np.ndarray:
    is_beta = np.isin(np.arange(1, N_FEATURES + 1), BETA_FEATURES)
    return np.where(
        is_beta[None, :],
        coefficients.beta[:, None],
        coefficients.beta_prime[:, None],
    )


def _select_input_means(means: np.ndarray, class_labels: np.ndarray) -> np.ndarray:
    # means: (N_FEATURES, n_classes, nt), class_labels: (n, N_FEATURES) -> (n, N_FEATURES, nt)
    class_idx = np.searchsorted(CLASSES, class_labels)
    feature_idx = np.arange(N_FEATURES)[None, :]
    return means[feature_idx, class_idx]


def _select_output_means(means: np.ndarray, class_labels: np.ndarray) -> np.ndarray:
    # Output class pair is read from features 1 and 2
    class_idx = np.searchsorted(CLASSES, class_labels[:, :2])
    return means[class_idx[:, 0], class_idx[:, 1]]


def _freeze(*arrays: np.ndarray) -> None:
    for arr in arrays:
        arr.setflags(write=False)


def freeze_sample_set(sample_set: SampleSet) -> SampleSet:
    """Mark the arrays of `sample_set` read-only again, e.g. after unpickling."""
    _freeze(
        sample_set.X,
        sample_set.Y,
        sample_set.class_labels,
        sample_set.coefficients.beta,
        sample_set.coefficients.beta_prime,
    )
    return sample_set


class FunctionalDataSampler:
    """Sampler for the multi-feature functional regression benchmark.

    For every individual i it draws two scale coefficients and one latent class
    per feature, then builds

        X[i, j, t] = b(i, j) * f_{j, class(i, j)}(t) + N(0, sigma_x^2)
        Y[i, t]    = beta[i] * g_{class(i, 1), class(i, 2)}(t) + N(0, sigma_y^2)

    with b(i, j) = beta[i] for features 1 and 2 and beta_prime[i] otherwise.

    All randomness comes from one numpy Generator seeded with `seed`. Draws are
    consumed in a fixed order (coefficients, class labels, X noise, Y noise),
    so a given (n, seed) always yields bit-identical arrays.

    Constructor arguments:
        time_grid: Strictly increasing 1D grid in [0, 1] with a fixed step.
        seed: RNG seed for this sample.
        sigma_x: Noise standard deviation of the input curves.
        sigma_y: Noise standard deviation of the output curves.
        coef_mean: Mean of beta and beta_prime.
        coef_variance: Variance of beta and beta_prime.
    """

    def __init__(
        self,
        time_grid: np.ndarray,
        seed: int,
        sigma_x: float = SIGMA_X,
        sigma_y: float = SIGMA_Y,
        coef_mean: float = COEF_MEAN,
        coef_variance: float = COEF_VARIANCE,
    ) -> None:
        self.time_grid = validate_time_grid(time_grid).copy()
        self.time_grid.setflags(write=False)
        if sigma_x < 0 or sigma_y < 0:
            raise ConfigurationError(
                f"Noise standard deviations must be non-negative, got {sigma_x}, {sigma_y}."
            )
        if coef_variance <= 0:
            raise ConfigurationError(
                f"Coefficient variance must be positive, got {coef_variance}."
            )
        self.seed = check_seed(seed)
        self.sigma_x = float(sigma_x)
        self.sigma_y = float(sigma_y)
        self.coef_mean = float(coef_mean)
        self.coef_sd = float(np.sqrt(coef_variance))

        # Mean tables only depend on the grid
        self._input_means = evaluate_input_means(self.time_grid)
        self._output_means = evaluate_output_means(self.time_grid)

    def sample(self, n: int) -> SampleSet:
        """Draw one sample set of `n` individuals.

        Returns:
            SampleSet with X of shape (n, 6, nt) and Y of shape (n, nt).
        """
        n = check_sample_size(n)
        rng = np.random.default_rng(seed=self.seed)
        nt = self.time_grid.size

        # 1. Scale coefficients
        coefficients = self._sample_coefficients(rng, n)

        # 2. Latent classes, uniform over CLASSES
        class_labels = rng.choice(np.asarray(CLASSES), size=(n, N_FEATURES))

        # 3. Input curves
        scales = _feature_scales(coefficients)
        X = scales[:, :, None] * _select_input_means(self._input_means, class_labels)
        X = X + rng.normal(0.0, self.sigma_x, size=(n, N_FEATURES, nt))

        # 4. Output curves
        Y = coefficients.beta[:, None] * _select_output_means(
            self._output_means, class_labels
        )
        Y = Y + rng.normal(0.0, self.sigma_y, size=(n, nt))

        _freeze(X, Y, class_labels, coefficients.beta, coefficients.beta_prime)
        logger.debug(
            "Sampled n=%d (seed=%d): X %s, Y %s.", n, self.seed, X.shape, Y.shape
        )
        return SampleSet(
            X=X,
            Y=Y,
            class_labels=class_labels,
            coefficients=coefficients,
            time_grid=self.time_grid,
            seed=self.seed,
        )

    def _sample_coefficients(self, rng: np.random.Generator, n: int) -> Coefficients:
        """Draw beta and beta_prime independently from N(coef_mean, coef_variance)."""
        beta = norm.rvs(loc=self.coef_mean, scale=self.coef_sd, size=n, random_state=rng)
        beta_prime = norm.rvs(
            loc=self.coef_mean, scale=self.coef_sd, size=n, random_state=rng
        )
        return Coefficients(beta=np.asarray(beta), beta_prime=np.asarray(beta_prime))


def generate(
    n: int,
    time_grid: np.ndarray,
    seed: int,
    sigma_x: float = SIGMA_X,
    sigma_y: float = SIGMA_Y,
    coef_mean: float = COEF_MEAN,
    coef_variance: float = COEF_VARIANCE,
) -> SampleSet:
    """Functional shortcut for FunctionalDataSampler(time_grid, seed, ...).sample(n)."""
    n = check_sample_size(n)
    sampler = FunctionalDataSampler(
        time_grid,
        seed,
        sigma_x=sigma_x,
        sigma_y=sigma_y,
        coef_mean=coef_mean,
        coef_variance=coef_variance,
    )
    return sampler.sample(n)


def derive_seed(seed: int, n: int) -> int:
    """Derive an independent, reproducible seed for sample size `n` from `seed`."""
    return int(np.random.SeedSequence([int(seed), int(n)]).generate_state(1)[0])


def run_simulation(n: int, config: SimulationConfig) -> SampleSet:
    """Simulate one sample size. Pure: no shared state between calls."""
    n = check_sample_size(n)
    seed = derive_seed(config.seed, n)
    logger.debug("Simulating n=%d with derived seed %d.", n, seed)
    return generate(
        n,
        config.time_grid,
        seed,
        sigma_x=config.sigma_x,
        sigma_y=config.sigma_y,
        coef_mean=config.coef_mean,
        coef_variance=config.coef_variance,
    )
