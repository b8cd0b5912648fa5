import numpy as np

from .ops import multilinear_product


def random_factors(tensor_dims, core_dims, seed=0, normalize=True):
    rng = np.random.default_rng(seed)
    factors = []
    for n, m in zip(tensor_dims, core_dims, strict=True):
        D = rng.standard_normal((n, m))
        if normalize:
            D /= np.linalg.norm(D, axis=0, keepdims=True)
        factors.append(D)
    return factors


def simulate_separable(tensor_dims, core_dims, n_nonzero, noise=0.0, seed=0):
    """Sparse core X with ``n_nonzero`` entries and Y = X ×_k D[k] + noise."""
    rng = np.random.default_rng(seed)
    factors = random_factors(tensor_dims, core_dims, seed=seed + 1)
    total = int(np.prod(core_dims))
    support = np.sort(rng.choice(total, size=min(n_nonzero, total), replace=False))
    X = np.zeros(total)
    X[support] = rng.choice([-1.0, 1.0], size=support.size) * (1.0 + rng.random(support.size))
    X = X.reshape(core_dims)
    Y = multilinear_product(X, factors)
    if noise > 0:
        Y = Y + noise * rng.standard_normal(Y.shape)
    return Y, factors, X
