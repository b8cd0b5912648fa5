import logging
import time

import numpy as np

from wtlars import (
    WTLARS,
    multilinear_product,
    relative_residual_norm,
    simulate_separable,
    sparsity,
    wt_lars,
)


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    tensor_dims, core_dims, n_nonzero = (24, 20, 16), (32, 24, 20), 25
    Y, factors, X_true = simulate_separable(tensor_dims, core_dims, n_nonzero, noise=1e-3, seed=7)
    w = np.random.default_rng(7).uniform(0.5, 1.5, Y.size)

    # L1 homotopy path
    t0 = time.time()
    res = wt_lars(Y, factors, w, 3 * n_nonzero, 1e-3)
    sec_l1 = time.time() - t0

    # greedy path through the estimator interface
    t0 = time.time()
    greedy = WTLARS(active_columns_limit=3 * n_nonzero, tolerance=1e-3, l0_mode=True)
    greedy.fit(Y, factors, w)
    sec_l0 = time.time() - t0

    true_support = set(np.flatnonzero(X_true).tolist())
    print("=== WT-LARS (L1 vs L0) ===")
    print(
        f"tensor={tensor_dims}  core={core_dims}  "
        f"columns={int(np.prod(core_dims))}  nnz={n_nonzero}"
    )
    runs = (
        ("L1", sec_l1, res.data_coefficients(), res.status),
        ("L0", sec_l0, greedy.coef_, greedy.status_),
    )
    for name, secs, coef, status in runs:
        support = set(np.flatnonzero(coef).tolist())
        resid = relative_residual_norm(Y, multilinear_product(coef, factors), w)
        print(
            f"{name}:  sec={secs:.3f}  status={status.value}  active={len(support)}  "
            f"recovered={len(support & true_support)}/{n_nonzero}  "
            f"sparsity={sparsity(coef):.4f}  rel_resid={resid:.2e}"
        )


if __name__ == "__main__":
    main()
