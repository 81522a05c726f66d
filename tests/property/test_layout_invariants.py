import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st

from trackmpc.config import MPCConfig
from trackmpc.control.extraction import extract_controls
from trackmpc.optimization.index_map import CONTROL_NAMES, STATE_NAMES, IndexMap

horizons = st.integers(min_value=2, max_value=80)


@given(horizon=horizons)
def test_blocks_tile_the_vector(horizon):
    index = IndexMap(horizon)
    covered = np.zeros(index.n_vars, dtype=int)
    for name in STATE_NAMES + CONTROL_NAMES:
        covered[index.block(name)] += 1
    # every slot belongs to exactly one block
    assert np.all(covered == 1)
    assert index.n_vars == horizon * 6 + (horizon - 1) * 2


@given(horizon=horizons)
def test_blocks_in_fixed_order(horizon):
    index = IndexMap(horizon)
    order = STATE_NAMES + CONTROL_NAMES
    starts = [index.offset(name, 0) for name in order]
    assert starts == sorted(starts)
    assert index.offset("a", 0) == index.offset("delta", 0) + horizon - 1


@settings(max_examples=25)
@given(horizon=horizons, seed=st.integers(min_value=0, max_value=2**32 - 1))
def test_extracted_vector_length(horizon, seed):
    cfg = MPCConfig(horizon=horizon)
    vec = np.random.default_rng(seed).normal(size=cfg.index_map.n_vars)
    steering, acceleration, xy = extract_controls(vec, cfg)
    assert xy.shape == (horizon - 2, 2)
    assert 2 + xy.size == 2 + 2 * (horizon - 2)
