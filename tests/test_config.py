import logging

import pytest

from eqsys.config import SolverOptions


def test_defaults():
    options = SolverOptions()
    assert options.max_iterations == 100
    assert options.relative_tolerance == 1e-6
    assert options.step_tolerance == 1e-6
    assert options.line_search == "more_thuente"
    assert options.n_workers == 1
    assert options.index_map is True


def test_from_dict_missing_keys_use_defaults():
    options = SolverOptions.from_dict({"max_iterations": 20})
    assert options.max_iterations == 20
    assert options.relative_tolerance == SolverOptions().relative_tolerance
    assert SolverOptions.from_dict(None) == SolverOptions()


def test_from_dict_casts_values():
    options = SolverOptions.from_dict(
        {"max_iterations": "15", "damping": "0.5", "n_workers": 2.0, "index_map": "false"}
    )
    assert options.max_iterations == 15
    assert options.damping == 0.5
    assert options.n_workers == 2
    assert options.index_map is False


def test_from_dict_warns_on_unknown_keys(caplog):
    logger = logging.getLogger("eqsys.config")
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.WARNING, logger=logger.name):
            options = SolverOptions.from_dict({"max_iter": 3})
    finally:
        logger.removeHandler(caplog.handler)
    assert options == SolverOptions()
    assert "max_iter" in caplog.text


@pytest.mark.parametrize(
    "options",
    [
        {"max_iterations": -1},
        {"relative_tolerance": -1e-3},
        {"line_search": "wolfe"},
        {"damping": 0.0},
        {"n_workers": 0},
    ],
)
def test_invalid_values_rejected(options):
    with pytest.raises(ValueError):
        SolverOptions.from_dict(options)


def test_to_dict_round_trip():
    options = SolverOptions(max_iterations=7, line_search="armijo")
    assert SolverOptions.from_dict(options.to_dict()) == options
