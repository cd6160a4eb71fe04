"""Shared fixtures for GraphSpace tests."""

import logging

import pytest

from graphspace.compiler import compile_expression
from graphspace.models import Domain
from graphspace.sampler import sample


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by CLI runs so later tests do not log to closed streams."""
    yield
    logger = logging.getLogger("graphspace")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def small_domain():
    """Domain over [-2, 2]^2 with unit grid spacing."""
    return Domain(xmin=-2, xmax=2, ymin=-2, ymax=2, resolution=4)


@pytest.fixture
def unit_domain():
    """Domain over [-1, 1]^2 sampled on a 3x3 vertex grid."""
    return Domain(xmin=-1, xmax=1, ymin=-1, ymax=1, resolution=2)


@pytest.fixture
def paraboloid():
    return compile_expression("x^2 + y^2")


@pytest.fixture
def ramp_mesh(small_domain):
    """The plane z = x over the small domain."""
    return sample(compile_expression("x"), small_domain)


@pytest.fixture
def workspace_yaml():
    return """\
version: "1.0"
color_mode: height
settings:
  xmin: -2
  xmax: 2
  ymin: -2
  ymax: 2
  resolution: 4
equations:
  - expression: "x^2 + y^2"
    color: "#FF0000"
  - expression: "sin(x)cos(y)"
    visible: false
  - expression: "qwerty"
"""
