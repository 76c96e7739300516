"""
Headless Matplotlib configuration for pytest
--------------------------------------------

Forces the "Agg" backend before anything imports pyplot and closes all
figures after each test.
"""

import os

# a stray interactive or malformed backend would break plot tests on CI
os.environ["MPLBACKEND"] = "Agg"

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest


@pytest.fixture(autouse=True)
def _close_figures():
    """Automatically close all Matplotlib figures after each test."""
    yield
    plt.close("all")
