"""Pytest fixtures for diffview tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="diffview-tests-"))
os.environ["DIFFVIEW_DATA_DIR"] = str(_TEST_BASE_DIR / "data")
os.environ["DIFFVIEW_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from tests.helpers.fakes import ViewModelHarness


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture
async def harness() -> AsyncGenerator[ViewModelHarness]:
    """A view model over two fake git repositories, activated."""
    from tests.helpers.fakes import FakeRepository, build_view_model

    built = build_view_model([FakeRepository("/work/r1"), FakeRepository("/work/r2")])
    built.view_model.activate()
    await built.view_model.wait_idle()
    yield built
    await built.view_model.aclose()
