import logging

import pytest

from inmo24x7.logging.setup import configure_logging


@pytest.fixture(autouse=True)
def restore_info_level():
    yield
    configure_logging("INFO")


def test_debug_level_reaches_package_loggers():
    configure_logging("DEBUG")

    assert logging.getLogger("inmo24x7.services.conversation").isEnabledFor(logging.DEBUG)
    assert logging.getLogger("inmo24x7.services.tool_dispatcher").isEnabledFor(logging.DEBUG)


def test_warning_level_silences_package_info():
    configure_logging("warning")

    assert not logging.getLogger("inmo24x7").isEnabledFor(logging.INFO)
    assert not logging.getLogger("inmo24x7.services.conversation").isEnabledFor(logging.INFO)
    assert logging.getLogger("inmo24x7.services.conversation").isEnabledFor(logging.WARNING)


def test_unknown_level_falls_back_to_info():
    configure_logging("chatty")

    assert logging.getLogger("inmo24x7").getEffectiveLevel() == logging.INFO
